"""Tests for the per-entity data API client."""

import httpx
import pytest

from orgpipe.clients.data_api import DataAPIClient
from orgpipe.errors import MalformedInput

BASE = "https://api.cloudflare.com"
PATH = "/client/v4/radar/attacks/layer3/top/locations/target"


class TestDataAPIClient:
    """Tests for DataAPIClient."""

    @pytest.mark.asyncio
    async def test_fetch_entity(self, respx_mock):
        """Should fetch the configured path with the configured query."""
        mock_response = {"success": True, "result": {"top_0": [{"targetCountryAlpha2": "US"}]}}
        route = respx_mock.get(f"{BASE}{PATH}", params={"dateRange": "30d", "format": "json"}).mock(
            return_value=httpx.Response(200, json=mock_response)
        )

        async with DataAPIClient(
            base_url=BASE,
            path=PATH,
            query={"dateRange": "30d", "format": "json"},
            token="test_token",
        ) as client:
            result = await client.fetch_entity({"ticker_symbol": "AMZN"})

        assert result == mock_response
        assert route.called

    @pytest.mark.asyncio
    async def test_bearer_token_injected(self, respx_mock):
        """Token should be sent as a Bearer Authorization header."""
        route = respx_mock.get(f"{BASE}{PATH}").mock(
            return_value=httpx.Response(200, json={})
        )

        async with DataAPIClient(base_url=BASE, path=PATH, token="test_token") as client:
            await client.fetch_entity({})

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer test_token"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_token_no_authorization_header(self, respx_mock):
        """Without a token the request goes out unauthenticated."""
        route = respx_mock.get(f"{BASE}{PATH}").mock(
            return_value=httpx.Response(200, json={})
        )

        async with DataAPIClient(base_url=BASE, path=PATH) as client:
            await client.fetch_entity({})

        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    async def test_path_template_filled_from_parameters(self, respx_mock):
        """Path placeholders come from the entity parameters."""
        respx_mock.get(f"{BASE}/v1/quotes/AMZN").mock(
            return_value=httpx.Response(200, json={"symbol": "AMZN"})
        )

        async with DataAPIClient(base_url=BASE, path="/v1/quotes/{ticker_symbol}") as client:
            result = await client.fetch_entity({"ticker_symbol": "AMZN", "exchange_id": "3"})

        assert result == {"symbol": "AMZN"}

    def test_resolve_path_missing_parameter(self):
        """A placeholder without a matching parameter is malformed input."""
        client = DataAPIClient(base_url=BASE, path="/v1/{exchange_id}/quotes/{ticker_symbol}")

        with pytest.raises(MalformedInput, match="exchange_id, ticker_symbol"):
            client.resolve_path({})

    def test_resolve_path_without_placeholders(self):
        client = DataAPIClient(base_url=BASE, path=PATH)
        assert client.resolve_path({"anything": "ignored"}) == PATH
