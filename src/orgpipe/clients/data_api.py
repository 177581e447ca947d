"""External data API client.

Fetches one JSON document per entity. The request path is a template
filled from the entity's connector parameters, so a provider whose
entities carry ``ticker_symbol`` can target ``/v1/quotes/{ticker_symbol}``.
The default configuration points at Cloudflare Radar, whose path takes no
parameters.

Usage:
    from orgpipe.clients.data_api import DataAPIClient

    async with DataAPIClient(
        base_url="https://api.cloudflare.com",
        path="/client/v4/radar/attacks/layer3/top/locations/target",
        token="...",
    ) as client:
        payload = await client.fetch_entity({"ticker_symbol": "AMZN"})
"""

from string import Formatter
from typing import Any

from orgpipe.clients.base import BaseAsyncClient
from orgpipe.errors import MalformedInput


class DataAPIClient(BaseAsyncClient):
    """Async client for the per-entity data API.

    Args:
        base_url: Base URL of the data API
        path: Request path template; ``{name}`` fields come from entity parameters
        query: Query parameters sent with every request
        token: Bearer token (omitted from headers when None)
        timeout: Request timeout in seconds (default: 30)
    """

    def __init__(
        self,
        base_url: str,
        path: str,
        query: dict[str, str] | None = None,
        token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(base_url=base_url, headers=headers, timeout=timeout)
        self.path = path
        self.query = dict(query or {})

    def resolve_path(self, parameters: dict[str, Any]) -> str:
        """Fill the path template from entity parameters.

        Raises:
            MalformedInput: If the template names a parameter the entity lacks
        """
        fields = {name for _, name, _, _ in Formatter().parse(self.path) if name}
        missing = sorted(fields - parameters.keys())
        if missing:
            raise MalformedInput(
                f"entity parameters missing {', '.join(missing)} required by path {self.path}"
            )
        return self.path.format_map(parameters)

    async def fetch_entity(self, parameters: dict[str, Any]) -> Any:
        """Fetch the data document selected by an entity's parameters.

        Returns:
            Parsed JSON body (any JSON value)
        """
        return await self.get(self.resolve_path(parameters), params=self.query or None)
