"""Base async HTTP client with connection pooling.

All API clients inherit from this base to ensure consistent behavior:
- Async/await for non-blocking I/O
- Connection pooling for performance
- One attempt per call (retries belong to the orchestrator)
- Failures mapped to UpstreamError / NetworkError

Usage:
    class MyAPIClient(BaseAsyncClient):
        def __init__(self, api_key: str):
            super().__init__(
                base_url="https://api.example.com",
                headers={"Authorization": f"Bearer {api_key}"},
            )

        async def get_data(self, symbol: str) -> dict:
            return await self._request("GET", f"/data/{symbol}")
"""

import logging
from typing import Any

import httpx

from orgpipe.errors import NetworkError, UpstreamError

logger = logging.getLogger(__name__)

# Upstream bodies are truncated to this many characters in errors
_MAX_ERROR_BODY = 500


class BaseAsyncClient:
    """Base async HTTP client with connection pooling.

    Args:
        base_url: Base URL for all API requests
        headers: Default headers for all requests
        timeout: Request timeout in seconds (default: 30)
        max_connections: Connection pool size (default: 10)
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        max_connections: int = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self.max_connections = max_connections
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BaseAsyncClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            limits=httpx.Limits(
                max_keepalive_connections=self.max_connections,
                max_connections=self.max_connections,
            ),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a single HTTP request and parse the JSON body.

        Args:
            method: HTTP method
            endpoint: API endpoint path (relative to base_url)
            params: Query parameters

        Returns:
            Parsed JSON response (any JSON value)

        Raises:
            UpstreamError: On a non-2xx status or a body that is not JSON
            NetworkError: On timeouts and transport failures
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with context manager.")

        # Ensure endpoint starts with /
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"

        logger.debug("%s %s%s params=%s", method, self.base_url, endpoint, params)

        try:
            response = await self._client.request(
                method=method,
                url=endpoint,
                params=params,
            )
        except httpx.TimeoutException as e:
            logger.error("Request timeout for %s: %s", endpoint, e)
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("Network error for %s: %s", endpoint, e)
            raise NetworkError(f"Network error: {e}") from e

        logger.debug("Response: %d for %s", response.status_code, endpoint)

        if not 200 <= response.status_code < 300:
            error_body = response.text[:_MAX_ERROR_BODY]
            logger.error("API error: %d %s - %s", response.status_code, endpoint, error_body)
            raise UpstreamError(
                f"API request failed: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error("Failed to parse JSON response: %s", e)
            raise UpstreamError(
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
                response_body=response.text[:_MAX_ERROR_BODY],
            ) from e

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Convenience method for GET requests."""
        return await self._request("GET", endpoint, params=params)
