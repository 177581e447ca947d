"""EntityFetcher — one data API call per extracted entity.

Each call opens its own client as an async context manager, makes exactly
one request and returns the payload with the entity's id, parameters and a
UTC fetch timestamp. Failures are not retried here.
"""

import json
import logging
from typing import Any

from orgpipe.clients import DataAPIClient
from orgpipe.config import Settings
from orgpipe.events import EventSink
from orgpipe.models import ExtractedEntity, FetchResult, utc_timestamp
from orgpipe.pipeline.stage import Stage

logger = logging.getLogger(__name__)


class EntityFetcher(Stage):
    """Fetches the data document for one entity.

    Usage:
        fetcher = EntityFetcher(
            base_url="https://api.cloudflare.com",
            path="/client/v4/radar/attacks/layer3/top/locations/target",
            token="...",
        )
        result = await fetcher.fetch(ExtractedEntity(id="155", parameters={...}))

    Args:
        base_url: Base URL of the data API
        path: Request path template (filled from entity parameters)
        query: Query parameters sent with every request
        token: Bearer token for the data API
        timeout: Request timeout in seconds
        events: Event sink for instrumentation
    """

    name = "EntityFetchHandler"
    failure_summary = "Failed to fetch entity data"

    def __init__(
        self,
        base_url: str,
        path: str,
        query: dict[str, str] | None = None,
        token: str | None = None,
        timeout: float = 30.0,
        events: EventSink | None = None,
    ) -> None:
        super().__init__(events)
        self.base_url = base_url
        self.path = path
        self.query = dict(query or {})
        self.token = token
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink | None = None) -> "EntityFetcher":
        if not settings.data_api_token:
            logger.warning("DATA_API_TOKEN is not set, data API requests are unauthenticated")
        return cls(
            base_url=settings.data_api_base_url,
            path=settings.data_api_path,
            query=settings.data_api_query,
            token=settings.data_api_token,
            timeout=settings.data_api_timeout,
            events=events,
        )

    def _client(self) -> DataAPIClient:
        return DataAPIClient(
            base_url=self.base_url,
            path=self.path,
            query=self.query,
            token=self.token,
            timeout=self.timeout,
        )

    async def fetch(self, entity: ExtractedEntity) -> FetchResult:
        """Call the data API for one entity.

        Raises:
            MalformedInput: If the entity lacks a parameter the path needs
            UpstreamError: On a non-2xx response or a non-JSON body
            NetworkError: On transport failure or timeout
        """
        async with self._client() as client:
            payload = await client.fetch_entity(entity.parameters)

        result = FetchResult(
            entity_id=entity.id,
            parameters=dict(entity.parameters),
            payload=payload,
            fetched_at=utc_timestamp(),
        )
        self.events.emit(
            "entity.fetched",
            entity_id=result.entity_id,
            payload_bytes=len(json.dumps(payload)),
            timestamp=result.fetched_at,
        )
        return result

    async def invoke(self, event: Any) -> dict[str, Any]:
        entity = ExtractedEntity.from_dict(event)
        result = await self.fetch(entity)
        return result.to_dict()
