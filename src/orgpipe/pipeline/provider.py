"""ProviderSource — produces the provider record that starts a run.

Sources, in order of precedence:
1. A provider record passed as the execution input
2. The provider JSON file named in configuration
3. The built-in sample record (two orgs, 155 and 148)
"""

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any

from orgpipe.config import Settings
from orgpipe.errors import MalformedInput, ProviderUnavailable
from orgpipe.events import EventSink
from orgpipe.models import ProviderRecord
from orgpipe.pipeline.stage import Stage

logger = logging.getLogger(__name__)

SAMPLE_PROVIDER: dict[str, Any] = {
    "providerId": "provider-1",
    "resourceType": "activity-center",
    "providerName": "Provider 1",
    "externalId": "schedule-activity-center-import-test",
    "secrets": "****************************",
    "connectorParams": {
        "snowflake_schema": "XPRESSFEED",
        "snowflake_warehouse": "XF_READER_DILIGENTCORP_WH",
        "snowflake_account": "idb71831.us-east-1",
        "snowflake_database": "MI_XPRESSCLOUD",
        "key_development_list": "28,74,75,101,52,80,81,82,94,26,27",
    },
    "orgs": [
        {
            "orgId": "155",
            "connectorParams": {
                "exchange_id": "3",
                "ticker_symbol": "AMZN",
                "ticker_symbols": "MSFT-458, NFLX-458, GOOGL-458",
                "key_development_list": "28,74,75,101,52,80,81,82,94,26,27",
            },
        },
        {
            "orgId": "148",
            "connectorParams": {
                "exchange_id": "3",
                "ticker_symbol": "MSFT",
                "ticker_symbols": "AMZN-458, NFLX-458, GOOGL-458",
                "key_development_list": "28,74,75,101,52,80,81,82,94,26,27",
            },
        },
    ],
}


def _looks_like_provider(event: Any) -> bool:
    return isinstance(event, dict) and ("providerId" in event or "orgs" in event)


class ProviderSource(Stage):
    """Loads the provider record.

    Args:
        config_path: Provider JSON file (None = fall back to the sample record)
        events: Event sink for instrumentation
    """

    name = "ProviderEndpoint"
    failure_summary = "Failed to fetch provider data"

    def __init__(
        self,
        config_path: str | Path | None = None,
        events: EventSink | None = None,
    ) -> None:
        super().__init__(events)
        self.config_path = Path(config_path) if config_path else None

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink | None = None) -> "ProviderSource":
        return cls(config_path=settings.provider_config_path, events=events)

    async def _read_config(self, path: Path) -> Any:
        def _read() -> str:
            return path.read_text(encoding="utf-8")

        try:
            text = await asyncio.to_thread(_read)
        except OSError as e:
            raise ProviderUnavailable(f"Cannot read provider config {path}: {e}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedInput(f"Provider config {path} is not valid JSON: {e}") from e

    async def load(self, execution_input: Any = None) -> ProviderRecord:
        """Return the provider record for this run.

        Raises:
            ProviderUnavailable: If the configured file cannot be read
            MalformedInput: If the record does not have the provider shape
        """
        if _looks_like_provider(execution_input):
            origin = "execution input"
            raw = execution_input
        elif self.config_path is not None:
            origin = str(self.config_path)
            raw = await self._read_config(self.config_path)
        else:
            origin = "sample"
            logger.warning("No provider config set, using the built-in sample provider")
            raw = copy.deepcopy(SAMPLE_PROVIDER)

        record = ProviderRecord.from_dict(raw)
        self.events.emit(
            "provider.loaded",
            origin=origin,
            provider_id=record.provider_id,
            provider_name=record.provider_name,
            entity_count=len(record.entities or []),
            entity_ids=[entity.entity_id for entity in record.entities or []],
        )
        return record

    async def invoke(self, event: Any) -> dict[str, Any]:
        record = await self.load(event)
        return record.to_dict()
