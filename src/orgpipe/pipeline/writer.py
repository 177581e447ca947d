"""ResultWriter — persists a whole fan-out batch.

For every fetch result two objects are written:

    {entity_id}/{timestamp}/data.json   the fetch result, verbatim
    {entity_id}/{timestamp}/data.csv    the payload flattened to one row

The batch is validated before anything is written: one failed entry fails
the batch with nothing persisted. A failed write stops the batch; objects
already written are left in place.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from orgpipe.config import Settings
from orgpipe.errors import MalformedInput, PersistenceFailure
from orgpipe.events import EventSink
from orgpipe.flatten import to_csv, to_json
from orgpipe.models import FetchResult, StageResponse, utc_timestamp
from orgpipe.pipeline.stage import Stage
from orgpipe.storage import LocalObjectStore, ObjectStore, S3ObjectStore, result_keys
from orgpipe.storage.base import CSV_CONTENT_TYPE, JSON_CONTENT_TYPE

# Field the state machine wraps the Map output in
BATCH_FIELD = "batchResults"


@dataclass
class WriteSummary:
    """What one writer invocation persisted."""

    location: str
    processed_count: int
    start_time: str
    end_time: str
    processing_time_ms: float
    keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": "Data processing completed",
            "location": self.location,
            "processedCount": self.processed_count,
            "processingTimeMs": self.processing_time_ms,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "keys": list(self.keys),
        }


def build_store(settings: Settings) -> ObjectStore:
    """Create the object store named by ``settings.store_backend``."""
    if settings.store_backend == "s3":
        return S3ObjectStore(bucket_name=settings.bucket_name, region=settings.aws_region)
    return LocalObjectStore(base_path=settings.output_dir)


class ResultWriter(Stage):
    """Writes JSON and CSV objects for every result in a batch.

    Args:
        store: Destination object store
        csv_quoting: 'none' (flat join) or 'csv' (RFC 4180 quoting)
        events: Event sink for instrumentation
    """

    name = "PrepareDataToFiles"
    failure_summary = "Failed to process data"

    def __init__(
        self,
        store: ObjectStore,
        csv_quoting: str = "none",
        events: EventSink | None = None,
    ) -> None:
        super().__init__(events)
        self.store = store
        self.csv_quoting = csv_quoting

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink | None = None) -> "ResultWriter":
        return cls(store=build_store(settings), csv_quoting=settings.csv_quoting, events=events)

    @staticmethod
    def validate(batch: list[StageResponse]) -> list[FetchResult]:
        """Check every entry before anything is written.

        Raises:
            PersistenceFailure: If any entry carries a non-200 status
            MalformedInput: If a successful entry is not a fetch result
        """
        results: list[FetchResult] = []
        for index, entry in enumerate(batch):
            if not entry.ok:
                message = entry.body.get("message") if isinstance(entry.body, dict) else entry.body
                raise PersistenceFailure(
                    f"Invalid status code {entry.status_code} for record {index + 1}: {message}"
                )
            results.append(FetchResult.from_dict(entry.body))
        return results

    async def write(self, batch: list[StageResponse]) -> WriteSummary:
        """Persist a validated batch.

        Raises:
            PersistenceFailure: If validation or any write fails
        """
        started = time.perf_counter()
        start_time = utc_timestamp()
        results = self.validate(batch)

        self.events.emit(
            "batch.started",
            total_records=len(results),
            location=self.store.location,
        )

        keys: list[str] = []
        for index, result in enumerate(results):
            json_key, csv_key = result_keys(result.entity_id, result.fetched_at)

            await self.store.put(json_key, to_json(result), JSON_CONTENT_TYPE)
            keys.append(json_key)

            csv_body = to_csv(result.payload, quoting=self.csv_quoting)
            await self.store.put(csv_key, csv_body, CSV_CONTENT_TYPE)
            keys.append(csv_key)

            self.events.emit(
                "record.persisted",
                record=index + 1,
                total=len(results),
                entity_id=result.entity_id,
                json_key=json_key,
                csv_key=csv_key,
                csv_bytes=len(csv_body),
            )

        summary = WriteSummary(
            location=self.store.location,
            processed_count=len(results),
            start_time=start_time,
            end_time=utc_timestamp(),
            processing_time_ms=round((time.perf_counter() - started) * 1000, 1),
            keys=keys,
        )
        self.events.emit(
            "batch.completed",
            processed_count=summary.processed_count,
            processing_time_ms=summary.processing_time_ms,
        )
        return summary

    async def invoke(self, event: Any) -> dict[str, Any]:
        if not isinstance(event, dict) or not isinstance(event.get(BATCH_FIELD), list):
            raise MalformedInput(f"Writer input must carry a {BATCH_FIELD} list")
        batch = [StageResponse.from_dict(entry) for entry in event[BATCH_FIELD]]
        summary = await self.write(batch)
        return summary.to_dict()
