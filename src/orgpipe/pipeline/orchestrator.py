"""Orchestrator — runs the state machine shape in-process.

ProviderEndpoint → DecryptionHandler → ExtractOrgs → ProcessOrgs (Map)
→ PrepareDataToFiles, each stage envelope passed verbatim to the next,
exactly as Step Functions does in the deployed pipeline.

Behaviour taken from the state machine definition:
- Each stage call is retried per RetryPolicy, but only for retryable
  error kinds (MalformedInput and DecryptionFailed fail at once)
- ProcessOrgs runs one EntityFetcher call per entity, at most
  ``max_concurrency`` in flight, results kept in input order
- If any branch still fails after its retries, the run fails and the
  writer is never called

Usage:
    orchestrator = Orchestrator.from_settings(load_settings())
    result = await orchestrator.run()
    print(result.status, result.output)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from orgpipe.config import Settings
from orgpipe.errors import error_from_payload
from orgpipe.events import EventSink, LoggingEventSink
from orgpipe.models import StageResponse, utc_timestamp
from orgpipe.pipeline.decryptor import Decryptor
from orgpipe.pipeline.definition import MAP_STATE, RetryPolicy
from orgpipe.pipeline.extractor import ITEMS_FIELD, EntityExtractor
from orgpipe.pipeline.fetcher import EntityFetcher
from orgpipe.pipeline.provider import ProviderSource
from orgpipe.pipeline.stage import Stage
from orgpipe.pipeline.writer import BATCH_FIELD, ResultWriter

logger = logging.getLogger(__name__)

SUCCEEDED = "SUCCEEDED"
FAILED = "FAILED"


@dataclass
class RunResult:
    """Outcome and history of one pipeline execution."""

    execution_id: str
    status: str
    started_at: str
    stopped_at: str
    output: Any = None
    failed_state: str | None = None
    error: dict[str, Any] | None = None
    history: list[dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "executionId": self.execution_id,
            "status": self.status,
            "startedAt": self.started_at,
            "stoppedAt": self.stopped_at,
            "output": self.output,
            "failedState": self.failed_state,
            "error": self.error,
            "history": self.history,
        }


class StateFailed(Exception):
    """A state ended the run with ``error`` as its payload."""

    def __init__(self, state: str, error: dict[str, Any]) -> None:
        super().__init__(state)
        self.state = state
        self.error = error


class Orchestrator:
    """Local executor for the five-stage pipeline.

    Args:
        source: ProviderEndpoint stage
        decryptor: DecryptionHandler stage
        extractor: ExtractOrgs stage
        fetcher: EntityFetchHandler stage (one call per Map item)
        writer: PrepareDataToFiles stage
        retry: Retry policy per stage call (default: 3 / 2s / x2)
        max_concurrency: Max concurrent fetches (default: 10)
        events: Event sink for execution-level events
        sleep: Coroutine used to wait between retries
    """

    def __init__(
        self,
        source: ProviderSource,
        decryptor: Decryptor,
        extractor: EntityExtractor,
        fetcher: EntityFetcher,
        writer: ResultWriter,
        retry: RetryPolicy | None = None,
        max_concurrency: int = 10,
        events: EventSink | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.source = source
        self.decryptor = decryptor
        self.extractor = extractor
        self.fetcher = fetcher
        self.writer = writer
        self.retry = retry or RetryPolicy()
        self.max_concurrency = max_concurrency
        self.events = events or LoggingEventSink()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink | None = None) -> "Orchestrator":
        """Build every stage from one Settings instance, sharing one event sink."""
        events = events or LoggingEventSink()
        return cls(
            source=ProviderSource.from_settings(settings, events=events),
            decryptor=Decryptor.from_settings(settings, events=events),
            extractor=EntityExtractor(events=events),
            fetcher=EntityFetcher.from_settings(settings, events=events),
            writer=ResultWriter.from_settings(settings, events=events),
            retry=RetryPolicy.from_settings(settings),
            max_concurrency=settings.fanout_concurrency,
            events=events,
        )

    async def run(self, execution_input: Any = None) -> RunResult:
        """Run the pipeline once.

        Args:
            execution_input: Input handed to the first stage (a provider
                record, or None to use the configured provider)

        Returns:
            RunResult with the writer's body as output on success, or the
            failing state's error payload on failure
        """
        execution_id = str(uuid.uuid4())
        started_at = utc_timestamp()
        history: list[dict[str, Any]] = []
        self._record(history, "ExecutionStarted", input=execution_input)
        self.events.emit("execution.started", execution_id=execution_id)

        try:
            provider = await self._invoke(self.source, execution_input, history)
            decrypted = await self._invoke(self.decryptor, provider.to_dict(), history)
            extracted = await self._invoke(self.extractor, decrypted.to_dict(), history)
            batch = await self.fan_out(extracted.body.get(ITEMS_FIELD, []), history)
            written = await self._invoke(
                self.writer,
                {BATCH_FIELD: [entry.to_dict() for entry in batch]},
                history,
            )
        except StateFailed as e:
            self._record(history, "ExecutionFailed", state=e.state, error=e.error)
            self.events.emit(
                "execution.failed",
                execution_id=execution_id,
                state=e.state,
                error_type=e.error.get("errorType"),
                message=e.error.get("message"),
            )
            return RunResult(
                execution_id=execution_id,
                status=FAILED,
                started_at=started_at,
                stopped_at=utc_timestamp(),
                failed_state=e.state,
                error=e.error,
                history=history,
            )

        self._record(history, "ExecutionSucceeded")
        self.events.emit(
            "execution.succeeded",
            execution_id=execution_id,
            processed_count=written.body.get("processedCount"),
        )
        return RunResult(
            execution_id=execution_id,
            status=SUCCEEDED,
            started_at=started_at,
            stopped_at=utc_timestamp(),
            output=written.body,
            history=history,
        )

    async def fan_out(
        self,
        items: list[Any],
        history: list[dict[str, Any]] | None = None,
    ) -> list[StageResponse]:
        """Run the fetcher once per item with bounded concurrency.

        Returns:
            One successful response per item, in input order

        Raises:
            StateFailed: If any branch failed after its retries
        """
        history = history if history is not None else []
        semaphore = asyncio.Semaphore(self.max_concurrency)
        self._record(history, "MapStateEntered", state=MAP_STATE, items=len(items))

        async def _branch(index: int, item: Any) -> StageResponse:
            async with semaphore:
                return await self._call_with_retry(self.fetcher, item, history, index=index)

        batch = await asyncio.gather(*(_branch(i, item) for i, item in enumerate(items)))

        failures = [(i, entry) for i, entry in enumerate(batch) if not entry.ok]
        if failures:
            index, entry = failures[0]
            error = dict(entry.body) if isinstance(entry.body, dict) else {"message": entry.body}
            error["failedItems"] = [i for i, _ in failures]
            self._record(history, "MapStateFailed", state=MAP_STATE, failed=len(failures))
            logger.error(
                "%s: %d of %d branches failed (first: item %d)",
                MAP_STATE, len(failures), len(batch), index,
            )
            raise StateFailed(MAP_STATE, error)

        self._record(history, "MapStateExited", state=MAP_STATE, items=len(batch))
        return list(batch)

    async def _invoke(
        self,
        stage: Stage,
        event: Any,
        history: list[dict[str, Any]],
    ) -> StageResponse:
        response = await self._call_with_retry(stage, event, history)
        if not response.ok:
            raise StateFailed(stage.name, response.body)
        return response

    async def _call_with_retry(
        self,
        stage: Stage,
        event: Any,
        history: list[dict[str, Any]],
        index: int | None = None,
    ) -> StageResponse:
        """Call a stage, retrying retryable failures with exponential backoff."""
        self._record(history, "TaskStateEntered", state=stage.name, index=index)

        for attempt in range(self.retry.max_attempts + 1):
            response = await stage.handle(event)
            if response.ok:
                self._record(history, "TaskSucceeded", state=stage.name, index=index)
                return response

            error = error_from_payload(response.body if isinstance(response.body, dict) else {})
            self._record(
                history,
                "TaskFailed",
                state=stage.name,
                index=index,
                attempt=attempt + 1,
                error_type=error.kind,
                message=error.message,
            )

            if not error.retryable or attempt >= self.retry.max_attempts:
                return response

            backoff = self.retry.delay(attempt + 1)
            logger.warning(
                "%s failed with %s, retrying in %.1fs (attempt %d/%d)",
                stage.name, error.kind, backoff, attempt + 1, self.retry.max_attempts + 1,
            )
            await self._sleep(backoff)

        return response

    @staticmethod
    def _record(history: list[dict[str, Any]], event_type: str, **details: Any) -> None:
        entry = {"type": event_type, "timestamp": utc_timestamp()}
        entry.update({k: v for k, v in details.items() if v is not None})
        history.append(entry)
