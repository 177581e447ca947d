"""Stage boundary — JSON event in, tagged StageResponse out.

Subclasses implement ``invoke(event) -> body`` in terms of their typed
operation and raise PipelineError on failure. ``handle`` turns that into a
``{"statusCode", "body"}`` envelope and never raises.
"""

import logging
import time
from typing import Any

from orgpipe.errors import PipelineError
from orgpipe.events import EventSink, LoggingEventSink
from orgpipe.models import StageResponse

logger = logging.getLogger(__name__)


class Stage:
    """Base class for the five pipeline stages.

    Attributes:
        name: State name used in events and the state machine definition
        failure_summary: ``error`` text of this stage's failure envelopes
    """

    name = "Stage"
    failure_summary = "Stage failed"

    def __init__(self, events: EventSink | None = None) -> None:
        self.events = events or LoggingEventSink()

    async def invoke(self, event: Any) -> Any:
        """Run the stage on a raw event and return the success body."""
        raise NotImplementedError

    async def handle(self, event: Any) -> StageResponse:
        """Run the stage and return a tagged success or failure response."""
        started = time.perf_counter()
        self.events.emit("stage.started", stage=self.name)

        try:
            body = await self.invoke(event)
        except PipelineError as e:
            self.events.emit(
                "stage.failed",
                stage=self.name,
                error_type=e.kind,
                message=e.message,
                retryable=e.retryable,
            )
            return StageResponse.failure(self.failure_summary, e)
        except Exception as e:
            logger.exception("Unexpected error in stage %s", self.name)
            error = PipelineError(f"Unexpected error: {e}")
            self.events.emit(
                "stage.failed",
                stage=self.name,
                error_type=error.kind,
                message=error.message,
                retryable=False,
            )
            return StageResponse.failure(self.failure_summary, error)

        self.events.emit(
            "stage.completed",
            stage=self.name,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return StageResponse.success(body)
