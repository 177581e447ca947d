"""Structured event emission for pipeline stages.

Stages report what they do through an EventSink instead of printing.
The default sink writes one log line per event; MemoryEventSink keeps
events in a list for tests and run summaries.

Usage:
    sink = LoggingEventSink()
    sink.emit("fetch.completed", entity_id="155", payload_bytes=2048)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything that accepts named events with keyword fields."""

    def emit(self, name: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """Writes each event as ``<name> {json fields}`` to a logger.

    Events whose name ends in ``.failed`` are logged at ERROR, the rest at
    the sink's level.

    Args:
        log: Logger to write to (default: orgpipe.events)
        level: Level for non-failure events (default: INFO)
    """

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self.log = log or logger
        self.level = level

    def emit(self, name: str, **fields: Any) -> None:
        level = logging.ERROR if name.endswith(".failed") else self.level
        self.log.log(
            level,
            "%s %s",
            name,
            json.dumps(fields, default=str, sort_keys=True),
            extra={"event": name, "fields": fields},
        )


@dataclass
class MemoryEventSink:
    """Keeps every emitted event as ``(name, fields)``."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def emit(self, name: str, **fields: Any) -> None:
        self.events.append((name, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class FanOutEventSink:
    """Forwards every event to several sinks."""

    def __init__(self, *sinks: EventSink) -> None:
        self.sinks = sinks

    def emit(self, name: str, **fields: Any) -> None:
        for sink in self.sinks:
            sink.emit(name, **fields)
