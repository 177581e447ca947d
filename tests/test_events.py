"""Tests for event sinks."""

import logging
from unittest.mock import MagicMock

from orgpipe.events import FanOutEventSink, LoggingEventSink, MemoryEventSink


class TestLoggingEventSink:
    def test_logs_name_and_sorted_json_fields(self, caplog):
        sink = LoggingEventSink()

        with caplog.at_level(logging.INFO, logger="orgpipe.events"):
            sink.emit("entity.fetched", entity_id="155", payload_bytes=10)

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == 'entity.fetched {"entity_id": "155", "payload_bytes": 10}'
        assert record.event == "entity.fetched"
        assert record.fields == {"entity_id": "155", "payload_bytes": 10}

    def test_failed_events_log_at_error(self, caplog):
        sink = LoggingEventSink(level=logging.DEBUG)

        with caplog.at_level(logging.DEBUG, logger="orgpipe.events"):
            sink.emit("stage.failed", stage="ExtractOrgs")

        assert caplog.records[-1].levelno == logging.ERROR

    def test_custom_logger(self):
        log = MagicMock()
        LoggingEventSink(log=log).emit("batch.started", total_records=2)

        log.log.assert_called_once()
        assert log.log.call_args.args[0] == logging.INFO

    def test_unserializable_fields_fall_back_to_str(self, caplog):
        with caplog.at_level(logging.INFO, logger="orgpipe.events"):
            LoggingEventSink().emit("x.happened", value=object)

        assert "<class 'object'>" in caplog.records[-1].getMessage()


class TestMemoryEventSink:
    def test_records_events_in_order(self):
        sink = MemoryEventSink()
        sink.emit("a", n=1)
        sink.emit("b")

        assert sink.events == [("a", {"n": 1}), ("b", {})]
        assert sink.names() == ["a", "b"]


def test_fan_out_forwards_to_every_sink():
    first, second = MemoryEventSink(), MemoryEventSink()
    FanOutEventSink(first, second).emit("provider.loaded", provider_id="p")

    assert first.events == second.events == [("provider.loaded", {"provider_id": "p"})]
