"""
Tests for JSON structured logging with trace ids.
"""

import json
import logging
from unittest.mock import MagicMock

from opentelemetry.sdk.trace import TracerProvider

from weatherstack.config.settings import LoggingConfig
from weatherstack.core.structured_logger import (
    JsonFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
)


def _emitted(mock_logger):
    (level, payload), kwargs = mock_logger.log.call_args
    return level, json.loads(payload), kwargs


class TestStructuredLogger:
    def test_json_payload(self):
        mock_logger = MagicMock()
        StructuredLogger("Topology", mock_logger).info("Container %s started", "grafana", image="grafana/grafana")

        level, payload, _ = _emitted(mock_logger)
        assert level == logging.INFO
        assert payload["component"] == "Topology"
        assert payload["message"] == "Container grafana started"
        assert payload["image"] == "grafana/grafana"
        assert "trace_id" not in payload

    def test_trace_ids_inside_span(self):
        mock_logger = MagicMock()
        tracer = TracerProvider().get_tracer("test")
        with tracer.start_as_current_span("work") as span:
            StructuredLogger("X", mock_logger).warning("inside")
            expected = format(span.get_span_context().trace_id, "032x")

        _, payload, _ = _emitted(mock_logger)
        assert payload["trace_id"] == expected
        assert len(payload["span_id"]) == 16

    def test_disabled_level_skips_formatting(self):
        mock_logger = MagicMock()
        mock_logger.isEnabledFor.return_value = False
        StructuredLogger("X", mock_logger).debug("quiet")
        mock_logger.log.assert_not_called()

    def test_exc_info_is_forwarded(self):
        mock_logger = MagicMock()
        StructuredLogger("X", mock_logger).error("boom", exc_info=True)
        _, _, kwargs = _emitted(mock_logger)
        assert kwargs["exc_info"] is True

    def test_get_logger(self):
        logger = get_logger("ServiceDefaults")
        assert logger.component == "ServiceDefaults"
        assert logger.logger is logging.getLogger("ServiceDefaults")


class TestJsonFormatter:
    def test_plain_record_is_wrapped(self):
        record = logging.LogRecord("weatherstack.http", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["message"] == "hello world"
        assert payload["component"] == "weatherstack.http"
        assert payload["level"] == "INFO"

    def test_structured_record_passes_through(self):
        message = json.dumps({"message": "already json"})
        record = logging.LogRecord("x", logging.INFO, __file__, 1, message, (), None)
        assert JsonFormatter().format(record) == message


class TestConfigureLogging:
    def test_handler_added_once(self):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            configure_logging(LoggingConfig(level="debug"))
            configure_logging(LoggingConfig(level="warning", format="text"))
            added = [h for h in root.handlers if h not in before]
            assert len(added) <= 1
            assert root.level == logging.WARNING
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level)
