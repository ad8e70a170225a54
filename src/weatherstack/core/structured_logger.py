"""
Structured Logging with Trace IDs
=================================

JSON-structured logging that carries the active OpenTelemetry trace and span
ids, so a log line emitted while serving a request can be matched to the
trace exported for that request.
"""

import json
import logging
import sys
from datetime import UTC, datetime

from opentelemetry import trace

from weatherstack.config.settings import LoggingConfig


def _current_trace_ids() -> dict[str, str]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        'trace_id': trace.format_trace_id(span_context.trace_id),
        'span_id': trace.format_span_id(span_context.span_id),
    }


class StructuredLogger:
    """
    Structured logger that outputs JSON logs with trace IDs

    Example output:
    {
        "timestamp": "2025-12-17T10:30:45.123Z",
        "level": "INFO",
        "component": "Topology",
        "message": "Container started",
        "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
        "span_id": "00f067aa0ba902b7",
        "resource": "grafana"
    }
    """

    def __init__(self, component: str, logger: logging.Logger | None = None) -> None:
        """
        Initialize structured logger

        Args:
            component: Component name (e.g., 'Topology', 'ServiceDefaults')
            logger: Optional existing logger (creates new if not provided)
        """
        self.component = component
        self.logger = logger or logging.getLogger(component)

    def _log(self, level: int, message: str, *args, exc_info=None, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return

        log_entry = {
            'timestamp': datetime.now(tz=UTC).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'message': message % args if args else message,
        }
        log_entry.update(_current_trace_ids())
        log_entry.update(kwargs)

        self.logger.log(level, json.dumps(log_entry, default=str), exc_info=exc_info)

    def debug(self, message: str, *args, **kwargs) -> None:
        """Log debug message"""
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        """Log info message"""
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        """Log warning message"""
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        """Log error message"""
        self._log(logging.ERROR, message, *args, **kwargs)


class JsonFormatter(logging.Formatter):
    """Render plain records as JSON; StructuredLogger records pass through."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.startswith('{'):
            return message

        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            'level': record.levelname,
            'component': record.name,
            'message': message,
        }
        log_entry.update(_current_trace_ids())
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def get_logger(component: str) -> StructuredLogger:
    """
    Get a structured logger for a component

    Args:
        component: Component name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(component)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Set the root level and attach a stderr handler once."""
    config = config or LoggingConfig()
    root = logging.getLogger()
    root.setLevel(config.level)

    if any(getattr(h, '_weatherstack', False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    if config.format == 'json':
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    handler._weatherstack = True
    root.addHandler(handler)
