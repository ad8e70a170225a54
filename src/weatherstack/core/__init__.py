"""Core primitives shared by every weatherstack component."""

from .exceptions import (
    CircuitOpenError,
    ConfigurationError,
    ErrorCode,
    ServiceDefaultsError,
    TopologyDefinitionError,
    TopologyStartupError,
    WeatherStackError,
)
from .structured_logger import StructuredLogger, configure_logging, get_logger

__all__ = [
    'CircuitOpenError',
    'ConfigurationError',
    'ErrorCode',
    'ServiceDefaultsError',
    'StructuredLogger',
    'TopologyDefinitionError',
    'TopologyStartupError',
    'WeatherStackError',
    'configure_logging',
    'get_logger',
]
