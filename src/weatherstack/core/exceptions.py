"""
Custom Exceptions for weatherstack
==================================

Structured error handling so the CLI and the HTTP layer can react to the
type of failure rather than parsing strings.

Error Codes:
- 1xxx: Configuration errors (settings, topology declaration)
- 2xxx: Startup errors (containers, processes, service defaults)
- 3xxx: Outbound HTTP errors (resilience, discovery)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes"""

    # 1xxx: Configuration
    CONFIGURATION_ERROR = 1001
    TOPOLOGY_DEFINITION_ERROR = 1002

    # 2xxx: Startup
    TOPOLOGY_STARTUP_FAILED = 2001
    SERVICE_DEFAULTS_ERROR = 2002

    # 3xxx: Outbound HTTP
    CIRCUIT_OPEN = 3001


class WeatherStackError(Exception):
    """Base exception for all weatherstack errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }


class ConfigurationError(WeatherStackError):
    """Raised when settings cannot be loaded or validated"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class TopologyDefinitionError(WeatherStackError):
    """Raised when a topology declaration is inconsistent"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.TOPOLOGY_DEFINITION_ERROR, details)


class TopologyStartupError(WeatherStackError):
    """Raised when a container or process of the topology fails to start"""

    def __init__(self, resource_name: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.TOPOLOGY_STARTUP_FAILED, details)
        self.resource_name = resource_name


class ServiceDefaultsError(WeatherStackError):
    """Raised when service defaults are installed in an unsupported way"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.SERVICE_DEFAULTS_ERROR, details)


class CircuitOpenError(WeatherStackError):
    """Raised when an outbound call is rejected by an open circuit breaker"""

    def __init__(self, authority: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CIRCUIT_OPEN, details)
        self.authority = authority
