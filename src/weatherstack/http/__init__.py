"""Outbound HTTP defaults: service discovery, retries and circuit breaking."""

from .client import create_http_client
from .discovery import ServiceEndpointResolver
from .resilience import (
    CircuitBreakerRegistry,
    HttpClientDefaults,
    ResilientTransport,
    is_transient_status,
)

__all__ = [
    'CircuitBreakerRegistry',
    'HttpClientDefaults',
    'ResilientTransport',
    'ServiceEndpointResolver',
    'create_http_client',
    'is_transient_status',
]
