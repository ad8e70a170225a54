"""
Observability Package
=====================

Health checks, telemetry and the Prometheus scrape endpoint for
weatherstack services.

Modules:
--------
- health: tagged health checks behind /health and /alive
- telemetry: OpenTelemetry traces, metrics and logs
- metrics: Prometheus scrape endpoint

Example Usage:
--------------
from weatherstack.observability import HealthCheckRegistry, register_health_endpoints
registry = HealthCheckRegistry()
registry.add_check("db", database_ping, tags=["ready"])
register_health_endpoints(app, registry)

from weatherstack.observability import TelemetryOptions, TelemetryPipeline
pipeline = TelemetryPipeline(TelemetryOptions(service_name="weatherapi"))
pipeline.start()
pipeline.instrument_app(app)
"""

from .health import (
    LIVE_TAG,
    HealthCheckProvider,
    HealthCheckRegistration,
    HealthCheckRegistry,
    HealthCheckResult,
    HealthStatus,
    register_health_endpoints,
)
from .metrics import METRICS_PATH, register_metrics_endpoint
from .telemetry import (
    DEFAULT_SUBSYSTEMS,
    HTTP_CLIENT,
    HTTP_SERVER,
    RUNTIME,
    OtlpExporters,
    TelemetryOptions,
    TelemetryPipeline,
    create_otlp_exporters,
)

__all__ = [
    # Health checks
    'LIVE_TAG',
    'HealthCheckProvider',
    'HealthCheckRegistration',
    'HealthCheckRegistry',
    'HealthCheckResult',
    'HealthStatus',
    'register_health_endpoints',

    # Metrics
    'METRICS_PATH',
    'register_metrics_endpoint',

    # Telemetry
    'DEFAULT_SUBSYSTEMS',
    'HTTP_CLIENT',
    'HTTP_SERVER',
    'RUNTIME',
    'OtlpExporters',
    'TelemetryOptions',
    'TelemetryPipeline',
    'create_otlp_exporters',
]
