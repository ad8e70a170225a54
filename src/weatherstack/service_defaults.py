"""
Service Defaults
================

Shared observability defaults for every service in the stack: OpenTelemetry
traces/metrics/logs, health checks and resilient outbound HTTP clients.

Usage:
------
builder = ServiceBuilder(settings)
install_defaults(builder)
app = map_default_routes(builder.build(title="My Service"))
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import psutil
from fastapi import FastAPI

from weatherstack.config.settings import Settings, load_settings
from weatherstack.core.exceptions import ServiceDefaultsError
from weatherstack.core.structured_logger import get_logger
from weatherstack.http import HttpClientDefaults, create_http_client
from weatherstack.observability.health import (
    LIVE_TAG,
    HealthCheckRegistry,
    HealthCheckResult,
    register_health_endpoints,
)
from weatherstack.observability.metrics import register_metrics_endpoint
from weatherstack.observability.telemetry import TelemetryOptions, TelemetryPipeline

logger = get_logger("ServiceDefaults")

SELF_CHECK = "self"


class ServiceBuilder:
    """Everything a service configures before its FastAPI app exists."""

    def __init__(self, settings: Settings | None = None, service_name: str | None = None) -> None:
        self.settings = settings or load_settings()
        self.service_name = service_name or self.settings.service_name
        self.health_checks = HealthCheckRegistry()
        self.telemetry: TelemetryPipeline | None = None
        self.http_client_defaults: HttpClientDefaults | None = None
        self.defaults_installed = False

    def create_http_client(self, **kwargs: Any) -> httpx.Client:
        """Outbound client carrying the configured defaults (library defaults if none)."""
        return create_http_client(self.http_client_defaults, **kwargs)

    def build(self, **fastapi_kwargs: Any) -> FastAPI:
        """Create the FastAPI app; the telemetry pipeline is shut down with it."""
        telemetry = self.telemetry
        app_lifespan = fastapi_kwargs.pop("lifespan", None)

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            try:
                if app_lifespan is not None:
                    async with app_lifespan(app):
                        yield
                else:
                    yield
            finally:
                if telemetry is not None:
                    telemetry.shutdown()

        fastapi_kwargs.setdefault("title", self.service_name)
        fastapi_kwargs.setdefault("version", self.settings.version)
        app = FastAPI(lifespan=lifespan, **fastapi_kwargs)

        if telemetry is not None:
            telemetry.instrument_app(app)

        app.state.settings = self.settings
        app.state.service_name = self.service_name
        app.state.health_checks = self.health_checks
        app.state.telemetry = telemetry
        app.state.http_client_factory = self.create_http_client

        logger.info("Application built", service=self.service_name, defaults=self.defaults_installed)
        return app


def _self_check() -> HealthCheckResult:
    process = psutil.Process()
    with process.oneshot():
        details = {
            'pid': process.pid,
            'rss_bytes': process.memory_info().rss,
            'threads': process.num_threads(),
        }
    return HealthCheckResult.healthy("Process is responsive", details=details)


def install_defaults(builder: ServiceBuilder) -> ServiceBuilder:
    """
    Install telemetry, the liveness self-check and HTTP client defaults.

    Installing twice on the same builder is not supported and raises
    ServiceDefaultsError.
    """
    if builder.defaults_installed:
        raise ServiceDefaultsError(
            "Service defaults are already installed on this builder",
            details={'service': builder.service_name},
        )

    options = TelemetryOptions.from_settings(builder.settings, service_name=builder.service_name)
    builder.telemetry = TelemetryPipeline(options)
    builder.telemetry.start()

    builder.health_checks.add_check(SELF_CHECK, _self_check, tags=[LIVE_TAG])
    builder.http_client_defaults = HttpClientDefaults.from_settings(builder.settings)
    builder.defaults_installed = True

    logger.info(
        "Service defaults installed",
        service=builder.service_name,
        environment=builder.settings.environment,
        otlp_push=options.push_enabled,
    )
    return builder


def map_default_routes(app: FastAPI) -> FastAPI:
    """Map GET /metrics, GET /health (all checks) and GET /alive (live-tagged checks)."""
    registry = getattr(app.state, "health_checks", None)
    if registry is None:
        raise ServiceDefaultsError(
            "Application was not built by ServiceBuilder; no health checks to expose"
        )

    register_metrics_endpoint(app)
    register_health_endpoints(app, registry)
    return app


add_service_defaults: Callable[[ServiceBuilder], ServiceBuilder] = install_defaults
map_default_endpoints: Callable[[FastAPI], FastAPI] = map_default_routes
