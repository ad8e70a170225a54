"""
OpenTelemetry Pipeline
======================

Traces, metrics and logs for an instrumented service, assembled once at
startup from a frozen set of options.

Features:
- Runtime, HTTP server (FastAPI) and HTTP client (httpx) instrumentation
- Prometheus pull reader, always registered (scraped from /metrics)
- OTLP push export of traces, metrics and logs when an endpoint is set
- Always-on sampling in development; the SDK default sampler elsewhere

Usage:
------
pipeline = TelemetryPipeline(TelemetryOptions.from_settings(settings))
pipeline.start()
pipeline.instrument_app(app)
...
pipeline.shutdown()
"""

import logging
from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.system_metrics import SystemMetricsInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON

from weatherstack.config.settings import Settings

logger = logging.getLogger(__name__)

RUNTIME = "runtime"
HTTP_SERVER = "http_server"
HTTP_CLIENT = "http_client"
DEFAULT_SUBSYSTEMS = (RUNTIME, HTTP_SERVER, HTTP_CLIENT)

# process.runtime.* only: host-level system metrics belong to the node exporter
_RUNTIME_METRICS_CONFIG: dict[str, list[str] | None] = {
    "process.runtime.memory": ["rss", "vms"],
    "process.runtime.cpu.time": ["user", "system"],
    "process.runtime.gc_count": None,
    "process.runtime.thread_count": None,
    "process.runtime.cpu.utilization": None,
    "process.runtime.context_switches": ["involuntary", "voluntary"],
}


@dataclass(frozen=True)
class TelemetryOptions:
    service_name: str
    service_version: str = "0.0.0-dev"
    environment: str = "production"
    instrumented_subsystems: tuple[str, ...] = DEFAULT_SUBSYSTEMS
    always_sample: bool = False
    otlp_endpoint: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings, service_name: str | None = None) -> "TelemetryOptions":
        return cls(
            service_name=service_name or settings.service_name,
            service_version=settings.version,
            environment=settings.environment,
            always_sample=settings.is_development,
            otlp_endpoint=settings.otlp_endpoint,
        )

    @property
    def push_enabled(self) -> bool:
        return bool(self.otlp_endpoint and self.otlp_endpoint.strip())


@dataclass(frozen=True)
class OtlpExporters:
    spans: SpanExporter
    metrics: MetricExporter
    logs: Any


def create_otlp_exporters(endpoint: str) -> OtlpExporters:
    """Build the OTLP/gRPC exporters for one collector endpoint."""
    return OtlpExporters(
        spans=OTLPSpanExporter(endpoint=endpoint),
        metrics=OTLPMetricExporter(endpoint=endpoint),
        logs=OTLPLogExporter(endpoint=endpoint),
    )


class TelemetryPipeline:
    """Tracer, meter and logger providers plus the instrumentations feeding them."""

    def __init__(self, options: TelemetryOptions) -> None:
        self.options = options
        self.resource = Resource.create({
            SERVICE_NAME: options.service_name,
            SERVICE_VERSION: options.service_version,
            "deployment.environment": options.environment,
        })

        self.push_exporters: OtlpExporters | None = None
        if options.push_enabled:
            self.push_exporters = create_otlp_exporters(options.otlp_endpoint.strip())

        # None keeps the SDK default (OTEL_TRACES_SAMPLER or parent-based always-on)
        sampler = ALWAYS_ON if options.always_sample else None
        self.tracer_provider = TracerProvider(resource=self.resource, sampler=sampler)

        self.prometheus_reader = PrometheusMetricReader()
        readers = [self.prometheus_reader]

        self.logger_provider = LoggerProvider(resource=self.resource)

        if self.push_exporters is not None:
            self.tracer_provider.add_span_processor(BatchSpanProcessor(self.push_exporters.spans))
            readers.append(PeriodicExportingMetricReader(self.push_exporters.metrics))
            self.logger_provider.add_log_record_processor(
                BatchLogRecordProcessor(self.push_exporters.logs)
            )
            logger.info("OTLP push export configured: %s", options.otlp_endpoint)

        self.metric_readers = tuple(readers)
        self.meter_provider = MeterProvider(resource=self.resource, metric_readers=readers)

        self._log_handler: LoggingHandler | None = None
        self._instrumented: list[str] = []
        self._started = False
        self._shut_down = False

    @property
    def sampler(self):
        return self.tracer_provider.sampler

    def start(self) -> None:
        """Publish the providers globally and turn on process-wide instrumentation."""
        if self._started:
            logger.warning("TelemetryPipeline already started")
            return

        trace.set_tracer_provider(self.tracer_provider)
        metrics.set_meter_provider(self.meter_provider)
        set_logger_provider(self.logger_provider)

        subsystems = self.options.instrumented_subsystems
        if RUNTIME in subsystems:
            SystemMetricsInstrumentor(config=_RUNTIME_METRICS_CONFIG).instrument(
                meter_provider=self.meter_provider
            )
            self._instrumented.append(RUNTIME)
        if HTTP_CLIENT in subsystems:
            HTTPXClientInstrumentor().instrument(
                tracer_provider=self.tracer_provider,
                meter_provider=self.meter_provider,
            )
            self._instrumented.append(HTTP_CLIENT)

        # Records only leave the process through an exporter
        if self.push_exporters is not None:
            self._log_handler = LoggingHandler(level=logging.NOTSET, logger_provider=self.logger_provider)
            logging.getLogger().addHandler(self._log_handler)

        self._started = True
        logger.info(
            "OpenTelemetry initialized for service %s (always_sample=%s, push=%s)",
            self.options.service_name,
            self.options.always_sample,
            self.options.push_enabled,
        )

    def instrument_app(self, app) -> None:
        """Instrument a FastAPI app for server spans and request metrics."""
        if HTTP_SERVER not in self.options.instrumented_subsystems:
            return
        FastAPIInstrumentor.instrument_app(
            app,
            tracer_provider=self.tracer_provider,
            meter_provider=self.meter_provider,
        )
        logger.info("FastAPI instrumented for OpenTelemetry")

    def get_meter(self, name: str, version: str | None = None):
        return self.meter_provider.get_meter(name, version)

    def get_tracer(self, name: str, version: str | None = None):
        return self.tracer_provider.get_tracer(name, version)

    def shutdown(self) -> None:
        """Flush exporters and undo process-wide instrumentation."""
        if self._shut_down:
            return
        self._shut_down = True

        if self._log_handler is not None:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler = None

        if HTTP_CLIENT in self._instrumented:
            HTTPXClientInstrumentor().uninstrument()
        if RUNTIME in self._instrumented:
            SystemMetricsInstrumentor().uninstrument()
        self._instrumented.clear()

        self.tracer_provider.shutdown()
        self.meter_provider.shutdown()
        self.logger_provider.shutdown()
        logger.info("OpenTelemetry pipeline shut down")
