"""Prometheus scrape endpoint for the OpenTelemetry pull reader."""

import logging

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"


def get_metrics_handler(registry: CollectorRegistry = REGISTRY):
    async def metrics(request):
        from fastapi import Response

        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    return metrics


def register_metrics_endpoint(app, path: str = METRICS_PATH, registry: CollectorRegistry = REGISTRY) -> None:
    """Register the scrape endpoint with a FastAPI app."""
    app.add_route(path, get_metrics_handler(registry), methods=["GET"], include_in_schema=False)
    logger.info("Metrics endpoint registered: %s", path)
