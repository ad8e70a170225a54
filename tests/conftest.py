"""
Pytest configuration for all weatherstack tests: validates the environment,
isolates configuration from the host and provides shared fixtures.
"""

import io
import os
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

_CONFIG_PREFIXES = ("WEATHERSTACK_", "OTEL_", "services__")
_CONFIG_KEYS = ("GRAFANA_URL", "APP_ENV")

# =============================================================================
# SHARED FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip host configuration so settings come from the test alone."""
    for key in list(os.environ):
        if key.startswith(_CONFIG_PREFIXES) or key in _CONFIG_KEYS:
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmp_dir = tempfile.mkdtemp()
    yield Path(tmp_dir)
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def settings():
    from weatherstack.config.settings import Settings

    return Settings()


@pytest.fixture
def dev_settings():
    from weatherstack.config.settings import Settings

    return Settings(environment="development")


@pytest.fixture
def memory_exporters():
    """Route OTLP push export into memory instead of a collector."""
    from opentelemetry.sdk._logs.export import InMemoryLogExporter
    from opentelemetry.sdk.metrics.export import ConsoleMetricExporter
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    from weatherstack.observability.telemetry import OtlpExporters

    exporters = OtlpExporters(
        spans=InMemorySpanExporter(),
        metrics=ConsoleMetricExporter(out=io.StringIO()),
        logs=InMemoryLogExporter(),
    )
    with patch(
        "weatherstack.observability.telemetry.create_otlp_exporters",
        return_value=exporters,
    ) as factory:
        factory.exporters = exporters
        yield factory


@pytest.fixture
def pipelines():
    """Collects telemetry pipelines and shuts them down after the test."""
    created = []
    yield created
    for pipeline in created:
        pipeline.shutdown()


@pytest.fixture
def mock_docker_client():
    """Mock Docker client; run() returns a container publishing its ports."""
    mock_client = Mock()
    mock_client.containers = Mock()
    mock_client.containers.list = Mock(return_value=[])

    def run(image, name=None, **kwargs):
        container = MagicMock(name=f"container-{name}")
        container.name = name
        container.image = image
        container.ports = {
            key: [{"HostIp": "0.0.0.0", "HostPort": str(host_port or 49153)}]
            for key, host_port in (kwargs.get("ports") or {}).items()
        }
        return container

    mock_client.containers.run = Mock(side_effect=run)
    return mock_client


@pytest.fixture
def mock_process_launcher():
    """Launcher recording uvicorn invocations; processes stay running."""
    launched = []

    def launch(args, env):
        process = Mock()
        process.args = args
        process.env = env
        process.pid = 4242 + len(launched)
        process.returncode = None
        process.poll = Mock(return_value=None)
        process.wait = Mock(return_value=0)
        launched.append(process)
        return process

    launcher = Mock(side_effect=launch)
    launcher.launched = launched
    return launcher


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment before collection."""
    missing = []
    for mod in ("httpx", "fastapi", "pydantic", "opentelemetry.sdk", "pybreaker", "docker"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            "\n"
            "=" * 70 + "\n"
            " TEST ENVIRONMENT ERROR\n"
            "=" * 70 + "\n"
            f"\n"
            f" Missing dependencies: {', '.join(missing)}\n"
            f"\n"
            f" weatherstack must be installed before running tests:\n"
            f"\n"
            f"   pip install -e '.[dev]'\n"
            f"\n"
            "=" * 70,
            file=sys.stderr,
        )
        raise SystemExit(1)
