"""
weatherstack CLI: weatherstack up | api | doctor | topology
"""
import json
import socket
from pathlib import Path

import click
import httpx
import yaml

from weatherstack.core.exceptions import WeatherStackError

REPO_ROOT = Path(__file__).resolve().parent.parent.parent


def _check_ports_available(ports: list[tuple[int, str]]) -> list[str]:
    """Check if required ports are free. Returns list of error messages."""
    errors = []
    for port, service in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.settimeout(0.5)
            if s.connect_ex(("127.0.0.1", port)) == 0:
                errors.append(f"  Port {port} ({service}) is already in use.")
    return errors


def _required_ports(topology) -> list[tuple[int, str]]:
    ports = [
        (endpoint.host_port, f"{container.name}-{endpoint.name}")
        for container in topology.containers
        for endpoint in container.endpoints
        if endpoint.host_port is not None
    ]
    ports.extend((project.port, project.name) for project in topology.projects)
    return ports


def _fail(error: WeatherStackError) -> None:
    click.echo(f"Error: {error.message}", err=True)
    if error.details:
        click.echo(json.dumps(error.details, indent=2, default=str), err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="weatherstack")
def cli() -> None:
    """weatherstack: local observability stack for the weather API."""
    pass


@cli.command()
@click.option("--base-dir", type=click.Path(file_okay=False, path_type=Path), default=REPO_ROOT,
              show_default=True, help="Directory holding deploy/ (volume mount sources)")
@click.option("--skip-port-check", is_flag=True, help="Skip port availability check")
def up(base_dir: Path, skip_port_check: bool) -> None:
    """Start Grafana, Prometheus and the weather API; Ctrl+C stops everything."""
    from weatherstack.apphost import build_topology
    from weatherstack.core.structured_logger import configure_logging
    from weatherstack.topology import TopologyRunner

    configure_logging()
    try:
        topology = build_topology(base_dir)
        if not skip_port_check:
            errors = _check_ports_available(_required_ports(topology))
            if errors:
                click.echo("Port conflict detected:\n" + "\n".join(errors), err=True)
                click.echo("\nUse --skip-port-check to bypass.", err=True)
                raise SystemExit(1)

        click.echo(f"Starting weatherstack from {topology.base_dir}...")
        exit_code = TopologyRunner(topology).run()
    except WeatherStackError as e:
        _fail(e)
    raise SystemExit(exit_code)


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="YAML settings file")
@click.option("--host", default=None, help="Bind host (default from settings)")
@click.option("--port", type=int, default=None, help="Bind port (default from settings)")
def api(config_path: Path | None, host: str | None, port: int | None) -> None:
    """Run the instrumented weather API with uvicorn."""
    import uvicorn

    from weatherstack.config.settings import load_settings
    from weatherstack.weather_api.app import create_app

    try:
        settings = load_settings(config_path)
        app = create_app(settings)
    except WeatherStackError as e:
        _fail(e)

    uvicorn.run(app, host=host or settings.host, port=port or settings.port, log_config=None)


def _probe(client: httpx.Client, url: str) -> tuple[bool, str]:
    try:
        response = client.get(url)
    except httpx.HTTPError as e:
        return False, f"unreachable ({e.__class__.__name__})"
    return response.is_success, f"HTTP {response.status_code}"


@cli.command()
@click.option("--api-url", default="http://localhost:8000", show_default=True)
@click.option("--grafana-url", default="http://localhost:3000", show_default=True)
@click.option("--prometheus-url", default="http://localhost:9090", show_default=True)
def doctor(api_url: str, grafana_url: str, prometheus_url: str) -> None:
    """Health check all stack components."""
    probes = [
        ("weatherapi /health", f"{api_url}/health"),
        ("weatherapi /alive", f"{api_url}/alive"),
        ("weatherapi /metrics", f"{api_url}/metrics"),
        ("grafana", f"{grafana_url}/api/health"),
        ("prometheus", f"{prometheus_url}/-/healthy"),
    ]

    failures = 0
    with httpx.Client(timeout=2.0) as client:
        for name, url in probes:
            ok, detail = _probe(client, url)
            failures += not ok
            click.echo(f"  [{'OK' if ok else 'FAIL'}] {name}: {detail}")

    if failures:
        click.echo(f"\n{failures} check(s) failed.", err=True)
        raise SystemExit(1)
    click.echo("\nAll checks passed.")


@cli.command()
@click.option("--base-dir", type=click.Path(file_okay=False, path_type=Path), default=REPO_ROOT,
              show_default=True)
@click.option("--format", "output_format", type=click.Choice(["yaml", "json"]), default="yaml")
def topology(base_dir: Path, output_format: str) -> None:
    """Print the declared topology."""
    from weatherstack.apphost import build_topology

    try:
        description = build_topology(base_dir).describe()
    except WeatherStackError as e:
        _fail(e)

    if output_format == "json":
        click.echo(json.dumps(description, indent=2))
    else:
        click.echo(yaml.safe_dump(description, sort_keys=False))


if __name__ == "__main__":
    cli()
