"""The weatherstack development topology: Grafana, Prometheus and the weather API."""

from pathlib import Path

from weatherstack.topology import Topology, TopologyBuilder

WEATHER_API_APP = "weatherstack.weather_api.app:create_app"


def build_topology(base_dir: str | Path) -> Topology:
    """Declare the stack; volume sources are relative to base_dir (the repository root)."""
    builder = TopologyBuilder(base_dir)

    grafana = (
        builder.add_container("grafana", "grafana/grafana")
        .with_volume_mount("deploy/grafana/config", "/etc/grafana")
        .with_volume_mount("deploy/grafana/dashboards", "/var/lib/grafana/dashboards")
        .with_endpoint(3000, host_port=3000, name="grafana-http", scheme="http")
    )

    (
        builder.add_container("prometheus", "prom/prometheus")
        .with_volume_mount("deploy/prometheus", "/etc/prometheus")
        .with_endpoint(9090, host_port=9090)
    )

    # all interfaces: prometheus scrapes through host.docker.internal
    (
        builder.add_project("weatherapi", WEATHER_API_APP, host="0.0.0.0", port=8000)
        .with_environment("GRAFANA_URL", grafana.get_endpoint("grafana-http"))
    )

    return builder.build()
