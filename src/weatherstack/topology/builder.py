"""
Topology Builder
================

Fluent declaration of the containers and local processes making up a
development topology:

    builder = TopologyBuilder(base_dir)
    grafana = (builder.add_container("grafana", "grafana/grafana")
               .with_volume_mount("deploy/grafana/config", "/etc/grafana")
               .with_endpoint(3000, host_port=3000, name="grafana-http"))
    builder.add_project("weatherapi", "weatherstack.weather_api.app:create_app") \\
        .with_environment("GRAFANA_URL", grafana.get_endpoint("grafana-http"))
    topology = builder.build()

Declaration errors (duplicate names, unknown endpoints) raise
TopologyDefinitionError as soon as they are made.
"""

import logging
from pathlib import Path

from weatherstack.core.exceptions import TopologyDefinitionError

from .resources import (
    ContainerResource,
    EndpointAnnotation,
    EndpointReference,
    EnvValue,
    ProjectResource,
    Topology,
    VolumeMount,
    frozen_environment,
)

logger = logging.getLogger(__name__)


class _ResourceBuilder:
    def __init__(self, topology: "TopologyBuilder", name: str) -> None:
        self._topology = topology
        self.name = name
        self._environment: dict[str, EnvValue] = {}

    def with_environment(self, key: str, value: EnvValue) -> "_ResourceBuilder":
        if not isinstance(value, (str, EndpointReference)):
            raise TopologyDefinitionError(
                f"Environment value for {key} on {self.name} must be a string or endpoint reference",
                details={'resource': self.name, 'key': key, 'type': type(value).__name__},
            )
        if isinstance(value, EndpointReference):
            self._topology._require_endpoint(value)
        self._environment[key] = value
        return self


class ContainerResourceBuilder(_ResourceBuilder):
    def __init__(self, topology: "TopologyBuilder", name: str, image: str) -> None:
        super().__init__(topology, name)
        self.image = image
        self._endpoints: list[EndpointAnnotation] = []
        self._volumes: list[VolumeMount] = []

    def with_volume_mount(self, source: str | Path, target: str, read_only: bool = False) -> "ContainerResourceBuilder":
        source = Path(source)
        if not source.is_absolute():
            source = self._topology.base_dir / source
        # docker would create a missing source as an empty root-owned directory
        if not source.exists():
            raise TopologyDefinitionError(
                f"Volume source {source} for {self.name} does not exist",
                details={'resource': self.name, 'source': str(source), 'base_dir': str(self._topology.base_dir)},
            )
        self._volumes.append(VolumeMount(source.resolve(), target, read_only))
        return self

    def with_endpoint(self, container_port: int, host_port: int | None = None,
                      name: str | None = None, scheme: str = "http") -> "ContainerResourceBuilder":
        name = name or scheme
        if any(e.name == name for e in self._endpoints):
            raise TopologyDefinitionError(
                f"Endpoint {name} is already declared on {self.name}",
                details={'resource': self.name, 'endpoint': name},
            )
        self._endpoints.append(EndpointAnnotation(name, container_port, host_port, scheme))
        return self

    def get_endpoint(self, name: str) -> EndpointReference:
        if not any(e.name == name for e in self._endpoints):
            raise TopologyDefinitionError(
                f"Resource {self.name} has no endpoint named {name}",
                details={'resource': self.name, 'endpoint': name,
                         'declared': [e.name for e in self._endpoints]},
            )
        return EndpointReference(self.name, name)

    def build(self) -> ContainerResource:
        return ContainerResource(
            name=self.name,
            image=self.image,
            endpoints=tuple(self._endpoints),
            volumes=tuple(self._volumes),
            environment=frozen_environment(self._environment),
        )


class ProjectResourceBuilder(_ResourceBuilder):
    def __init__(self, topology: "TopologyBuilder", name: str, app: str, host: str, port: int) -> None:
        super().__init__(topology, name)
        if ":" not in app:
            raise TopologyDefinitionError(
                f"Application reference for {name} must look like 'module:factory'",
                details={'resource': name, 'app': app},
            )
        self.app = app
        self.host = host
        self.port = port

    def build(self) -> ProjectResource:
        return ProjectResource(
            name=self.name,
            app=self.app,
            host=self.host,
            port=self.port,
            environment=frozen_environment(self._environment),
        )


class TopologyBuilder:
    """Collects resource declarations; build() freezes them into a Topology."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir).resolve()
        self._containers: dict[str, ContainerResourceBuilder] = {}
        self._projects: dict[str, ProjectResourceBuilder] = {}

    def _claim(self, name: str) -> None:
        if name in self._containers or name in self._projects:
            raise TopologyDefinitionError(
                f"Resource {name} is already declared",
                details={'resource': name},
            )

    def _require_endpoint(self, reference: EndpointReference) -> None:
        container = self._containers.get(reference.resource)
        if container is None:
            raise TopologyDefinitionError(
                f"Endpoint reference points at unknown container {reference.resource}",
                details={'resource': reference.resource},
            )
        container.get_endpoint(reference.endpoint)

    def add_container(self, name: str, image: str) -> ContainerResourceBuilder:
        self._claim(name)
        builder = ContainerResourceBuilder(self, name, image)
        self._containers[name] = builder
        logger.debug("Declared container %s (%s)", name, image)
        return builder

    def add_project(self, name: str, app: str, host: str = "127.0.0.1", port: int = 8000) -> ProjectResourceBuilder:
        self._claim(name)
        builder = ProjectResourceBuilder(self, name, app, host, port)
        self._projects[name] = builder
        logger.debug("Declared project %s (%s)", name, app)
        return builder

    def build(self) -> Topology:
        return Topology(
            base_dir=self.base_dir,
            containers=tuple(b.build() for b in self._containers.values()),
            projects=tuple(b.build() for b in self._projects.values()),
        )
