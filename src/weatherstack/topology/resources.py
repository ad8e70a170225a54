"""Immutable resource declarations making up a local topology."""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class EndpointAnnotation:
    """A published container port."""
    name: str
    container_port: int
    host_port: int | None = None
    scheme: str = "http"

    @property
    def port_key(self) -> str:
        """Port key in docker SDK notation."""
        return f"{self.container_port}/tcp"


@dataclass(frozen=True)
class VolumeMount:
    source: Path
    target: str
    read_only: bool = False

    def to_docker(self) -> dict[str, str]:
        return {'bind': self.target, 'mode': 'ro' if self.read_only else 'rw'}


@dataclass(frozen=True)
class EndpointReference:
    """Points at a named endpoint of a container; resolved once it runs."""
    resource: str
    endpoint: str

    def __str__(self) -> str:
        return f"{{{self.resource}.bindings.{self.endpoint}.url}}"


EnvValue = str | EndpointReference


def frozen_environment(mapping: Mapping[str, EnvValue] | None = None) -> Mapping[str, EnvValue]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ContainerResource:
    name: str
    image: str
    endpoints: tuple[EndpointAnnotation, ...] = ()
    volumes: tuple[VolumeMount, ...] = ()
    environment: Mapping[str, EnvValue] = field(default_factory=frozen_environment)

    def endpoint(self, name: str) -> EndpointAnnotation | None:
        return next((e for e in self.endpoints if e.name == name), None)


@dataclass(frozen=True)
class ProjectResource:
    """An ASGI application started as a local uvicorn process."""
    name: str
    app: str
    host: str = "127.0.0.1"
    port: int = 8000
    environment: Mapping[str, EnvValue] = field(default_factory=frozen_environment)

    @property
    def url(self) -> str:
        host = "localhost" if self.host in ("0.0.0.0", "::") else self.host
        return f"http://{host}:{self.port}"


@dataclass(frozen=True)
class Topology:
    base_dir: Path
    containers: tuple[ContainerResource, ...] = ()
    projects: tuple[ProjectResource, ...] = ()

    @property
    def resource_names(self) -> list[str]:
        return [r.name for r in (*self.containers, *self.projects)]

    def container(self, name: str) -> ContainerResource | None:
        return next((c for c in self.containers if c.name == name), None)

    def project(self, name: str) -> ProjectResource | None:
        return next((p for p in self.projects if p.name == name), None)

    def describe(self) -> dict:
        """Plain-data view of the declaration, for the CLI."""
        return {
            'base_dir': str(self.base_dir),
            'containers': [
                {
                    'name': c.name,
                    'image': c.image,
                    'endpoints': [
                        {
                            'name': e.name,
                            'container_port': e.container_port,
                            'host_port': e.host_port,
                            'scheme': e.scheme,
                        }
                        for e in c.endpoints
                    ],
                    'volumes': [
                        {'source': str(v.source), 'target': v.target, 'read_only': v.read_only}
                        for v in c.volumes
                    ],
                    'environment': {k: str(v) for k, v in c.environment.items()},
                }
                for c in self.containers
            ],
            'projects': [
                {
                    'name': p.name,
                    'app': p.app,
                    'url': p.url,
                    'environment': {k: str(v) for k, v in p.environment.items()},
                }
                for p in self.projects
            ],
        }
