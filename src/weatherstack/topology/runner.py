"""
Topology Runner
===============

Starts a declared topology on the local machine and tears it down again:

- containers run detached through the Docker SDK, labelled, with their ports
  published and their volume mounts bound
- projects run as uvicorn processes, with endpoint references resolved into
  their environment

A resource that fails to start is fatal: whatever already started is torn
down and TopologyStartupError propagates. Teardown itself never aborts
early; each failure is logged and the remaining resources are still stopped.
"""

import os
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

import docker
import docker.errors

from weatherstack.config.settings import DEVELOPMENT
from weatherstack.core.exceptions import TopologyStartupError
from weatherstack.core.structured_logger import get_logger

from .resources import ContainerResource, EndpointReference, EnvValue, ProjectResource, Topology

logger = get_logger("Topology")

TOPOLOGY_LABEL = "weatherstack.topology"
DOCKER_HOST_ALIAS = "host.docker.internal"
ENVIRONMENT_KEY = "WEATHERSTACK_ENVIRONMENT"

ProcessLauncher = Callable[[list[str], dict[str, str]], subprocess.Popen]


def launch_process(args: list[str], env: dict[str, str]) -> subprocess.Popen:
    return subprocess.Popen(args, env=env)


def service_key(resource: str, endpoint: str, index: int = 0) -> str:
    """Configuration key a project reads to discover a resource endpoint."""
    return f"services__{resource}__{endpoint}__{index}"


class TopologyRunner:
    """Runs containers and processes of a Topology for the lifetime of run()."""

    def __init__(
        self,
        topology: Topology,
        docker_client: Any = None,
        process_launcher: ProcessLauncher | None = None,
        stop_timeout: int = 10,
    ) -> None:
        self.topology = topology
        self._docker = docker_client
        self._launch = process_launcher or launch_process
        self.stop_timeout = stop_timeout

        self._containers: dict[str, Any] = {}
        self._processes: dict[str, subprocess.Popen] = {}
        self._endpoint_urls: dict[tuple[str, str], str] = {}
        self._environments: dict[str, Mapping[str, str]] = {}
        self._stop_requested = threading.Event()

    @property
    def docker(self):
        if self._docker is None:
            self._docker = docker.from_env()
        return self._docker

    @property
    def containers(self) -> Mapping[str, Any]:
        return MappingProxyType(self._containers)

    @property
    def processes(self) -> Mapping[str, subprocess.Popen]:
        return MappingProxyType(self._processes)

    def endpoint_url(self, reference: EndpointReference) -> str:
        try:
            return self._endpoint_urls[(reference.resource, reference.endpoint)]
        except KeyError:
            raise TopologyStartupError(
                reference.resource,
                f"Endpoint {reference.endpoint} of {reference.resource} is not allocated",
            ) from None

    def resolved_environment(self, project_name: str) -> Mapping[str, str]:
        """The environment injected into a started project (process env excluded)."""
        return self._environments[project_name]

    def _resolve(self, environment: Mapping[str, EnvValue]) -> dict[str, str]:
        return {
            key: self.endpoint_url(value) if isinstance(value, EndpointReference) else value
            for key, value in environment.items()
        }

    def start(self) -> None:
        logger.info("Starting topology", resources=self.topology.resource_names)
        try:
            for container in self.topology.containers:
                self._start_container(container)
            for project in self.topology.projects:
                self._start_project(project)
        except TopologyStartupError as e:
            logger.error("Topology startup failed", resource=e.resource_name, error=e.message)
            self.stop()
            raise
        except BaseException:
            logger.error("Topology startup interrupted", exc_info=True)
            self.stop()
            raise

        logger.info("Topology started", endpoints={f"{r}.{e}": url for (r, e), url in self._endpoint_urls.items()})

    def _remove_stale(self, resource: ContainerResource) -> None:
        stale = self.docker.containers.list(
            all=True, filters={'label': f"{TOPOLOGY_LABEL}={resource.name}", 'name': resource.name}
        )
        for container in stale:
            logger.warning("Removing stale container", resource=resource.name, container=container.name)
            container.remove(force=True)

    def _start_container(self, resource: ContainerResource) -> None:
        try:
            self._remove_stale(resource)
            container = self.docker.containers.run(
                resource.image,
                name=resource.name,
                detach=True,
                ports={e.port_key: e.host_port for e in resource.endpoints},
                volumes={str(v.source): v.to_docker() for v in resource.volumes},
                environment=self._resolve(resource.environment),
                labels={TOPOLOGY_LABEL: resource.name},
                extra_hosts={DOCKER_HOST_ALIAS: "host-gateway"},
            )
            self._containers[resource.name] = container
            if any(e.host_port is None for e in resource.endpoints):
                container.reload()
        except docker.errors.DockerException as e:
            raise TopologyStartupError(
                resource.name,
                f"Container {resource.name} failed to start: {e}",
                details={'image': resource.image},
            ) from e

        for endpoint in resource.endpoints:
            host_port = endpoint.host_port
            if host_port is None:
                bindings = (container.ports or {}).get(endpoint.port_key) or []
                if not bindings:
                    raise TopologyStartupError(
                        resource.name,
                        f"No host port published for {resource.name}:{endpoint.port_key}",
                    )
                host_port = int(bindings[0]['HostPort'])
            self._endpoint_urls[(resource.name, endpoint.name)] = f"{endpoint.scheme}://localhost:{host_port}"

        logger.info("Container started", resource=resource.name, image=resource.image)

    def _project_environment(self, project: ProjectResource) -> dict[str, str]:
        injected = {
            service_key(resource, endpoint): url
            for (resource, endpoint), url in self._endpoint_urls.items()
        }
        injected.update(self._resolve(project.environment))
        injected.setdefault(ENVIRONMENT_KEY, os.environ.get(ENVIRONMENT_KEY, DEVELOPMENT))
        injected.setdefault("OTEL_SERVICE_NAME", project.name)
        return injected

    def _start_project(self, project: ProjectResource) -> None:
        injected = self._project_environment(project)
        self._environments[project.name] = MappingProxyType(injected)

        args = [
            sys.executable, "-m", "uvicorn", "--factory", project.app,
            "--host", project.host, "--port", str(project.port),
        ]
        try:
            process = self._launch(args, {**os.environ, **injected})
        except OSError as e:
            raise TopologyStartupError(project.name, f"Process {project.name} failed to start: {e}") from e

        self._processes[project.name] = process
        if process.poll() is not None:
            raise TopologyStartupError(
                project.name,
                f"Process {project.name} exited immediately with code {process.returncode}",
            )
        logger.info("Project started", resource=project.name, url=project.url, pid=process.pid)

    def request_stop(self) -> None:
        self._stop_requested.set()

    def _exited_process(self) -> tuple[str, int] | None:
        for name, process in self._processes.items():
            code = process.poll()
            if code is not None:
                return name, code
        return None

    def run(self, poll_interval: float = 0.5) -> int:
        """Start, block until SIGINT/SIGTERM or a project exits, then stop."""
        self.start()

        def signal_handler(signum, _frame):
            logger.info("Received %s, stopping topology", signal.Signals(signum).name)
            self._stop_requested.set()

        previous = {sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}
        exit_code = 0
        try:
            while not self._stop_requested.wait(poll_interval):
                exited = self._exited_process()
                if exited is not None:
                    name, exit_code = exited
                    logger.warning("Project exited, stopping topology", resource=name, exit_code=exit_code)
                    break
        finally:
            for sig, handler in previous.items():
                if handler is not None:
                    signal.signal(sig, handler)
            self.stop()
        return exit_code

    def stop(self) -> None:
        for name, process in reversed(list(self._processes.items())):
            try:
                if process.poll() is None:
                    process.terminate()
                    try:
                        process.wait(timeout=self.stop_timeout)
                    except subprocess.TimeoutExpired:
                        logger.warning("Process did not exit, killing", resource=name)
                        process.kill()
                        process.wait()
                logger.info("Project stopped", resource=name)
            except Exception as e:
                logger.error("Error stopping project", resource=name, error=str(e), exc_info=True)
        self._processes.clear()

        # the docker SDK also raises requests errors (e.g. ReadTimeout on a slow daemon)
        for name, container in reversed(list(self._containers.items())):
            try:
                container.stop(timeout=self.stop_timeout)
            except Exception as e:
                logger.error("Error stopping container", resource=name, error=str(e))
            try:
                container.remove(force=True)
                logger.info("Container removed", resource=name)
            except Exception as e:
                logger.error("Error removing container", resource=name, error=str(e))
        self._containers.clear()
        self._endpoint_urls.clear()
