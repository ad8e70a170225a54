"""Local development topology: containers plus uvicorn-served projects."""

from .builder import ContainerResourceBuilder, ProjectResourceBuilder, TopologyBuilder
from .resources import (
    ContainerResource,
    EndpointAnnotation,
    EndpointReference,
    ProjectResource,
    Topology,
    VolumeMount,
)
from .runner import TOPOLOGY_LABEL, TopologyRunner, launch_process, service_key

__all__ = [
    'ContainerResource',
    'ContainerResourceBuilder',
    'EndpointAnnotation',
    'EndpointReference',
    'ProjectResource',
    'ProjectResourceBuilder',
    'TOPOLOGY_LABEL',
    'Topology',
    'TopologyBuilder',
    'TopologyRunner',
    'VolumeMount',
    'launch_process',
    'service_key',
]
