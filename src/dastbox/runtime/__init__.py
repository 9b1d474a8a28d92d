"""Container runtime seam and its docker implementation."""

from .base import ContainerRuntime
from .docker import DockerRuntime, build_create_args
from .models import (
    Endpoint,
    InstanceState,
    Mount,
    NetworkMode,
    ServiceInstance,
    ServiceSpec,
)
from .process import CommandResult, resolve_binary, run_command

__all__ = [
    "CommandResult",
    "ContainerRuntime",
    "DockerRuntime",
    "Endpoint",
    "InstanceState",
    "Mount",
    "NetworkMode",
    "ServiceInstance",
    "ServiceSpec",
    "build_create_args",
    "resolve_binary",
    "run_command",
]
