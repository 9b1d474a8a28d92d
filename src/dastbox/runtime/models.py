"""Typed configuration and state models for container services."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from dastbox.errors import InvalidStateError


class NetworkMode(str, Enum):
    """How a container is attached to the network."""

    BRIDGE = "bridge"
    HOST = "host"

    @classmethod
    def parse(cls, value: str | NetworkMode) -> NetworkMode:
        if isinstance(value, NetworkMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown network mode '{value}'. Choose one of: {choices}") from None


class InstanceState(str, Enum):
    """Lifecycle state of a deployed service."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"


_INSTANCE_TRANSITIONS: dict[InstanceState, set[InstanceState]] = {
    InstanceState.PENDING: {InstanceState.RUNNING, InstanceState.STOPPED, InstanceState.REMOVED},
    InstanceState.RUNNING: {InstanceState.STOPPED, InstanceState.REMOVED},
    InstanceState.STOPPED: {InstanceState.REMOVED},
    InstanceState.REMOVED: set(),
}


@dataclass(frozen=True)
class Mount:
    """A host directory bind-mounted into a container."""

    source: str
    target: str
    read_only: bool = False


@dataclass
class ServiceSpec:
    """Everything the runtime needs to create one container."""

    name: str
    image: str
    network_mode: NetworkMode
    container_port: int | None = None
    host_port: int | None = None
    network: str | None = None
    environment: dict[str, str] = field(default_factory=dict)
    command: list[str] = field(default_factory=list)
    mounts: list[Mount] = field(default_factory=list)
    user: str | None = None
    readiness_path: str = "/"
    labels: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.network_mode = NetworkMode.parse(self.network_mode)
        if not self.name:
            raise ValueError("Service name is required")
        if not self.image:
            raise ValueError("Service image is required")

    @property
    def published_port(self) -> int | None:
        """Port reachable from the host for this service."""
        if self.network_mode is NetworkMode.HOST:
            return self.container_port
        return self.host_port


@dataclass(frozen=True)
class Endpoint:
    """Network address of a deployed service."""

    host: str
    port: int
    scheme: str = "http"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class ServiceInstance:
    """A deployed container tracked by the lifecycle manager."""

    name: str
    image: str
    container_id: str
    endpoint: Endpoint | None
    spec: ServiceSpec
    state: InstanceState = InstanceState.PENDING

    def transition(self, new_state: InstanceState) -> None:
        """Move to a new lifecycle state, rejecting illegal transitions."""
        if new_state is self.state:
            return
        if new_state not in _INSTANCE_TRANSITIONS[self.state]:
            raise InvalidStateError(
                f"Service '{self.name}' cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    @property
    def is_running(self) -> bool:
        return self.state is InstanceState.RUNNING
