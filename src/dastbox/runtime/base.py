"""Base contract for container runtimes."""

from abc import ABC, abstractmethod

from .models import ServiceSpec


class ContainerRuntime(ABC):
    """Operations the orchestrator needs from a container engine.

    Implementations are injected into the lifecycle manager and scan runner,
    so tests can substitute an in-memory fake.
    """

    name: str

    @abstractmethod
    async def create(self, spec: ServiceSpec) -> str:
        """Create (but do not start) a container and return its id."""

    @abstractmethod
    async def start(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    async def stop(self, container_id: str, grace: float = 10.0) -> None:
        """Stop a container, killing it once the grace period expires."""

    @abstractmethod
    async def kill(self, container_id: str) -> None:
        """Kill a container immediately."""

    @abstractmethod
    async def remove(self, container_id: str) -> None:
        """Force-remove a container."""

    @abstractmethod
    async def wait_ready(
        self,
        container_id: str,
        url: str,
        interval: float,
        timeout: float,
    ) -> bool:
        """Poll until the service answers at ``url``; False on timeout."""

    @abstractmethod
    async def wait_exit(self, container_id: str) -> int:
        """Block until the container exits and return its exit code."""

    @abstractmethod
    async def logs(self, container_id: str) -> tuple[str, str]:
        """Return captured (stdout, stderr) of a container."""

    @abstractmethod
    async def exists(self, name: str) -> bool:
        """Return True when a container with this name is known to the engine."""

    @abstractmethod
    async def create_network(self, name: str) -> None:
        """Create a user-defined bridge network."""

    @abstractmethod
    async def remove_network(self, name: str) -> None:
        """Remove a user-defined network."""
