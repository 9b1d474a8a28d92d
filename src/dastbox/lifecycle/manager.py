"""Deploy, stop and remove isolated service instances."""

from __future__ import annotations

import logging

from dastbox.errors import (
    AlreadyExistsError,
    CleanupError,
    DeploymentError,
    NotFoundError,
    ReadinessTimeoutError,
)
from dastbox.runtime import (
    ContainerRuntime,
    Endpoint,
    InstanceState,
    ServiceInstance,
    ServiceSpec,
)

logger = logging.getLogger(__name__)


class LifecycleManager:
    """Own the lifecycle of every service instance deployed through it.

    Names are unique: deploying a name that is already tracked here, or that
    the runtime already knows about, fails instead of reusing state.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        readiness_timeout: float = 120.0,
        readiness_interval: float = 2.0,
        stop_grace: float = 10.0,
        endpoint_host: str = "localhost",
    ):
        self.runtime = runtime
        self.readiness_timeout = readiness_timeout
        self.readiness_interval = readiness_interval
        self.stop_grace = stop_grace
        self.endpoint_host = endpoint_host
        self._instances: dict[str, ServiceInstance] = {}

    def instances(self) -> list[ServiceInstance]:
        """Return tracked instances in deploy order."""
        return list(self._instances.values())

    def get(self, name: str) -> ServiceInstance:
        instance = self._instances.get(name)
        if instance is None:
            raise NotFoundError(name)
        return instance

    async def deploy(self, spec: ServiceSpec, wait_ready: bool = True) -> ServiceInstance:
        """Create and start a service, then poll it until it is reachable."""
        if spec.name in self._instances or await self.runtime.exists(spec.name):
            raise AlreadyExistsError(spec.name)

        container_id = await self.runtime.create(spec)
        instance = ServiceInstance(
            name=spec.name,
            image=spec.image,
            container_id=container_id,
            endpoint=self._endpoint_for(spec),
            spec=spec,
        )
        self._instances[spec.name] = instance

        try:
            await self.runtime.start(container_id)
        except DeploymentError:
            await self._discard(instance)
            raise
        logger.info("started %s from %s", spec.name, spec.image)

        if wait_ready and instance.endpoint is not None:
            url = instance.endpoint.url + spec.readiness_path
            ready = await self.runtime.wait_ready(
                container_id,
                url,
                interval=self.readiness_interval,
                timeout=self.readiness_timeout,
            )
            if not ready:
                raise ReadinessTimeoutError(spec.name, url, self.readiness_timeout)

        instance.transition(InstanceState.RUNNING)
        return instance

    async def stop(self, instance: ServiceInstance) -> None:
        """Stop a tracked instance."""
        tracked = self._tracked(instance)
        await self.runtime.stop(tracked.container_id, grace=self.stop_grace)
        tracked.transition(InstanceState.STOPPED)
        logger.info("stopped %s", tracked.name)

    async def remove(self, instance: ServiceInstance) -> None:
        """Force-remove a tracked instance and stop tracking it."""
        tracked = self._tracked(instance)
        try:
            await self.runtime.remove(tracked.container_id)
        except NotFoundError:
            logger.warning("container for %s was already gone", tracked.name)
        tracked.transition(InstanceState.REMOVED)
        del self._instances[tracked.name]
        logger.info("removed %s", tracked.name)

    async def release_all(self) -> list[CleanupError]:
        """Stop and remove every tracked instance, collecting failures."""
        errors: list[CleanupError] = []
        for instance in reversed(self.instances()):
            if instance.state is InstanceState.RUNNING:
                try:
                    await self.stop(instance)
                except Exception as exc:
                    errors.append(CleanupError(f"service '{instance.name}'", exc))
            try:
                await self.remove(instance)
            except Exception as exc:
                errors.append(CleanupError(f"service '{instance.name}'", exc))
        for error in errors:
            logger.warning("%s", error)
        return errors

    def _tracked(self, instance: ServiceInstance) -> ServiceInstance:
        tracked = self._instances.get(instance.name)
        if tracked is None or tracked.container_id != instance.container_id:
            raise NotFoundError(instance.name)
        return tracked

    def _endpoint_for(self, spec: ServiceSpec) -> Endpoint | None:
        port = spec.published_port
        if port is None:
            return None
        return Endpoint(host=self.endpoint_host, port=port)

    async def _discard(self, instance: ServiceInstance) -> None:
        self._instances.pop(instance.name, None)
        try:
            await self.runtime.remove(instance.container_id)
        except Exception as exc:
            logger.warning("%s", CleanupError(f"service '{instance.name}'", exc))
        instance.transition(InstanceState.REMOVED)
