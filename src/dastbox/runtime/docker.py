"""Container runtime backed by the ``docker`` command line client."""

import asyncio
import logging
from collections.abc import Callable

from dastbox.errors import (
    AlreadyExistsError,
    DeploymentError,
    NotFoundError,
    RuntimeCommandError,
)

from .base import ContainerRuntime
from .models import NetworkMode, ServiceSpec
from .process import CommandResult, resolve_binary, run_command
from .readiness import probe_http, readiness_client

logger = logging.getLogger(__name__)

_CONFLICT_MARKERS = ("is already in use", "already exists", "Conflict.")
_MISSING_MARKERS = ("No such container", "No such object", "not found")
_DEFAULT_TIMEOUT = -1.0


def _mentions(stderr: str, markers: tuple[str, ...]) -> bool:
    return any(marker in stderr for marker in markers)


def build_create_args(spec: ServiceSpec) -> list[str]:
    """Translate a service spec into ``docker create`` arguments."""
    args = ["create", "--name", spec.name]
    if spec.network_mode is NetworkMode.HOST:
        args.extend(["--network", "host"])
    else:
        if spec.network:
            args.extend(["--network", spec.network])
        if spec.host_port is not None and spec.container_port is not None:
            args.extend(["-p", f"{spec.host_port}:{spec.container_port}"])
    for key, value in sorted(spec.environment.items()):
        args.extend(["-e", f"{key}={value}"])
    for mount in spec.mounts:
        suffix = ":ro" if mount.read_only else ""
        args.extend(["-v", f"{mount.source}:{mount.target}{suffix}"])
    for key, value in sorted(spec.labels.items()):
        args.extend(["--label", f"{key}={value}"])
    if spec.user:
        args.extend(["--user", spec.user])
    args.append(spec.image)
    args.extend(spec.command)
    return args


class DockerRuntime(ContainerRuntime):
    """Drive containers through the docker CLI."""

    name = "docker"

    def __init__(
        self,
        binary: str | None = None,
        command_runner: Callable[..., object] | None = None,
        command_timeout: float = 120.0,
    ):
        self.binary = binary or resolve_binary("docker") or "docker"
        self._runner = command_runner or run_command
        self.command_timeout = command_timeout

    async def _docker(
        self,
        *args: str,
        timeout: float | None = _DEFAULT_TIMEOUT,
        allowed_exit_codes: tuple[int, ...] = (0,),
    ) -> CommandResult:
        effective = self.command_timeout if timeout == _DEFAULT_TIMEOUT else timeout
        return await self._runner(
            [self.binary, *args],
            timeout=effective,
            allowed_exit_codes=allowed_exit_codes,
        )

    async def create(self, spec: ServiceSpec) -> str:
        try:
            # Image pulls happen here and can take minutes.
            result = await self._docker(*build_create_args(spec), timeout=None)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _CONFLICT_MARKERS):
                raise AlreadyExistsError(spec.name) from exc
            raise DeploymentError(f"Could not create '{spec.name}' from {spec.image}: {exc}") from exc
        container_id = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else spec.name
        logger.info("created container %s (%s) from %s", spec.name, container_id[:12], spec.image)
        return container_id

    async def start(self, container_id: str) -> None:
        try:
            await self._docker("start", container_id)
        except RuntimeCommandError as exc:
            raise DeploymentError(f"Could not start container {container_id[:12]}: {exc}") from exc

    async def stop(self, container_id: str, grace: float = 10.0) -> None:
        seconds = max(0, int(round(grace)))
        try:
            await self._docker("stop", "--time", str(seconds), container_id, timeout=seconds + 30.0)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _MISSING_MARKERS):
                raise NotFoundError(container_id) from exc
            raise

    async def kill(self, container_id: str) -> None:
        try:
            await self._docker("kill", container_id)
        except RuntimeCommandError as exc:
            if "is not running" in exc.stderr:
                return
            if _mentions(exc.stderr, _MISSING_MARKERS):
                raise NotFoundError(container_id) from exc
            raise

    async def remove(self, container_id: str) -> None:
        try:
            await self._docker("rm", "--force", "--volumes", container_id)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _MISSING_MARKERS):
                raise NotFoundError(container_id) from exc
            raise

    async def is_running(self, container_id: str) -> bool:
        """Return the container's running flag from ``docker inspect``."""
        result = await self._docker(
            "container", "inspect", "--format", "{{.State.Running}}", container_id,
            allowed_exit_codes=(0, 1),
        )
        return result.returncode == 0 and result.stdout.strip().lower() == "true"

    async def wait_ready(
        self,
        container_id: str,
        url: str,
        interval: float,
        timeout: float,
    ) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        attempt = 0
        async with readiness_client(timeout=max(1.0, min(interval * 2, 10.0))) as client:
            while True:
                attempt += 1
                if not await self.is_running(container_id):
                    _, stderr = await self.logs(container_id)
                    tail = stderr.strip().splitlines()[-1:] or ["no output"]
                    raise DeploymentError(
                        f"Container {container_id[:12]} exited during startup: {tail[0]}"
                    )
                if await probe_http(url, client):
                    logger.info("%s ready after %d probe(s)", url, attempt)
                    return True
                if loop.time() + interval > deadline:
                    return False
                await asyncio.sleep(interval)

    async def wait_exit(self, container_id: str) -> int:
        result = await self._docker("wait", container_id, timeout=None)
        lines = result.stdout.strip().splitlines()
        try:
            return int(lines[-1])
        except (IndexError, ValueError):
            raise RuntimeCommandError(
                [self.binary, "wait", container_id], result.returncode, result.stdout
            ) from None

    async def logs(self, container_id: str) -> tuple[str, str]:
        try:
            result = await self._docker("logs", container_id)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _MISSING_MARKERS):
                raise NotFoundError(container_id) from exc
            raise
        return result.stdout, result.stderr

    async def exists(self, name: str) -> bool:
        result = await self._docker(
            "container", "inspect", "--format", "{{.Id}}", name,
            allowed_exit_codes=(0, 1),
        )
        return result.returncode == 0

    async def create_network(self, name: str) -> None:
        try:
            await self._docker("network", "create", "--driver", "bridge", name)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _CONFLICT_MARKERS):
                raise AlreadyExistsError(name) from exc
            raise DeploymentError(f"Could not create network '{name}': {exc}") from exc

    async def remove_network(self, name: str) -> None:
        try:
            await self._docker("network", "rm", name)
        except RuntimeCommandError as exc:
            if _mentions(exc.stderr, _MISSING_MARKERS):
                raise NotFoundError(name) from exc
            raise

    async def ping(self) -> str:
        """Return the engine server version; raises when the daemon is unreachable."""
        result = await self._docker("version", "--format", "{{.Server.Version}}", timeout=15.0)
        return result.stdout.strip()
