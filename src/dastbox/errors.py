"""Exception hierarchy for deploy, scan and report failures."""

from __future__ import annotations

from collections.abc import Sequence


class DastboxError(Exception):
    """Base class for all orchestration errors."""


class ConfigError(DastboxError):
    """Configuration is missing or invalid."""


class RuntimeCommandError(DastboxError):
    """A container runtime command exited with an unexpected status."""

    def __init__(self, command: Sequence[str], returncode: int | None, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        snippet = stderr.strip().splitlines()
        detail = snippet[0] if snippet else "unknown error"
        if returncode is None:
            message = f"Command timed out: {' '.join(self.command)}"
        else:
            message = f"Command failed with exit code {returncode}: {detail}"
        super().__init__(message)


class DeploymentError(DastboxError):
    """A target service failed to start."""


class AlreadyExistsError(DeploymentError):
    """A service with the same name is already deployed."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Service '{name}' already exists")


class NotFoundError(DastboxError):
    """An instance or container is unknown or was already removed."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Service '{name}' not found")


class ReadinessTimeoutError(DastboxError):
    """A service started but never became reachable."""

    def __init__(self, name: str, url: str, timeout: float):
        self.name = name
        self.url = url
        self.timeout = timeout
        super().__init__(f"Service '{name}' not reachable at {url} after {timeout:g}s")


class InvalidStateError(DastboxError):
    """An operation was attempted from a state that does not allow it."""


class ScanError(DastboxError):
    """Base class for scanner failures; carries the failed job."""

    def __init__(self, message: str, job: object | None = None):
        self.job = job
        super().__init__(message)


class ScanTimeoutError(ScanError):
    """The scanner did not finish within its timeout and was killed."""


class ScanExecutionError(ScanError):
    """The scanner process exited with a failure status."""


class ParseError(DastboxError):
    """Scanner output could not be read at all."""


class CleanupError(DastboxError):
    """Best-effort cleanup of a resource failed. Logged, never raised to callers."""

    def __init__(self, resource: str, cause: BaseException):
        self.resource = resource
        self.cause = cause
        super().__init__(f"Failed to clean up {resource}: {cause}")


__all__ = [
    "AlreadyExistsError",
    "CleanupError",
    "ConfigError",
    "DastboxError",
    "DeploymentError",
    "InvalidStateError",
    "NotFoundError",
    "ParseError",
    "ReadinessTimeoutError",
    "RuntimeCommandError",
    "ScanError",
    "ScanExecutionError",
    "ScanTimeoutError",
]
