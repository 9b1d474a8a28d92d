"""Individual health-check functions for ``orchestrate doctor``."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path

from dastbox.errors import ConfigError, DastboxError

# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class CheckResult:
    """Outcome of a single diagnostic check."""

    name: str
    status: str  # "pass", "fail", "warn"
    message: str
    fix: str = ""


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_python_version() -> CheckResult:
    """Verify Python >= 3.12."""
    v = sys.version_info
    ver = f"{v.major}.{v.minor}.{v.micro}"
    if (v.major, v.minor) >= (3, 12):
        return CheckResult("Python version", "pass", f"Python {ver}")
    return CheckResult(
        "Python version", "fail", f"Python {ver} (requires >= 3.12)", fix="Install Python 3.12+"
    )


def check_docker_binary(resolve) -> CheckResult:
    """Check that the docker CLI is on PATH."""
    path = resolve("docker")
    if path:
        return CheckResult("Docker CLI", "pass", f"docker found at {path}")
    return CheckResult(
        "Docker CLI",
        "fail",
        "docker not found on PATH",
        fix="Install Docker: https://docs.docker.com/get-docker/",
    )


def check_docker_daemon(runtime) -> CheckResult:
    """Check that the docker daemon answers."""
    try:
        version = asyncio.run(runtime.ping())
    except DastboxError as exc:
        return CheckResult(
            "Docker daemon",
            "fail",
            f"daemon unreachable: {exc}",
            fix="Start the Docker daemon or check DOCKER_HOST and your group membership",
        )
    return CheckResult("Docker daemon", "pass", f"Docker Engine {version or 'unknown version'}")


def check_configuration(resolve_settings, config_path: Path | None) -> CheckResult:
    """Check that the configured sources resolve into run settings."""
    try:
        settings = resolve_settings({}, config_path=config_path)
    except ConfigError as exc:
        if "Network mode is not set" in str(exc):
            return CheckResult(
                "Configuration",
                "warn",
                "network mode not configured; 'up' needs --network bridge|host",
                fix="Set DASTBOX_NETWORK or add 'network: bridge' to ~/.dastbox/config.yml",
            )
        return CheckResult("Configuration", "fail", str(exc), fix="Fix the value named above")
    return CheckResult(
        "Configuration",
        "pass",
        f"{settings.target_image} scanned by {settings.scanner_image} "
        f"on {settings.network_mode.value} network",
    )
