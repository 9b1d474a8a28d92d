"""dastbox CLI - reproducible DAST scan orchestration."""

from dastbox.cli_commands.shared import app, console
from dastbox.config import resolve_settings
from dastbox.orchestrator import OrchestrationDriver
from dastbox.runtime import DockerRuntime, resolve_binary

# Register commands on the shared app.
from dastbox.cli_commands import doctor_command as _doctor_command  # noqa: E402,F401
from dastbox.cli_commands import down_command as _down_command  # noqa: E402,F401
from dastbox.cli_commands import report_command as _report_command  # noqa: E402,F401
from dastbox.cli_commands import up_command as _up_command  # noqa: E402,F401

__all__ = [
    "DockerRuntime",
    "OrchestrationDriver",
    "app",
    "console",
    "main",
    "resolve_binary",
    "resolve_settings",
]


@app.command()
def version() -> None:
    """Show the installed dastbox version."""
    from importlib.metadata import PackageNotFoundError, version as pkg_version

    try:
        current_version = pkg_version("dastbox")
    except PackageNotFoundError:
        current_version = "0.0.0+unknown"

    console.print(f"dastbox {current_version}")


def main():
    """Entry point for the CLI."""
    app()
