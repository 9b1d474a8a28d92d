"""``orchestrate doctor``: pre-flight health check command."""

from __future__ import annotations

from pathlib import Path

import typer

from .deps import cli_module
from .shared import app, console

STATUS_ICONS = {
    "pass": "[green]✓[/green]",
    "fail": "[red]✗[/red]",
    "warn": "[yellow]![/yellow]",
}


@app.command()
def doctor(
    config: Path | None = typer.Option(None, "--config", help="YAML config file to validate"),
) -> None:
    """Check that docker and the configuration are ready for a run."""
    from .doctor_checks import (
        CheckResult,
        check_configuration,
        check_docker_binary,
        check_docker_daemon,
        check_python_version,
    )

    cli = cli_module()
    console.print("\n[bold]dastbox doctor[/bold]")
    console.print("─" * 36)
    console.print()

    results: list[CheckResult] = [check_python_version()]
    binary = check_docker_binary(cli.resolve_binary)
    results.append(binary)
    if binary.status == "pass":
        results.append(check_docker_daemon(cli.DockerRuntime()))
    results.append(check_configuration(cli.resolve_settings, config))

    for r in results:
        icon = STATUS_ICONS.get(r.status, "?")
        console.print(f"  {icon} {r.message}", highlight=False)
        if r.fix and r.status in ("fail", "warn"):
            for line in r.fix.splitlines():
                console.print(f"    {line}", highlight=False)

    counts = {"pass": 0, "fail": 0, "warn": 0}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1

    console.print()
    console.print(
        f"  Summary: {counts['pass']} passed, {counts['warn']} warnings, {counts['fail']} failed"
    )
    console.print()

    if counts["fail"] > 0:
        raise typer.Exit(1)
