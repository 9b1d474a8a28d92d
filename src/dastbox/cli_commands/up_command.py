"""``orchestrate up``: deploy, scan, report, tear down."""

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from dastbox.errors import ConfigError
from dastbox.orchestrator import EXIT_INTERRUPTED, EXIT_USAGE, RunOutcome, Stage
from dastbox.report.grouping import group_by_severity
from dastbox.utils.debug import set_debug_enabled
from dastbox.utils.logs import configure_logging

from .deps import cli_module
from .shared import SEVERITY_STYLES, app, console

STAGE_ICONS = {
    Stage.DEPLOYING: "●",
    Stage.SCAN_PENDING: "●",
    Stage.SCANNING: "●",
    Stage.COLLECTING: "●",
    Stage.CLEANING_UP: "●",
    Stage.DONE: "[green]✓[/green]",
    Stage.FAILED: "[red]✗[/red]",
}


def print_progress(stage: Stage, message: str) -> None:
    icon = STAGE_ICONS.get(stage, "●")
    console.print(f"{icon} [bold]{stage.value}[/bold] {message}", highlight=False)


def render_outcome(outcome: RunOutcome) -> None:
    """Print the run result: findings table, written files, failure cause."""
    findings = outcome.report.findings if outcome.report else outcome.recovered
    if findings:
        table = Table(title="Findings", show_lines=False)
        table.add_column("Severity")
        table.add_column("Category")
        table.add_column("Location", overflow="fold")
        for severity, scoped in group_by_severity(findings).items():
            style = SEVERITY_STYLES[severity.value]
            for finding in scoped:
                location = finding.location
                if finding.parameter:
                    location += f" [{finding.parameter}]"
                table.add_row(f"[{style}]{severity.value}[/{style}]", finding.category, location)
        console.print(table)
    elif outcome.report is not None:
        console.print("[green]No findings reported.[/green]")

    for path in outcome.report_paths:
        console.print(f"[dim]wrote[/dim] {path}")

    if outcome.error is not None:
        console.print(f"[red]Error: {outcome.failure_message()}[/red]")
        if outcome.job is not None and outcome.job.diagnostics:
            tail = "\n".join(outcome.job.diagnostics.strip().splitlines()[-5:])
            console.print(f"[dim]{tail}[/dim]", highlight=False, markup=False)
    if outcome.partial:
        console.print("[yellow]Report is partial: scanner output was incomplete.[/yellow]")
    for error in outcome.cleanup_errors:
        console.print(f"[yellow]Cleanup warning: {error}[/yellow]")


@app.command()
def up(
    target: str | None = typer.Option(None, "--target", help="Target image (default vulnerables/web-dvwa)"),
    scanner: str | None = typer.Option(None, "--scanner", help="Scanner image (default owasp/zap2docker-stable)"),
    port: int | None = typer.Option(None, "--port", help="Host port published for the target (default 8080)"),
    report: Path | None = typer.Option(None, "--report", help="JSON report path (a .md rendering is written next to it)"),
    network: str | None = typer.Option(None, "--network", help="Network mode: bridge or host (required unless configured)"),
    name: str | None = typer.Option(None, "--name", help="Container name of the target (default dastbox-target)"),
    container_port: int | None = typer.Option(None, "--container-port", help="Port the target listens on inside its container (default 80)"),
    profile: str | None = typer.Option(None, "--profile", help="Scanner profile: zap-baseline or zap-full"),
    readiness_path: str | None = typer.Option(None, "--readiness-path", help="Path probed to decide the target is up"),
    readiness_timeout: float | None = typer.Option(None, "--readiness-timeout", help="Seconds to wait for the target to answer"),
    readiness_interval: float | None = typer.Option(None, "--readiness-interval", help="Seconds between readiness probes"),
    scan_timeout: float | None = typer.Option(None, "--scan-timeout", help="Seconds before the scanner is killed"),
    kill_grace: float | None = typer.Option(None, "--kill-grace", help="Seconds between stop and kill of a timed-out scanner"),
    spider_minutes: int | None = typer.Option(None, "--spider-minutes", help="Minutes the scanner spends spidering"),
    ajax_spider: bool | None = typer.Option(None, "--ajax-spider/--no-ajax-spider", help="Also run the AJAX spider"),
    ignore_warnings: bool | None = typer.Option(
        None, "--ignore-warnings/--fail-on-warnings", help="Treat scanner warnings as success"
    ),
    accept_exit_code: list[int] | None = typer.Option(
        None, "--accept-exit-code", help="Additional scanner exit code treated as success (repeatable)"
    ),
    scan_url: str | None = typer.Option(None, "--scan-url", help="URL the scanner should target instead of the derived one"),
    keep_raw: bool | None = typer.Option(None, "--keep-raw/--no-keep-raw", help="Also save the scanner's raw output"),
    config: Path | None = typer.Option(None, "--config", help="YAML config file (default ~/.dastbox/config.yml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    debug: bool = typer.Option(False, "--debug", help="Print runtime commands and stage transitions"),
) -> None:
    """Deploy the target, run a baseline scan against it, write the report and clean up."""
    cli = cli_module()
    configure_logging(verbose=verbose, debug=debug)
    set_debug_enabled(debug)

    cli_values = {
        "target": target,
        "scanner": scanner,
        "port": port,
        "report": report,
        "network": network,
        "name": name,
        "container_port": container_port,
        "profile": profile,
        "readiness_path": readiness_path,
        "readiness_timeout": readiness_timeout,
        "readiness_interval": readiness_interval,
        "scan_timeout": scan_timeout,
        "kill_grace": kill_grace,
        "spider_minutes": spider_minutes,
        "ajax_spider": ajax_spider,
        "ignore_warnings": ignore_warnings,
        "accepted_exit_codes": accept_exit_code or None,
        "scan_url": scan_url,
        "keep_raw_output": keep_raw,
    }
    try:
        settings = cli.resolve_settings(cli_values, config_path=config)
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(EXIT_USAGE)

    console.print(
        f"[blue]Run {settings.run_name}: {settings.target_image} <- {settings.scanner_image} "
        f"({settings.network_mode.value} network)[/blue]",
        highlight=False,
    )
    runtime = cli.DockerRuntime()
    driver = cli.OrchestrationDriver(runtime, settings, progress=print_progress)
    try:
        outcome = asyncio.run(driver.run())
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted: scanner killed and target removed.[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)

    render_outcome(outcome)
    raise typer.Exit(outcome.exit_code)
