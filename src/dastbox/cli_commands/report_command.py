"""``orchestrate report``: review a written report in the terminal."""

from pathlib import Path

import typer
from rich.table import Table

from dastbox.errors import ParseError
from dastbox.report import SEVERITY_ORDER, load_report_document

from .shared import SEVERITY_STYLES, app, console


@app.command()
def report(
    path: Path = typer.Argument(..., help="JSON report written by 'orchestrate up'"),
    min_severity: str = typer.Option("info", "--min-severity", help="Hide findings below: info, low, medium, high"),
) -> None:
    """Show the findings of a report as a table."""
    order = [severity.value for severity in SEVERITY_ORDER]
    threshold = min_severity.strip().lower()
    if threshold not in order:
        console.print(f"[red]Unknown severity '{min_severity}'. Use one of: {', '.join(reversed(order))}[/red]")
        raise typer.Exit(2)
    try:
        document = load_report_document(path)
    except ParseError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    shown = set(order[: order.index(threshold) + 1])
    job = document.get("job", {})
    console.print(
        f"[bold]{job.get('target', '?')}[/bold] scanned by {job.get('scanner', '?')} "
        f"({job.get('state', '?')}, {document.get('status', '?')})",
        highlight=False,
    )
    table = Table(show_lines=False)
    table.add_column("Severity")
    table.add_column("Category")
    table.add_column("Location", overflow="fold")
    table.add_column("CWE", justify="right")
    rows = 0
    for severity in order:
        if severity not in shown:
            continue
        style = SEVERITY_STYLES[severity]
        for finding in document["findings"]:
            if not isinstance(finding, dict) or finding.get("severity") != severity:
                continue
            cwe = finding.get("cwe_id")
            table.add_row(
                f"[{style}]{severity}[/{style}]",
                str(finding.get("category", "")),
                str(finding.get("location", "")),
                f"CWE-{cwe}" if cwe else "",
            )
            rows += 1
    if rows:
        console.print(table)
    else:
        console.print("[green]No findings at or above that severity.[/green]")

    summary = document.get("summary", {})
    counts = ", ".join(f"{severity}: {summary.get(severity, 0)}" for severity in order)
    console.print(f"Summary: {summary.get('total_findings', len(document['findings']))} total ({counts})")
    if document.get("partial"):
        console.print("[yellow]Partial report:[/yellow]")
        for problem in document.get("problems", []):
            console.print(f"  - {problem}", markup=False)
