"""Shared CLI app objects."""

import typer
from rich.console import Console

app = typer.Typer(
    name="orchestrate",
    help="Deploy a vulnerable target, run a baseline scan against it and collect the findings",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {
    "high": "bold red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}
