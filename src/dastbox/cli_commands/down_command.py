"""``orchestrate down``: remove leftovers of an interrupted run."""

import asyncio

import typer

from dastbox.errors import DastboxError, NotFoundError

from .deps import cli_module
from .shared import app, console


async def teardown(runtime, name: str) -> list[str]:
    """Remove the target container and run network; return what was removed."""
    removed: list[str] = []
    try:
        await runtime.remove(name)
        removed.append(f"container {name}")
    except NotFoundError:
        pass
    network = f"{name}-net"
    try:
        await runtime.remove_network(network)
        removed.append(f"network {network}")
    except NotFoundError:
        pass
    return removed


@app.command()
def down(
    name: str = typer.Option("dastbox-target", "--name", help="Target container name used by 'up'"),
) -> None:
    """Remove the target container and network left behind by a run."""
    cli = cli_module()
    runtime = cli.DockerRuntime()
    try:
        removed = asyncio.run(teardown(runtime, name))
    except DastboxError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)
    if not removed:
        console.print(f"[dim]Nothing to remove for {name}.[/dim]")
        return
    for item in removed:
        console.print(f"[green]Removed[/green] {item}")
