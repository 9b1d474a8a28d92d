"""Logging setup for the command line entry point."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Route library logging through rich on stderr."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("dastbox")
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False
    # httpx logs every readiness probe at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
