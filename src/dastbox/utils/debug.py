"""Debug utilities for orchestration visibility.

Thread-safe debug output with rich formatting, enabled with ``--debug``.
"""

import threading
from typing import Any

from rich.console import Console

# Thread-local storage for debug state
_debug_state = threading.local()

_VALUE_LIMIT = 200
_CATEGORY_STYLES = {
    "runtime": "bold cyan",
    "scan": "bold magenta",
    "stage": "bold green",
}


def set_debug_enabled(enabled: bool) -> None:
    """Set debug mode for the current thread."""
    _debug_state.enabled = enabled


def is_debug_enabled() -> bool:
    """Check if debug mode is enabled for the current thread."""
    return getattr(_debug_state, "enabled", False)


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        text = " ".join(str(item) for item in value)
    else:
        text = str(value)
    if len(text) > _VALUE_LIMIT:
        return f"{text[:_VALUE_LIMIT]}... ({len(text)} chars)"
    return text


def debug_print(category: str, message: str, **data: Any) -> None:
    """Print debug information on stderr if debug mode is enabled.

    Args:
        category: Debug category (runtime, scan, stage)
        message: Main message to display
        **data: Additional key-value pairs; None values are skipped
    """
    if not is_debug_enabled():
        return
    console = Console(stderr=True)
    style = _CATEGORY_STYLES.get(category, "bold cyan")
    console.print(f"[DEBUG:{category}] {message}", style=style, markup=False, highlight=False, soft_wrap=True)
    for key, value in data.items():
        if value is None:
            continue
        console.print(f"  {key}: {_format_value(value)}", style="dim", markup=False, highlight=False, soft_wrap=True)


def debug_stage(stage: str, run_name: str, **data: Any) -> None:
    """Log an orchestration stage transition in debug mode."""
    debug_print("stage", f"{run_name} -> {stage}", **data)
