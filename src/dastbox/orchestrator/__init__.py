"""Orchestration driver: deploy, scan, collect, clean up."""

from .driver import OrchestrationDriver
from .models import (
    EXIT_FAILED,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_PARTIAL,
    EXIT_USAGE,
    RunOutcome,
    Stage,
)

__all__ = [
    "EXIT_FAILED",
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "EXIT_PARTIAL",
    "EXIT_USAGE",
    "OrchestrationDriver",
    "RunOutcome",
    "Stage",
]
