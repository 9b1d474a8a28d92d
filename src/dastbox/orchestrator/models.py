"""Data models for orchestration runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dastbox.errors import CleanupError
from dastbox.report.models import Finding, ScanReport
from dastbox.scan.models import ScanJob

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3
EXIT_INTERRUPTED = 130


class Stage(str, Enum):
    """Steps of one orchestration run."""

    INIT = "init"
    DEPLOYING = "deploying"
    SCAN_PENDING = "scan_pending"
    SCANNING = "scanning"
    COLLECTING = "collecting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER = [
    Stage.INIT,
    Stage.DEPLOYING,
    Stage.SCAN_PENDING,
    Stage.SCANNING,
    Stage.COLLECTING,
    Stage.CLEANING_UP,
    Stage.DONE,
]


@dataclass
class RunOutcome:
    """Everything a caller needs to know about a finished run."""

    run_name: str
    stage: Stage = Stage.INIT
    history: list[Stage] = field(default_factory=lambda: [Stage.INIT])
    failed_stage: Stage | None = None
    job: ScanJob | None = None
    report: ScanReport | None = None
    recovered: list[Finding] = field(default_factory=list)
    report_paths: list[Path] = field(default_factory=list)
    error: BaseException | None = None
    cleanup_errors: list[CleanupError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.stage is Stage.DONE

    @property
    def partial(self) -> bool:
        if self.report is not None:
            return self.report.partial
        return bool(self.recovered)

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return EXIT_PARTIAL if self.partial else EXIT_OK
        if self.recovered and self.report_paths:
            return EXIT_PARTIAL
        return EXIT_FAILED

    def failure_message(self) -> str:
        """One line naming the failed step and the underlying cause."""
        if self.error is None:
            return ""
        step = (self.failed_stage or self.stage).value.replace("_", " ")
        return f"{step} failed: {type(self.error).__name__}: {self.error}"

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
