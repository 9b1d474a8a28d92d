"""Data models for scan jobs and their options."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from dastbox.errors import InvalidStateError

if TYPE_CHECKING:
    from .runner import ScanRunner


class JobState(str, Enum):
    """State of a single scanner invocation."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT})

_JOB_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.QUEUED: {JobState.RUNNING, JobState.FAILED},
    JobState.RUNNING: {JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT},
    JobState.SUCCEEDED: set(),
    JobState.FAILED: set(),
    JobState.TIMED_OUT: set(),
}


@dataclass
class ScanOptions:
    """Runtime settings for one scan."""

    timeout: float = 600.0
    kill_grace: float = 10.0
    spider_minutes: int = 1
    ajax_spider: bool = False
    ignore_warnings: bool = True
    accepted_exit_codes: tuple[int, ...] = ()
    extra_args: list[str] = field(default_factory=list)
    work_dir: str | None = None
    network: str | None = None


@dataclass
class ScanJob:
    """One scanner invocation and the handle used to wait for it.

    Jobs are never reused: a new job is created for every ``ScanRunner.run``.
    """

    target: str
    scanner: str
    image: str
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: JobState = JobState.QUEUED
    started_at: datetime | None = None
    finished_at: datetime | None = None
    exit_code: int | None = None
    container_id: str | None = None
    raw_output: str = ""
    diagnostics: str = ""
    error: str | None = None
    _task: asyncio.Task | None = field(default=None, repr=False, compare=False)
    _runner: ScanRunner | None = field(default=None, repr=False, compare=False)

    def transition(self, new_state: JobState) -> None:
        """Move to a new state, stamping start/end times."""
        if new_state is self.state:
            return
        if new_state not in _JOB_TRANSITIONS[self.state]:
            raise InvalidStateError(
                f"Scan job {self.job_id} cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        now = datetime.now(UTC)
        if new_state is JobState.RUNNING:
            self.started_at = now
        elif new_state in TERMINAL_STATES:
            self.finished_at = now

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def done(self) -> bool:
        """Non-blocking poll: True once the scanner process has exited or was killed."""
        if self.is_terminal:
            return True
        return self._task is not None and self._task.done()

    async def wait(self, timeout: float | None = None) -> ScanJob:
        """Block until the job finishes; see ``ScanRunner.wait``."""
        if self._runner is None:
            raise InvalidStateError(f"Scan job {self.job_id} was never started")
        return await self._runner.wait(self, timeout=timeout)

    def to_dict(self) -> dict[str, object]:
        return {
            "job_id": self.job_id,
            "target": self.target,
            "scanner": self.scanner,
            "image": self.image,
            "state": self.state.value,
            "exit_code": self.exit_code,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration,
            "error": self.error,
        }
