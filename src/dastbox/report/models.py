"""Report data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from dastbox.errors import InvalidStateError
from dastbox.scan.models import JobState, ScanJob


class Severity(str, Enum):
    """Finding severity, lowest first."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def from_risk_code(cls, code: Any) -> Severity | None:
        """Map ZAP risk codes 0..3; None for false positives or unknown codes."""
        return _RISK_CODES.get(str(code).strip())

    @classmethod
    def from_text(cls, text: str) -> Severity | None:
        """Parse labels such as ``High`` or ``Medium (High)`` (risk, then confidence)."""
        word = str(text).strip().split(" ", 1)[0].lower()
        if word in ("informational", "information"):
            word = "info"
        try:
            return cls(word)
        except ValueError:
            return None


_RANKS = {Severity.INFO: 0, Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}
_RISK_CODES = {"0": Severity.INFO, "1": Severity.LOW, "2": Severity.MEDIUM, "3": Severity.HIGH}


@dataclass(frozen=True)
class Finding:
    """A single weakness reported by the scanner."""

    severity: Severity
    category: str
    location: str
    description: str
    parameter: str = ""
    cwe_id: int | None = None
    rule_id: str = ""
    solution: str = ""
    evidence: str = ""
    instances: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "category": self.category,
            "location": self.location,
            "parameter": self.parameter,
            "description": self.description,
            "cwe_id": self.cwe_id,
            "rule_id": self.rule_id,
            "solution": self.solution,
            "evidence": self.evidence,
            "instances": self.instances,
        }


@dataclass
class ParsedOutput:
    """Findings recovered from raw scanner output."""

    findings: list[Finding] = field(default_factory=list)
    partial: bool = False
    problems: list[str] = field(default_factory=list)


@dataclass
class ScanReport:
    """Ordered findings of one successful scan job."""

    job: ScanJob
    findings: list[Finding] = field(default_factory=list)
    partial: bool = False
    problems: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.job.state is not JobState.SUCCEEDED:
            raise InvalidStateError(
                f"Reports are only produced for succeeded jobs; job {self.job.job_id} "
                f"is {self.job.state.value}"
            )

    def counts(self) -> dict[str, int]:
        """Finding count per severity, highest first."""
        return count_by_severity(self.findings)


def count_by_severity(findings: list[Finding]) -> dict[str, int]:
    counts = {severity.value: 0 for severity in sorted(Severity, key=lambda s: -s.rank)}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts
