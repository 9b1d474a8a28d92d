"""JSON report rendering."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dastbox.errors import ParseError
from dastbox.scan.models import ScanJob

from .models import Finding, ScanReport, count_by_severity

REPORT_SCHEMA_VERSION = 1


def _document(
    status: str,
    job: ScanJob,
    findings: list[Finding],
    partial: bool,
    problems: list[str],
    generated_at: datetime,
) -> dict[str, Any]:
    return {
        "report_metadata": {
            "generated_at": generated_at.isoformat(),
            "tool": "dastbox",
            "schema_version": REPORT_SCHEMA_VERSION,
        },
        "status": status,
        "partial": partial,
        "problems": list(problems),
        "job": job.to_dict(),
        "summary": {
            "total_findings": len(findings),
            **count_by_severity(findings),
        },
        "findings": [finding.to_dict() for finding in findings],
    }


def _write(path: Path, document: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


def write_json_report(path: Path, report: ScanReport) -> Path:
    """Write the machine-readable report of a succeeded scan."""
    document = _document(
        "complete",
        report.job,
        report.findings,
        report.partial,
        report.problems,
        report.generated_at,
    )
    return _write(path, document)


def write_recovered_findings(
    path: Path,
    job: ScanJob,
    findings: list[Finding],
    problems: list[str] | None = None,
) -> Path:
    """Write findings salvaged from a scan that did not succeed."""
    document = _document(
        "recovered",
        job,
        findings,
        True,
        problems or [],
        datetime.now(UTC),
    )
    return _write(path, document)


def load_report_document(path: Path) -> dict[str, Any]:
    """Read a report written by ``write_json_report`` or ``write_recovered_findings``."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Cannot read report {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ParseError(f"Report {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict) or not isinstance(document.get("findings"), list):
        raise ParseError(f"Report {path} has no findings list")
    return document
