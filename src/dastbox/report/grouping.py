"""Helpers for grouping findings."""

from .models import Finding, Severity

SEVERITY_ORDER = [Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO]


def group_by_severity(findings: list[Finding]) -> dict[Severity, list[Finding]]:
    """Group findings by severity, highest first."""
    grouped: dict[Severity, list[Finding]] = {severity: [] for severity in SEVERITY_ORDER}
    for finding in findings:
        grouped[finding.severity].append(finding)
    return grouped
