"""Markdown report rendering."""

from pathlib import Path

from dastbox.scan.models import ScanJob

from .grouping import group_by_severity
from .models import Finding, ScanReport


def render_finding_markdown(finding: Finding) -> str:
    """Render one finding as a Markdown section."""
    lines = [f"### {finding.category}", ""]
    location = finding.location or "n/a"
    if finding.parameter:
        location += f" (parameter `{finding.parameter}`)"
    lines.append(f"- **Location:** {location}")
    if finding.instances > 1:
        lines.append(f"- **Instances:** {finding.instances}")
    if finding.cwe_id:
        lines.append(f"- **CWE:** [CWE-{finding.cwe_id}](https://cwe.mitre.org/data/definitions/{finding.cwe_id}.html)")
    if finding.rule_id:
        lines.append(f"- **Rule:** {finding.rule_id}")
    if finding.evidence:
        lines.append(f"- **Evidence:** `{finding.evidence}`")
    if finding.description:
        lines.extend(["", finding.description])
    if finding.solution:
        lines.extend(["", f"**Solution:** {finding.solution}"])
    lines.append("")
    return "\n".join(lines)


def render_markdown(
    job: ScanJob,
    findings: list[Finding],
    partial: bool,
    problems: list[str],
    title: str = "Baseline scan report",
) -> str:
    grouped = group_by_severity(findings)
    lines = [
        f"# {title}",
        "",
        f"- **Target:** {job.target}",
        f"- **Scanner:** {job.scanner} ({job.image})",
        f"- **Job:** {job.job_id} ({job.state.value})",
    ]
    if job.started_at:
        lines.append(f"- **Started:** {job.started_at.isoformat()}")
    if job.duration is not None:
        lines.append(f"- **Duration:** {job.duration:.1f}s")
    lines.extend(["", "## Summary", "", "| Severity | Count |", "|---|---|"])
    for severity, scoped in grouped.items():
        lines.append(f"| {severity.value.title()} | {len(scoped)} |")
    lines.append(f"| **Total** | {len(findings)} |")

    if partial:
        lines.extend(["", "> **Partial report:** the scanner output was incomplete."])
        lines.extend(f"> - {problem}" for problem in problems)

    for severity, scoped in grouped.items():
        if not scoped:
            continue
        lines.extend(["", f"## {severity.value.title()} ({len(scoped)})", ""])
        lines.extend(render_finding_markdown(finding) for finding in scoped)
    return "\n".join(lines).rstrip() + "\n"


def write_markdown_report(path: Path, report: ScanReport) -> Path:
    """Write the human-readable rendering of a report."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        render_markdown(report.job, report.findings, report.partial, report.problems),
        encoding="utf-8",
    )
    return path


def write_recovered_markdown(
    path: Path, job: ScanJob, findings: list[Finding], problems: list[str]
) -> Path:
    """Write the human-readable rendering of findings salvaged from a failed scan."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = render_markdown(job, findings, True, problems, title="Recovered findings (scan did not complete)")
    path.write_text(text, encoding="utf-8")
    return path
