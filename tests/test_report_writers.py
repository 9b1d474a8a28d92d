"""Tests for JSON and Markdown report output."""

import json
from pathlib import Path

import pytest

from dastbox.errors import ParseError
from dastbox.report import (
    ReportCollector,
    group_by_severity,
    load_report_document,
    render_markdown,
    write_json_report,
    write_markdown_report,
    write_recovered_findings,
)
from dastbox.report.models import Finding, Severity
from dastbox.scan import JobState, ScanJob


def _job(state: JobState = JobState.SUCCEEDED) -> ScanJob:
    job = ScanJob(target="http://localhost:8080", scanner="zap-baseline", image="owasp/zap2docker-stable")
    job.transition(JobState.RUNNING)
    job.transition(state)
    return job


class TestJSONReport:
    def test_document_layout(self, temp_dir: Path, dvwa_report: str):
        report = ReportCollector().parse(dvwa_report, _job())

        path = write_json_report(temp_dir / "nested" / "report.json", report)
        document = json.loads(path.read_text())

        assert document["status"] == "complete"
        assert document["partial"] is False
        assert document["report_metadata"]["tool"] == "dastbox"
        assert document["job"]["state"] == "succeeded"
        assert document["summary"] == {"total_findings": 4, "high": 2, "medium": 1, "low": 1, "info": 0}
        assert document["findings"][0]["severity"] == "high"
        assert document["findings"][0]["cwe_id"] == 79

    def test_recovered_document(self, temp_dir: Path):
        finding = Finding(Severity.MEDIUM, "Missing Header", "http://localhost:8080/", "desc")

        path = write_recovered_findings(
            temp_dir / "report.json", _job(JobState.TIMED_OUT), [finding], ["truncated"]
        )
        document = load_report_document(path)

        assert document["status"] == "recovered"
        assert document["partial"] is True
        assert document["problems"] == ["truncated"]
        assert document["job"]["state"] == "timed_out"

    def test_load_rejects_non_report(self, temp_dir: Path):
        path = temp_dir / "other.json"
        path.write_text('{"hello": "world"}')

        with pytest.raises(ParseError):
            load_report_document(path)

    def test_load_rejects_bad_json(self, temp_dir: Path):
        path = temp_dir / "broken.json"
        path.write_text("{")

        with pytest.raises(ParseError, match="not valid JSON"):
            load_report_document(path)


class TestMarkdownReport:
    def test_sections_by_severity(self, temp_dir: Path, dvwa_report: str):
        report = ReportCollector().parse(dvwa_report, _job())

        text = write_markdown_report(temp_dir / "report.md", report).read_text()

        assert text.startswith("# Baseline scan report")
        assert "| High | 2 |" in text
        assert "| **Total** | 4 |" in text
        assert text.index("## High (2)") < text.index("## Medium (1)") < text.index("## Low (1)")
        assert "## Info" not in text
        assert "(parameter `id`)" in text
        assert "[CWE-89]" in text
        assert "Partial report" not in text

    def test_partial_banner(self):
        text = render_markdown(_job(), [], True, ["scanner produced no output"])

        assert "> **Partial report:**" in text
        assert "> - scanner produced no output" in text


def test_group_by_severity_keeps_empty_levels():
    finding = Finding(Severity.LOW, "Cookie", "http://localhost:8080/", "")

    grouped = group_by_severity([finding])

    assert list(grouped) == [Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO]
    assert grouped[Severity.LOW] == [finding]
    assert grouped[Severity.HIGH] == []
