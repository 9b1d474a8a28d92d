"""Report collection and rendering."""

from .collector import ReportCollector
from .grouping import SEVERITY_ORDER, group_by_severity
from .json_report import load_report_document, write_json_report, write_recovered_findings
from .markdown_report import (
    render_markdown,
    write_markdown_report,
    write_recovered_markdown,
)
from .models import Finding, ParsedOutput, ScanReport, Severity, count_by_severity
from .raw import decode_output, load_raw_output

__all__ = [
    "Finding",
    "ParsedOutput",
    "ReportCollector",
    "SEVERITY_ORDER",
    "ScanReport",
    "Severity",
    "count_by_severity",
    "decode_output",
    "group_by_severity",
    "load_raw_output",
    "load_report_document",
    "render_markdown",
    "write_json_report",
    "write_markdown_report",
    "write_recovered_findings",
    "write_recovered_markdown",
]
