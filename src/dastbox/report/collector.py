"""Normalize scanner output into an ordered finding list.

Understands ZAP's traditional JSON report and, as a fallback, the summary
that ``zap-baseline.py`` prints on stdout. Output cut short by a killed scan
is salvaged alert by alert and flagged as partial instead of failing.
"""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any

from dastbox.scan.models import ScanJob

from .models import Finding, ParsedOutput, ScanReport, Severity
from .raw import decode_output

logger = logging.getLogger(__name__)

_ALERTS_RE = re.compile(r'"alerts"\s*:\s*\[')
_SITE_RE = re.compile(r'"@name"\s*:\s*"((?:[^"\\]|\\.)*)"')
_TAG_RE = re.compile(r"<[^>]+>")
_SUMMARY_RE = re.compile(
    r"^(?P<level>FAIL|WARN|INFO)(?:-NEW|-INPROG)?:\s*(?P<name>.+?)\s*\[(?P<rule>\d+)\]\s*x\s*(?P<count>\d+)"
)
_SUMMARY_URL_RE = re.compile(r"^\s+(?P<url>https?://\S+)")
_SUMMARY_LEVELS = {"FAIL": Severity.HIGH, "WARN": Severity.MEDIUM, "INFO": Severity.INFO}


def _clean_text(value: Any) -> str:
    text = html.unescape(_TAG_RE.sub(" ", str(value or "")))
    return " ".join(text.split())


def _as_int(value: Any) -> int | None:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _decode_site_name(escaped: str) -> str:
    try:
        return json.loads(f'"{escaped}"')
    except json.JSONDecodeError:
        return escaped


class ReportCollector:
    """Turn raw scanner output into findings and reports."""

    def parse(self, raw_output: str | bytes, job: ScanJob) -> ScanReport:
        """Build the report of a succeeded job from its raw output."""
        parsed = self.recover(raw_output)
        return ScanReport(
            job=job,
            findings=parsed.findings,
            partial=parsed.partial,
            problems=parsed.problems,
        )

    def recover(self, raw_output: str | bytes) -> ParsedOutput:
        """Extract whatever findings the output holds, flagging partial results."""
        if isinstance(raw_output, bytes):
            raw_output = decode_output(raw_output)
        text = (raw_output or "").strip()
        if not text:
            return ParsedOutput(partial=True, problems=["scanner produced no output"])

        if text.startswith("{") or text.startswith("["):
            parsed = self._parse_json(text)
        else:
            parsed = self._parse_summary(text)
        parsed.findings = self._order(self._dedupe(parsed.findings))
        for problem in parsed.problems:
            logger.warning("scanner output: %s", problem)
        return parsed

    def _parse_json(self, text: str) -> ParsedOutput:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, RecursionError) as exc:
            alerts = self._salvage_alerts(text)
            if isinstance(exc, json.JSONDecodeError):
                problems = [f"truncated or malformed JSON ({exc.msg} at char {exc.pos})"]
            else:
                problems = ["malformed JSON (nested too deeply)"]
            findings, alert_problems = self._convert_alerts(alerts)
            return ParsedOutput(findings=findings, partial=True, problems=problems + alert_problems)

        problems: list[str] = []
        sites = data.get("site") if isinstance(data, dict) else None
        if isinstance(sites, dict):
            sites = [sites]
        if not isinstance(sites, list):
            return ParsedOutput(partial=True, problems=["report has no 'site' list"])

        alerts: list[tuple[str, Any]] = []
        for site in sites:
            if not isinstance(site, dict):
                problems.append("skipped a site entry that is not an object")
                continue
            site_alerts = site.get("alerts", [])
            if not isinstance(site_alerts, list):
                problems.append(f"alerts of site {site.get('@name', '?')} are not a list")
                continue
            alerts.extend((str(site.get("@name") or ""), alert) for alert in site_alerts)

        findings, alert_problems = self._convert_alerts(alerts)
        problems.extend(alert_problems)
        return ParsedOutput(findings=findings, partial=bool(problems), problems=problems)

    def _salvage_alerts(self, text: str) -> list[tuple[str, Any]]:
        decoder = json.JSONDecoder()
        alerts: list[tuple[str, Any]] = []
        for match in _ALERTS_RE.finditer(text):
            names = _SITE_RE.findall(text, 0, match.start())
            site = _decode_site_name(names[-1]) if names else ""
            pos = match.end()
            while True:
                while pos < len(text) and text[pos] in " \t\r\n,":
                    pos += 1
                if pos >= len(text) or text[pos] != "{":
                    break
                try:
                    alert, pos = decoder.raw_decode(text, pos)
                except (json.JSONDecodeError, RecursionError):
                    break
                alerts.append((site, alert))
        return alerts

    def _convert_alerts(self, alerts: list[tuple[str, Any]]) -> tuple[list[Finding], list[str]]:
        findings: list[Finding] = []
        problems: list[str] = []
        for site, alert in alerts:
            if not isinstance(alert, dict):
                problems.append("skipped an alert that is not an object")
                continue
            finding = self._finding_from_alert(site, alert)
            if finding is None:
                continue
            findings.append(finding)
        return findings, problems

    def _finding_from_alert(self, site: str, alert: dict[str, Any]) -> Finding | None:
        risk = alert.get("riskcode")
        if str(risk).strip() == "-1":
            return None
        severity = Severity.from_risk_code(risk) or Severity.from_text(alert.get("riskdesc", ""))
        if severity is None:
            severity = Severity.INFO

        instances = alert.get("instances")
        instances = [item for item in instances if isinstance(item, dict)] if isinstance(instances, list) else []
        first = instances[0] if instances else {}
        location = str(first.get("uri") or site or "").strip()
        count = _as_int(alert.get("count")) or len(instances) or 1

        return Finding(
            severity=severity,
            category=_clean_text(alert.get("name") or alert.get("alert") or "Unnamed alert"),
            location=location,
            description=_clean_text(alert.get("desc")),
            parameter=str(first.get("param") or "").strip(),
            cwe_id=_as_int(alert.get("cweid")),
            rule_id=str(alert.get("pluginid") or alert.get("alertRef") or "").strip(),
            solution=_clean_text(alert.get("solution")),
            evidence=str(first.get("evidence") or "").strip(),
            instances=count,
        )

    def _parse_summary(self, text: str) -> ParsedOutput:
        findings: list[Finding] = []
        current: dict[str, Any] | None = None
        for line in text.splitlines():
            match = _SUMMARY_RE.match(line.strip())
            if match:
                if current:
                    findings.append(Finding(**current))
                current = {
                    "severity": _SUMMARY_LEVELS[match["level"]],
                    "category": match["name"],
                    "location": "",
                    "description": "",
                    "rule_id": match["rule"],
                    "instances": int(match["count"]),
                }
                continue
            url = _SUMMARY_URL_RE.match(line)
            if current and url and not current["location"]:
                current["location"] = url["url"]
        if current:
            findings.append(Finding(**current))
        problems = ["output is not a JSON report; severities inferred from the console summary"]
        return ParsedOutput(findings=findings, partial=True, problems=problems)

    def _dedupe(self, findings: list[Finding]) -> list[Finding]:
        seen: set[tuple[str, str, str, str]] = set()
        deduped: list[Finding] = []
        for finding in findings:
            key = (finding.category, finding.severity.value, finding.location, finding.parameter)
            if key in seen:
                continue
            seen.add(key)
            deduped.append(finding)
        return deduped

    def _order(self, findings: list[Finding]) -> list[Finding]:
        return sorted(findings, key=lambda f: (-f.severity.rank, f.category.lower(), f.location))
