"""End-to-end tests for the orchestration driver against an in-memory runtime."""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path

import pytest

from dastbox.config import RunSettings
from dastbox.errors import (
    AlreadyExistsError,
    ParseError,
    ReadinessTimeoutError,
    ScanExecutionError,
    ScanTimeoutError,
)
from dastbox.orchestrator import EXIT_FAILED, EXIT_OK, EXIT_PARTIAL, OrchestrationDriver, RunOutcome, Stage
from dastbox.report import Severity
from dastbox.runtime import NetworkMode

from conftest import FakeRuntime


class BinaryReportRuntime(FakeRuntime):
    """Scanner that exits cleanly after writing a report that is not UTF-8."""

    async def start(self, container_id: str) -> None:
        await super().start(container_id)
        container = self.containers[container_id]
        if container.is_scanner:
            report = Path(container.spec.mounts[0].source) / "report.json"
            report.write_bytes(b'{"site": [\xff\xfe]}')


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_dvwa_baseline_scan(self, fake_runtime: FakeRuntime, run_settings: RunSettings):
        stages: list[Stage] = []
        driver = OrchestrationDriver(fake_runtime, run_settings, progress=lambda stage, _: stages.append(stage))

        outcome = await driver.run()

        assert outcome.succeeded
        assert outcome.exit_code == EXIT_OK
        assert outcome.error is None
        assert stages == [
            Stage.DEPLOYING,
            Stage.SCAN_PENDING,
            Stage.SCANNING,
            Stage.COLLECTING,
            Stage.CLEANING_UP,
            Stage.DONE,
        ]
        findings = outcome.report.findings
        assert len(findings) == 4
        assert {f.category for f in findings} == {
            "Cross Site Scripting (Reflected)",
            "SQL Injection",
            "Cookie No HttpOnly Flag",
            "Cleartext Transmission of Sensitive Information",
        }
        assert findings[0].severity is Severity.HIGH
        assert fake_runtime.ready_urls == ["http://localhost:8080/"]
        assert outcome.job.target == "http://localhost:8080"
        assert fake_runtime.containers == {}

    @pytest.mark.asyncio
    async def test_reports_written(self, fake_runtime: FakeRuntime, run_settings: RunSettings):
        outcome = await OrchestrationDriver(fake_runtime, run_settings).run()

        json_path = run_settings.report_path
        assert outcome.report_paths == [json_path, json_path.with_suffix(".md")]
        document = json.loads(json_path.read_text())
        assert document["status"] == "complete"
        assert document["summary"]["total_findings"] == 4
        assert "SQL Injection" in json_path.with_suffix(".md").read_text()

    @pytest.mark.asyncio
    async def test_keep_raw_output(self, fake_runtime: FakeRuntime, run_settings: RunSettings, dvwa_report: str):
        settings = replace(run_settings, keep_raw_output=True)

        outcome = await OrchestrationDriver(fake_runtime, settings).run()

        raw_path = settings.report_path.with_name("report.raw.json")
        assert raw_path in outcome.report_paths
        assert raw_path.read_text() == dvwa_report

    @pytest.mark.asyncio
    async def test_bridge_network_scans_by_container_name(self, fake_runtime: FakeRuntime, run_settings: RunSettings):
        settings = replace(run_settings, network_mode=NetworkMode.BRIDGE, container_port=80)

        outcome = await OrchestrationDriver(fake_runtime, settings).run()

        assert outcome.exit_code == EXIT_OK
        assert outcome.job.target == "http://dvwa:80"
        assert fake_runtime.ready_urls == ["http://localhost:8080/"]
        assert ("create_network", "dvwa-net") in fake_runtime.calls
        assert ("remove_network", "dvwa-net") in fake_runtime.calls
        assert fake_runtime.networks == set()

    @pytest.mark.asyncio
    async def test_explicit_scan_url(self, fake_runtime: FakeRuntime, run_settings: RunSettings):
        settings = replace(run_settings, scan_url="http://localhost:8080/login.php")

        outcome = await OrchestrationDriver(fake_runtime, settings).run()

        assert outcome.job.target == "http://localhost:8080/login.php"

    @pytest.mark.asyncio
    async def test_host_mode_warns_when_port_is_ignored(
        self, fake_runtime: FakeRuntime, run_settings: RunSettings, caplog, monkeypatch
    ):
        monkeypatch.setattr(logging.getLogger("dastbox"), "propagate", True)
        settings = replace(run_settings, host_port=9000)

        with caplog.at_level(logging.WARNING, logger="dastbox.orchestrator.driver"):
            outcome = await OrchestrationDriver(fake_runtime, settings).run()

        assert outcome.succeeded
        assert fake_runtime.ready_urls == ["http://localhost:8080/"]
        assert any("port 9000 is ignored" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_host_mode_matching_ports_do_not_warn(
        self, fake_runtime: FakeRuntime, run_settings: RunSettings, caplog, monkeypatch
    ):
        monkeypatch.setattr(logging.getLogger("dastbox"), "propagate", True)

        with caplog.at_level(logging.WARNING, logger="dastbox.orchestrator.driver"):
            await OrchestrationDriver(fake_runtime, run_settings).run()

        assert not any("is ignored" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_reported_not_raised(self, dvwa_report: str, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_output=dvwa_report, fail_remove={"dvwa"})

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert outcome.succeeded
        assert len(outcome.cleanup_errors) == 1
        assert "dvwa" in str(outcome.cleanup_errors[0])


class TestPartialResults:
    @pytest.mark.asyncio
    async def test_truncated_output_marks_report_partial(self, dvwa_report: str, run_settings: RunSettings):
        cut = dvwa_report.index('"Cookie No HttpOnly Flag"')
        runtime = FakeRuntime(scanner_output=dvwa_report[:cut])

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert outcome.succeeded
        assert outcome.partial
        assert outcome.exit_code == EXIT_PARTIAL
        assert len(outcome.report.findings) == 2
        document = json.loads(run_settings.report_path.read_text())
        assert document["status"] == "complete"
        assert document["partial"] is True

    @pytest.mark.asyncio
    async def test_timeout_cleans_up_and_recovers_findings(self, dvwa_report: str, run_settings: RunSettings):
        cut = dvwa_report.index('"Cookie No HttpOnly Flag"')
        runtime = FakeRuntime(scanner_output=dvwa_report[:cut], scanner_hangs=True)
        settings = replace(run_settings, scan_timeout=0.05)

        outcome = await OrchestrationDriver(runtime, settings).run()

        assert outcome.stage is Stage.FAILED
        assert outcome.failed_stage is Stage.SCANNING
        assert isinstance(outcome.error, ScanTimeoutError)
        assert outcome.report is None
        assert len(outcome.recovered) == 2
        assert outcome.exit_code == EXIT_PARTIAL
        assert runtime.containers == {}
        document = json.loads(settings.report_path.read_text())
        assert document["status"] == "recovered"
        assert document["job"]["state"] == "timed_out"

    @pytest.mark.asyncio
    async def test_timeout_without_output_fails(self, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_hangs=True)
        settings = replace(run_settings, scan_timeout=0.05)

        outcome = await OrchestrationDriver(runtime, settings).run()

        assert outcome.exit_code == EXIT_FAILED
        assert outcome.report_paths == []
        assert not settings.report_path.exists()
        assert runtime.containers == {}
        assert outcome.failure_message().startswith("scanning failed: ScanTimeoutError")


class TestFailures:
    @pytest.mark.asyncio
    async def test_name_collision_fails_deploy(self, dvwa_report: str, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_output=dvwa_report, existing={"dvwa"})

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert outcome.failed_stage is Stage.DEPLOYING
        assert isinstance(outcome.error, AlreadyExistsError)
        assert outcome.exit_code == EXIT_FAILED
        assert not any(call[0] == "create" for call in runtime.calls)

    @pytest.mark.asyncio
    async def test_unreachable_target_is_removed(self, dvwa_report: str, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_output=dvwa_report, ready=False)

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert isinstance(outcome.error, ReadinessTimeoutError)
        assert outcome.failure_message().startswith("deploying failed: ReadinessTimeoutError")
        assert runtime.containers == {}
        assert outcome.job is None

    @pytest.mark.asyncio
    async def test_scanner_error_exit(self, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_exit_code=3, scanner_logs=("", "Failed to access: http://localhost:8080"))

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert isinstance(outcome.error, ScanExecutionError)
        assert outcome.exit_code == EXIT_FAILED
        assert "Failed to access" in outcome.job.diagnostics
        assert runtime.containers == {}
        with pytest.raises(ScanExecutionError):
            outcome.raise_for_error()

    @pytest.mark.asyncio
    async def test_undecodable_report_fails_collecting(self, run_settings: RunSettings):
        runtime = BinaryReportRuntime()

        outcome = await OrchestrationDriver(runtime, run_settings).run()

        assert isinstance(outcome.error, ParseError)
        assert "not valid UTF-8" in str(outcome.error)
        assert outcome.failed_stage is Stage.COLLECTING
        assert outcome.stage is Stage.FAILED
        assert outcome.exit_code == EXIT_FAILED
        assert outcome.report is None
        assert runtime.containers == {}
        assert not run_settings.report_path.exists()

    @pytest.mark.asyncio
    async def test_bridge_network_removed_after_failure(self, run_settings: RunSettings):
        runtime = FakeRuntime(ready=False)
        settings = replace(run_settings, network_mode=NetworkMode.BRIDGE)

        await OrchestrationDriver(runtime, settings).run()

        assert runtime.networks == set()

    @pytest.mark.asyncio
    async def test_cancellation_tears_everything_down(self, run_settings: RunSettings):
        runtime = FakeRuntime(scanner_hangs=True)
        stages: list[Stage] = []
        driver = OrchestrationDriver(runtime, run_settings, progress=lambda stage, _: stages.append(stage))

        task = asyncio.create_task(driver.run())
        for _ in range(50):
            if Stage.SCANNING in stages:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert runtime.containers == {}
        assert stages[-1] is Stage.FAILED


def test_outcome_exit_codes():
    assert RunOutcome(run_name="x", stage=Stage.DONE).exit_code == EXIT_OK
    assert RunOutcome(run_name="x", stage=Stage.FAILED).exit_code == EXIT_FAILED
    assert RunOutcome(run_name="x").failure_message() == ""
