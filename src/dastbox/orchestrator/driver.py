"""Sequence deploy, scan, collect and cleanup for one run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from dastbox.config.settings import RunSettings
from dastbox.errors import CleanupError, InvalidStateError, NotFoundError, ParseError, ScanError
from dastbox.lifecycle import LifecycleManager
from dastbox.report import (
    ReportCollector,
    write_json_report,
    write_markdown_report,
    write_recovered_findings,
    write_recovered_markdown,
)
from dastbox.runtime import ContainerRuntime, NetworkMode, ServiceInstance, ServiceSpec
from dastbox.scan import ScanJob, ScanOptions, ScanRunner
from dastbox.utils.debug import debug_stage

from .models import STAGE_ORDER, RunOutcome, Stage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Stage, str], None]


class OrchestrationDriver:
    """Run one target deploy + scan + report cycle with guaranteed cleanup.

    Stages advance strictly in order; any failure moves the run to FAILED
    after best-effort cleanup of everything the run created. Cleanup errors
    are logged and kept on the outcome, never replacing the original error.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        settings: RunSettings,
        collector: ReportCollector | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.runtime = runtime
        self.settings = settings
        self.collector = collector or ReportCollector()
        self.progress = progress
        self.lifecycle = LifecycleManager(
            runtime,
            readiness_timeout=settings.readiness_timeout,
            readiness_interval=settings.readiness_interval,
            stop_grace=settings.kill_grace,
        )
        self.runner = ScanRunner(runtime, settings.network_mode, self._scan_options())
        self._network: str | None = None

    @property
    def network_name(self) -> str:
        return f"{self.settings.run_name}-net"

    async def run(self) -> RunOutcome:
        """Execute the run; the outcome carries the error instead of raising it."""
        outcome = RunOutcome(run_name=self.settings.run_name)
        try:
            self._advance(outcome, Stage.DEPLOYING, f"deploying {self.settings.target_image}")
            target = await self._deploy()

            self._advance(outcome, Stage.SCAN_PENDING, f"{target.name} ready at {target.endpoint}")
            url = self._scan_url(target)

            self._advance(outcome, Stage.SCANNING, f"{self.settings.profile} scanning {url}")
            outcome.job = await self.runner.run(
                self.settings.profile,
                target,
                url=url,
                image=self.settings.scanner_image,
            )
            try:
                await self.runner.wait(outcome.job)
            except ParseError:
                self._advance(outcome, Stage.COLLECTING, "collecting findings")
                raise

            self._advance(outcome, Stage.COLLECTING, "collecting findings")
            self._collect(outcome, outcome.job)

            self._advance(outcome, Stage.CLEANING_UP, "removing containers")
            outcome.cleanup_errors = await self._cleanup()
            self._advance(outcome, Stage.DONE, self._done_message(outcome))
        except asyncio.CancelledError as exc:
            outcome.failed_stage = outcome.stage
            outcome.error = exc
            if outcome.job is not None:
                await self.runner.cancel(outcome.job)
            outcome.cleanup_errors = await self._cleanup()
            self._fail(outcome)
            raise
        except Exception as exc:
            outcome.failed_stage = outcome.stage
            outcome.error = exc
            logger.error("%s", outcome.failure_message())
            if isinstance(exc, ScanError) and isinstance(exc.job, ScanJob):
                self._salvage(outcome, exc.job)
            outcome.cleanup_errors = await self._cleanup()
            self._fail(outcome)
        return outcome

    async def _deploy(self) -> ServiceInstance:
        settings = self.settings
        if settings.network_mode is NetworkMode.HOST:
            logger.warning(
                "host network mode exposes the target on every host interface; "
                "use it only for local Linux runs"
            )
            if settings.host_port != settings.container_port:
                logger.warning(
                    "port %d is ignored in host network mode; the target is reached on "
                    "its container port %d",
                    settings.host_port,
                    settings.container_port,
                )
        else:
            await self.runtime.create_network(self.network_name)
            self._network = self.network_name
        spec = ServiceSpec(
            name=settings.run_name,
            image=settings.target_image,
            network_mode=settings.network_mode,
            container_port=settings.container_port,
            host_port=settings.host_port,
            network=self._network,
            readiness_path=settings.readiness_path,
            labels={"dastbox.role": "target", "dastbox.run": settings.run_name},
        )
        return await self.lifecycle.deploy(spec)

    def _scan_url(self, target: ServiceInstance) -> str:
        if self.settings.scan_url:
            return self.settings.scan_url
        if self.settings.network_mode is NetworkMode.BRIDGE:
            return f"http://{target.name}:{self.settings.container_port}"
        if target.endpoint is None:
            raise InvalidStateError(f"Target '{target.name}' has no endpoint to scan")
        return target.endpoint.url

    def _scan_options(self) -> ScanOptions:
        settings = self.settings
        return ScanOptions(
            timeout=settings.scan_timeout,
            kill_grace=settings.kill_grace,
            spider_minutes=settings.spider_minutes,
            ajax_spider=settings.ajax_spider,
            ignore_warnings=settings.ignore_warnings,
            accepted_exit_codes=tuple(settings.accepted_exit_codes),
            network=self.network_name if settings.network_mode is NetworkMode.BRIDGE else None,
        )

    def _collect(self, outcome: RunOutcome, job: ScanJob) -> None:
        report = self.collector.parse(job.raw_output, job)
        outcome.report = report
        json_path = self.settings.report_path
        outcome.report_paths.append(write_json_report(json_path, report))
        outcome.report_paths.append(write_markdown_report(json_path.with_suffix(".md"), report))
        if self.settings.keep_raw_output and job.raw_output:
            outcome.report_paths.append(self._write_raw(json_path, job))

    def _salvage(self, outcome: RunOutcome, job: ScanJob) -> None:
        try:
            parsed = self.collector.recover(job.raw_output)
        except Exception as exc:
            logger.warning("could not salvage output of scan %s: %s", job.job_id, exc)
            return
        if not parsed.findings:
            return
        outcome.recovered = parsed.findings
        json_path = self.settings.report_path
        outcome.report_paths.append(
            write_recovered_findings(json_path, job, parsed.findings, parsed.problems)
        )
        outcome.report_paths.append(
            write_recovered_markdown(json_path.with_suffix(".md"), job, parsed.findings, parsed.problems)
        )
        logger.warning("wrote %d recovered finding(s) to %s", len(parsed.findings), json_path)

    def _write_raw(self, json_path: Path, job: ScanJob) -> Path:
        raw_path = json_path.with_name(f"{json_path.stem}.raw{json_path.suffix or '.json'}")
        raw_path.write_text(job.raw_output, encoding="utf-8")
        return raw_path

    async def _cleanup(self) -> list[CleanupError]:
        errors = await self.lifecycle.release_all()
        if self._network is not None:
            try:
                await self.runtime.remove_network(self._network)
            except NotFoundError:
                pass
            except Exception as exc:
                error = CleanupError(f"network '{self._network}'", exc)
                logger.warning("%s", error)
                errors.append(error)
            self._network = None
        return errors

    def _advance(self, outcome: RunOutcome, stage: Stage, message: str) -> None:
        current = STAGE_ORDER.index(outcome.stage)
        if STAGE_ORDER.index(stage) != current + 1:
            raise InvalidStateError(f"Cannot move from {outcome.stage.value} to {stage.value}")
        outcome.stage = stage
        outcome.history.append(stage)
        logger.info("[%s] %s", stage.value, message)
        debug_stage(stage.value, outcome.run_name, Message=message)
        if self.progress:
            self.progress(stage, message)

    def _fail(self, outcome: RunOutcome) -> None:
        outcome.stage = Stage.FAILED
        outcome.history.append(Stage.FAILED)
        debug_stage(Stage.FAILED.value, outcome.run_name, Error=str(outcome.error))
        if self.progress:
            self.progress(Stage.FAILED, outcome.failure_message())

    @staticmethod
    def _done_message(outcome: RunOutcome) -> str:
        report = outcome.report
        count = len(report.findings) if report else 0
        suffix = " (partial)" if outcome.partial else ""
        return f"{count} finding(s) written{suffix}"

