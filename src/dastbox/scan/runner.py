"""Run a scanner container against a deployed target and wait for it."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path

from dastbox.errors import (
    DastboxError,
    InvalidStateError,
    ParseError,
    ScanExecutionError,
    ScanTimeoutError,
)
from dastbox.report.raw import load_raw_output
from dastbox.runtime import ContainerRuntime, NetworkMode, ServiceInstance
from dastbox.utils.debug import debug_print

from .models import JobState, ScanJob, ScanOptions
from .profiles import ScannerProfile, get_profile

logger = logging.getLogger(__name__)

DIAGNOSTICS_LIMIT = 4000


@dataclass
class _JobContext:
    profile: ScannerProfile
    options: ScanOptions
    work_dir: Path | None
    owns_work_dir: bool


class ScanRunner:
    """Start scanner containers and supervise them until they exit.

    ``run`` returns as soon as the scanner is started; the returned job can be
    polled with ``job.done()`` or awaited with ``wait``. A scan that outlives
    its timeout is stopped, killed once the grace period expires, and marked
    timed out.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        network_mode: NetworkMode | str,
        default_options: ScanOptions | None = None,
    ):
        self.runtime = runtime
        self.network_mode = NetworkMode.parse(network_mode)
        self.default_options = default_options or ScanOptions()
        self._contexts: dict[str, _JobContext] = {}

    async def run(
        self,
        scanner: ScannerProfile | str,
        target: ServiceInstance,
        options: ScanOptions | None = None,
        *,
        url: str | None = None,
        image: str | None = None,
    ) -> ScanJob:
        """Start a scan of ``target`` and return its job handle."""
        profile = get_profile(scanner) if isinstance(scanner, str) else scanner
        if not target.is_running:
            raise InvalidStateError(
                f"Target '{target.name}' is {target.state.value}; scans need a running target"
            )
        target_url = url or (target.endpoint.url if target.endpoint else None)
        if not target_url:
            raise InvalidStateError(f"Target '{target.name}' has no reachable endpoint")

        options = options or self.default_options
        job = ScanJob(target=target_url, scanner=profile.name, image=image or profile.default_image)
        options, work_dir, owns_work_dir = self._prepare_work_dir(job, options)
        context = _JobContext(profile, options, work_dir, owns_work_dir)
        self._contexts[job.job_id] = context
        job._runner = self

        spec = profile.build_spec(job, options, self.network_mode)
        try:
            job.container_id = await self.runtime.create(spec)
            await self.runtime.start(job.container_id)
        except DastboxError as exc:
            job.error = f"scanner failed to start: {exc}"
            job.transition(JobState.FAILED)
            await self._release(job)
            raise ScanExecutionError(job.error, job) from exc
        except asyncio.CancelledError:
            job.error = "scan cancelled"
            job.transition(JobState.FAILED)
            await self._release(job)
            raise

        job.transition(JobState.RUNNING)
        job._task = asyncio.create_task(self.runtime.wait_exit(job.container_id))
        logger.info("scan %s started: %s -> %s", job.job_id, profile.name, target_url)
        debug_print("scan", f"job {job.job_id} running", Command=spec.command)
        return job

    async def wait(self, job: ScanJob, timeout: float | None = None) -> ScanJob:
        """Block until the job finishes or its timeout expires.

        Raises ScanTimeoutError or ScanExecutionError for unsuccessful jobs;
        the job (with captured output) is attached to the exception. A report
        file that cannot be read fails the job with ParseError.
        """
        if job.is_terminal:
            self._raise_for_state(job)
            return job
        context = self._context(job)
        if job._task is None:
            raise InvalidStateError(f"Scan job {job.job_id} was never started")
        effective_timeout = context.options.timeout if timeout is None else timeout

        try:
            await self._supervise(job, context, effective_timeout)
        except ParseError as exc:
            job.error = str(exc)
            if not job.is_terminal:
                job.transition(JobState.FAILED)
            raise
        finally:
            await self._release(job)
        self._raise_for_state(job)
        return job

    async def _supervise(self, job: ScanJob, context: _JobContext, timeout: float) -> None:
        try:
            exit_code = await asyncio.wait_for(asyncio.shield(job._task), timeout=timeout)
        except TimeoutError:
            await self._terminate(job, context)
            await self._collect(job, context)
            job.error = f"scan exceeded {timeout:g}s and was killed"
            job.transition(JobState.TIMED_OUT)
            raise ScanTimeoutError(f"Scan {job.job_id} timed out after {timeout:g}s", job) from None
        except asyncio.CancelledError:
            await self.cancel(job)
            raise
        except DastboxError as exc:
            await self._collect(job, context)
            job.error = f"lost track of scanner: {exc}"
            job.transition(JobState.FAILED)
            raise ScanExecutionError(f"Scan {job.job_id} failed: {exc}", job) from exc

        job.exit_code = exit_code
        await self._collect(job, context)
        if exit_code == 0 or exit_code in context.options.accepted_exit_codes:
            job.transition(JobState.SUCCEEDED)
            logger.info("scan %s succeeded (exit=%s)", job.job_id, exit_code)
        else:
            job.error = f"scanner exited with code {exit_code}"
            job.transition(JobState.FAILED)

    async def cancel(self, job: ScanJob) -> None:
        """Hard-kill a running job and mark it failed."""
        if job.is_terminal:
            return
        context = self._context(job)
        await self._terminate(job, context, grace=0.0)
        try:
            await self._collect(job, context)
        except ParseError as exc:
            logger.warning("discarding unreadable output of scan %s: %s", job.job_id, exc)
        job.error = "scan cancelled"
        job.transition(JobState.FAILED)
        await self._release(job)
        logger.warning("scan %s cancelled", job.job_id)

    def _prepare_work_dir(
        self, job: ScanJob, options: ScanOptions
    ) -> tuple[ScanOptions, Path | None, bool]:
        if options.work_dir:
            work_dir = Path(options.work_dir)
            work_dir.mkdir(parents=True, exist_ok=True)
            return options, work_dir, False
        work_dir = Path(tempfile.mkdtemp(prefix=f"dastbox-{job.job_id}-"))
        # The scanner image runs as an unprivileged user that must write here.
        os.chmod(work_dir, 0o777)
        return replace(options, work_dir=str(work_dir)), work_dir, True

    async def _terminate(
        self, job: ScanJob, context: _JobContext, grace: float | None = None
    ) -> None:
        grace = context.options.kill_grace if grace is None else grace
        if job.container_id is None:
            return
        try:
            await self.runtime.stop(job.container_id, grace=grace)
        except Exception as exc:
            logger.warning("stopping scanner %s failed: %s", job.job_id, exc)
        try:
            await self.runtime.kill(job.container_id)
        except Exception as exc:
            logger.debug("killing scanner %s: %s", job.job_id, exc)
        if job._task is None:
            return
        try:
            job.exit_code = await asyncio.wait_for(asyncio.shield(job._task), timeout=grace + 5.0)
        except (TimeoutError, DastboxError):
            job._task.cancel()

    async def _collect(self, job: ScanJob, context: _JobContext) -> None:
        stdout = stderr = ""
        if job.container_id is not None:
            try:
                stdout, stderr = await self.runtime.logs(job.container_id)
            except Exception as exc:
                logger.warning("could not read scanner logs for %s: %s", job.job_id, exc)
        combined = "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)
        job.diagnostics = combined[-DIAGNOSTICS_LIMIT:]

        report_path = None
        if context.work_dir is not None and context.profile.report_filename:
            report_path = context.work_dir / context.profile.report_filename
        if report_path is not None and report_path.is_file():
            job.raw_output = load_raw_output(report_path)
        else:
            job.raw_output = stdout

    async def _release(self, job: ScanJob) -> None:
        context = self._contexts.pop(job.job_id, None)
        if context is None:
            return
        if job.container_id is not None:
            try:
                await self.runtime.remove(job.container_id)
            except Exception as exc:
                logger.warning("could not remove scanner container for %s: %s", job.job_id, exc)
        if context.owns_work_dir and context.work_dir is not None:
            shutil.rmtree(context.work_dir, ignore_errors=True)

    def _context(self, job: ScanJob) -> _JobContext:
        context = self._contexts.get(job.job_id)
        if context is None:
            raise InvalidStateError(f"Scan job {job.job_id} does not belong to this runner")
        return context

    @staticmethod
    def _raise_for_state(job: ScanJob) -> None:
        if job.state is JobState.TIMED_OUT:
            raise ScanTimeoutError(f"Scan {job.job_id} timed out", job)
        if job.state is JobState.FAILED:
            detail = job.diagnostics.strip().splitlines()[-1:] or [""]
            message = f"Scan {job.job_id} failed: {job.error}"
            if detail[0]:
                message += f" ({detail[0]})"
            raise ScanExecutionError(message, job)
