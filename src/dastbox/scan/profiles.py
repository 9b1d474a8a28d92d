"""Scanner profiles: how to invoke a scanner image against one target URL."""

from abc import ABC, abstractmethod

from dastbox.runtime import Mount, NetworkMode, ServiceSpec

from .models import ScanJob, ScanOptions

DEFAULT_ZAP_IMAGE = "owasp/zap2docker-stable"
ZAP_WORK_DIR = "/zap/wrk"


class ScannerProfile(ABC):
    """Translate a scan request into a typed container spec."""

    name: str
    default_image: str
    report_filename: str | None = None
    work_mount: str = "/work"

    @abstractmethod
    def build_command(self, target_url: str, options: ScanOptions) -> list[str]:
        """Return the scanner's argument vector."""

    def build_spec(
        self,
        job: ScanJob,
        options: ScanOptions,
        network_mode: NetworkMode,
    ) -> ServiceSpec:
        mounts = []
        if options.work_dir:
            mounts.append(Mount(source=options.work_dir, target=self.work_mount))
        return ServiceSpec(
            name=f"dastbox-scan-{job.job_id}",
            image=job.image,
            network_mode=network_mode,
            network=options.network if network_mode is NetworkMode.BRIDGE else None,
            command=self.build_command(job.target, options),
            mounts=mounts,
            labels={"dastbox.role": "scanner", "dastbox.job": job.job_id},
        )


class ZAPBaselineProfile(ScannerProfile):
    """OWASP ZAP baseline: spider then passive scan only."""

    name = "zap-baseline"
    default_image = DEFAULT_ZAP_IMAGE
    report_filename = "report.json"
    work_mount = ZAP_WORK_DIR
    script = "zap-baseline.py"

    def build_command(self, target_url: str, options: ScanOptions) -> list[str]:
        command = [
            self.script,
            "-t",
            target_url,
            "-J",
            self.report_filename,
            "-m",
            str(max(1, options.spider_minutes)),
        ]
        if options.ajax_spider:
            command.append("-j")
        if options.ignore_warnings:
            command.append("-I")
        command.extend(options.extra_args)
        return command


class ZAPFullScanProfile(ZAPBaselineProfile):
    """OWASP ZAP full scan: spider plus active attacks."""

    name = "zap-full"
    script = "zap-full-scan.py"


SCANNER_PROFILES: dict[str, ScannerProfile] = {
    profile.name: profile for profile in (ZAPBaselineProfile(), ZAPFullScanProfile())
}

_ALIASES = {
    "zap": "zap-baseline",
    "baseline": "zap-baseline",
    "full": "zap-full",
    "zap-full-scan": "zap-full",
}


def get_profile(name: str) -> ScannerProfile:
    """Look up a scanner profile by name or alias."""
    key = _ALIASES.get(name.strip().lower(), name.strip().lower())
    profile = SCANNER_PROFILES.get(key)
    if profile is None:
        available = ", ".join(sorted(SCANNER_PROFILES))
        raise ValueError(f"Unknown scanner profile '{name}'. Available profiles: {available}")
    return profile
