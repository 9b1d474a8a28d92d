"""Scanner execution: profiles, jobs and the runner that supervises them."""

from .models import JobState, ScanJob, ScanOptions
from .profiles import (
    DEFAULT_ZAP_IMAGE,
    SCANNER_PROFILES,
    ScannerProfile,
    ZAPBaselineProfile,
    ZAPFullScanProfile,
    get_profile,
)
from .runner import ScanRunner

__all__ = [
    "DEFAULT_ZAP_IMAGE",
    "JobState",
    "SCANNER_PROFILES",
    "ScanJob",
    "ScanOptions",
    "ScanRunner",
    "ScannerProfile",
    "ZAPBaselineProfile",
    "ZAPFullScanProfile",
    "get_profile",
]
