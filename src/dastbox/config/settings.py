"""Resolved settings for one orchestration run.

Sources, highest priority first:
1. Command line options
2. Environment variables (DASTBOX_<KEY>)
3. YAML config file (--config, else ~/.dastbox/config.yml)
4. Defaults
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from dastbox.errors import ConfigError
from dastbox.runtime.models import NetworkMode
from dastbox.scan.profiles import DEFAULT_ZAP_IMAGE, get_profile

from .env_loader import load_env_overrides, load_yaml_config

DEFAULT_TARGET_IMAGE = "vulnerables/web-dvwa"
_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class RunSettings:
    """Every knob of a run. Network mode has no default on purpose."""

    network_mode: NetworkMode
    run_name: str = "dastbox-target"
    target_image: str = DEFAULT_TARGET_IMAGE
    scanner_image: str = DEFAULT_ZAP_IMAGE
    profile: str = "zap-baseline"
    host_port: int = 8080
    container_port: int = 80
    readiness_path: str = "/"
    readiness_timeout: float = 120.0
    readiness_interval: float = 2.0
    scan_timeout: float = 600.0
    kill_grace: float = 10.0
    spider_minutes: int = 1
    ajax_spider: bool = False
    ignore_warnings: bool = True
    accepted_exit_codes: list[int] = field(default_factory=list)
    report_path: Path = Path("reports/report.json")
    scan_url: str | None = None
    keep_raw_output: bool = False

    def __post_init__(self) -> None:
        self.network_mode = NetworkMode.parse(self.network_mode)
        self.report_path = Path(self.report_path)


# Setting key (CLI / env / YAML) -> RunSettings attribute
SETTING_KEYS: dict[str, str] = {
    "network": "network_mode",
    "name": "run_name",
    "target": "target_image",
    "scanner": "scanner_image",
    "profile": "profile",
    "port": "host_port",
    "container_port": "container_port",
    "readiness_path": "readiness_path",
    "readiness_timeout": "readiness_timeout",
    "readiness_interval": "readiness_interval",
    "scan_timeout": "scan_timeout",
    "kill_grace": "kill_grace",
    "spider_minutes": "spider_minutes",
    "ajax_spider": "ajax_spider",
    "ignore_warnings": "ignore_warnings",
    "accepted_exit_codes": "accepted_exit_codes",
    "report": "report_path",
    "scan_url": "scan_url",
    "keep_raw_output": "keep_raw_output",
}

# YAML files may use the attribute names too.
_ALIASES = {attr: key for key, attr in SETTING_KEYS.items()}
_ALIASES.update({"target_image": "target", "scanner_image": "scanner", "host_port": "port"})


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{value}'")


def _to_number(key: str, value: Any, kind: type, minimum: float) -> Any:
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got '{value}'") from None
    if number < minimum:
        raise ConfigError(f"{key} must be >= {minimum:g}, got {number}")
    return number


def _to_exit_codes(key: str, value: Any) -> list[int]:
    if isinstance(value, str):
        value = [part for part in re.split(r"[,\s]+", value) if part]
    if isinstance(value, int):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{key} must be a list of exit codes")
    return [_to_number(key, item, int, 0) for item in value]


def _coerce(key: str, value: Any) -> Any:
    if key == "network":
        try:
            return NetworkMode.parse(value)
        except ValueError as exc:
            raise ConfigError(str(exc)) from None
    if key == "name":
        name = str(value).strip()
        if not _NAME_RE.match(name):
            raise ConfigError(f"name '{value}' is not a valid container name")
        return name
    if key == "profile":
        try:
            return get_profile(str(value)).name
        except ValueError as exc:
            raise ConfigError(str(exc)) from None
    if key in ("port", "container_port"):
        port = _to_number(key, value, int, 1)
        if port > 65535:
            raise ConfigError(f"{key} must be <= 65535, got {port}")
        return port
    if key == "spider_minutes":
        return _to_number(key, value, int, 1)
    if key in ("readiness_timeout", "scan_timeout"):
        return _to_number(key, value, float, 0.1)
    if key in ("readiness_interval", "kill_grace"):
        return _to_number(key, value, float, 0.0)
    if key in ("ajax_spider", "ignore_warnings", "keep_raw_output"):
        return _to_bool(key, value)
    if key == "accepted_exit_codes":
        return _to_exit_codes(key, value)
    if key == "report":
        return Path(str(value)).expanduser()
    if key == "readiness_path":
        path = str(value).strip() or "/"
        return path if path.startswith("/") else f"/{path}"
    text = str(value).strip()
    if not text:
        raise ConfigError(f"{key} must not be empty")
    return text


def resolve_settings(
    cli_values: dict[str, Any] | None = None,
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> RunSettings:
    """Merge every configuration source into validated run settings."""
    merged: dict[str, Any] = {}
    for key, value in load_yaml_config(config_path).items():
        canonical = _ALIASES.get(key, key)
        if canonical not in SETTING_KEYS:
            raise ConfigError(f"Unknown setting '{key}' in config file")
        merged[canonical] = value
    merged.update(load_env_overrides(list(SETTING_KEYS), environ))
    merged.update({key: value for key, value in (cli_values or {}).items() if value is not None})

    unknown = sorted(set(merged) - set(SETTING_KEYS))
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")
    if "network" not in merged:
        raise ConfigError(
            "Network mode is not set. Pass --network bridge|host, set DASTBOX_NETWORK, "
            "or add 'network' to the config file"
        )

    kwargs = {SETTING_KEYS[key]: _coerce(key, value) for key, value in merged.items()}
    return RunSettings(**kwargs)


def describe_settings(settings: RunSettings) -> dict[str, Any]:
    """Plain mapping of settings for display."""
    values: dict[str, Any] = {}
    for item in fields(settings):
        value = getattr(settings, item.name)
        if isinstance(value, NetworkMode):
            value = value.value
        elif isinstance(value, Path):
            value = str(value)
        values[item.name] = value
    return values
