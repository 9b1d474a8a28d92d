"""Environment variable and configuration file loading."""

import os
from pathlib import Path
from typing import Any

import yaml

from dastbox.errors import ConfigError

ENV_PREFIX = "DASTBOX_"


def global_config_path() -> Path:
    """Return the path of the per-user config file (~/.dastbox/config.yml)."""
    return Path.home() / ".dastbox" / "config.yml"


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load settings from a YAML file.

    An explicit path must exist; the per-user default is optional.
    """
    explicit = config_path is not None
    path = config_path or global_config_path()
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping of settings")
    # Allow the settings to live under an optional top-level section.
    section = data.get("orchestrate")
    if isinstance(section, dict):
        data = section
    return {str(key).replace("-", "_").lower(): value for key, value in data.items()}


def load_env_overrides(keys: list[str], environ: dict[str, str] | None = None) -> dict[str, str]:
    """Collect ``DASTBOX_<KEY>`` environment variables for known setting keys."""
    environ = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for key in keys:
        value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            values[key] = value
    return values
