"""
Configuration management for dastbox.

Supports multiple configuration sources in order of priority:
1. Command line options (highest priority)
2. Environment variables (DASTBOX_*)
3. YAML config file (--config, else ~/.dastbox/config.yml)
4. Default values (lowest priority)
"""

from .env_loader import (
    ENV_PREFIX,
    global_config_path,
    load_env_overrides,
    load_yaml_config,
)
from .settings import (
    DEFAULT_TARGET_IMAGE,
    SETTING_KEYS,
    RunSettings,
    describe_settings,
    resolve_settings,
)

__all__ = [
    "DEFAULT_TARGET_IMAGE",
    "ENV_PREFIX",
    "RunSettings",
    "SETTING_KEYS",
    "describe_settings",
    "global_config_path",
    "load_env_overrides",
    "load_yaml_config",
    "resolve_settings",
]
