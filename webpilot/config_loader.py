"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .config_models import SystemConfig


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """
    Load and validate system configuration.

    Args:
        config_path: Path to the configuration file. Defaults to config/config.yml

    Returns:
        Validated SystemConfig instance

    Raises:
        ConfigurationError: If configuration loading or validation fails
    """
    if config_path is None:
        config_path = Path("config/config.yml")

    config_data: dict = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML config: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigurationError("Configuration file must contain a mapping at the top level")

    # Environment variables win over the file
    env_overrides = _load_env_overrides()
    if env_overrides:
        _merge(config_data, env_overrides)

    try:
        return SystemConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def _merge(target: dict, overrides: dict) -> None:
    """Merge nested override mappings into target in place."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _load_env_overrides() -> dict:
    """Load configuration overrides from environment variables."""
    overrides: dict = {}

    env_mappings = {
        "WEBPILOT_LOG_LEVEL": ("logging", "level"),
        "WEBPILOT_SCENARIO_DIR": ("paths", "scenario_dir"),
        "WEBPILOT_SCREENSHOT_DIR": ("paths", "screenshot_dir"),
        "WEBPILOT_LOG_DIR": ("paths", "log_dir"),
        "WEBPILOT_HEADLESS": ("browser", "headless"),
        "WEBPILOT_STEP_DELAY": ("replay", "step_delay_seconds"),
    }

    for env_var, config_path in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            current = overrides
            for key in config_path[:-1]:
                if key not in current:
                    current[key] = {}
                current = current[key]
            current[config_path[-1]] = value

    return overrides


def create_example_config(output_path: Path = Path("config/config.yml.example")) -> None:
    """Create an example configuration file."""
    example_config = {
        "paths": {
            "scenario_dir": "scenarios",
            "screenshot_dir": "screenshots",
            "log_dir": "logs"
        },
        "logging": {
            "level": "INFO"
        },
        "browser": {
            "headless": False,
            "window_width": 1920,
            "window_height": 1080,
            "element_timeout_ms": 10000
        },
        "replay": {
            "step_delay_seconds": 0.5,
            "page_change_timeout_ms": 10000,
            "poll_interval_seconds": 0.25,
            "call_variables_override": False
        }
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
