"""Configuration management for calendarbot_rrule."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .timezone_utils import resolve_zone

logger = logging.getLogger(__name__)

ENV_PREFIX = "CALENDARBOT_RRULE_"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RecurrenceSettings(BaseSettings):
    """Recurrence engine settings with environment variable support.

    Precedence: explicit constructor arguments, then CALENDARBOT_RRULE_*
    environment variables (or .env), then the optional YAML file, then defaults.
    """

    # Private attributes
    _explicit_args: set = PrivateAttr(default_factory=set)
    _env_vars_set: set = PrivateAttr(default_factory=set)

    # Horizon used when calculate() gets no explicit bound
    default_horizon_years: int = Field(default=1, ge=0, description="Years added to the default horizon")
    default_horizon_days: int = Field(default=1, ge=0, description="Days added to the default horizon")

    # Guard against pathological rules (FREQ=SECONDLY without COUNT / UNTIL)
    max_iterations: Optional[int] = Field(
        default=100_000, gt=0, description="Maximum base iterations per rule, None disables"
    )

    default_timezone: str = Field(default="UTC", description="Zone assumed for floating date-times")

    log_level: str = Field(default="INFO", description="Log level for calendarbot_rrule loggers")
    debug: bool = Field(default=False, description="Enable debug logging")

    config_file: Optional[Path] = Field(default=None, description="Optional YAML configuration file")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    def __init__(self, **kwargs: Any) -> None:
        # Track which environment variables are set before calling parent
        env_vars_set = {
            key[len(ENV_PREFIX) :].lower() for key in os.environ if key.upper().startswith(ENV_PREFIX)
        }

        super().__init__(**kwargs)

        self._explicit_args = set(kwargs.keys())
        self._env_vars_set = env_vars_set

        self._load_yaml_config()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_VALID_LOG_LEVELS)}, got {value!r}")
        return level

    @field_validator("default_timezone")
    @classmethod
    def validate_default_timezone(cls, value: str) -> str:
        resolve_zone(value)
        return value

    def _load_yaml_config(self) -> None:
        """Apply YAML values that were not given explicitly or through the environment."""
        if self.config_file is None:
            return

        path = Path(self.config_file).expanduser()
        if not path.exists():
            logger.warning("Config file %s does not exist, using defaults", path)
            return

        try:
            with path.open(encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Could not load config file {path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(config_data).__name__}")

        # Allow either a flat mapping or one nested under "rrule"
        section = config_data.get("rrule", config_data)
        loaded = []
        for setting in type(self).model_fields:
            if setting == "config_file" or setting not in section:
                continue
            if setting in self._explicit_args or setting in self._env_vars_set:
                continue
            setattr(self, setting, section[setting])
            loaded.append(setting)

        logger.debug("Loaded %s from %s", ", ".join(loaded) or "no settings", path)


# Global settings management
_settings_instance: Optional[RecurrenceSettings] = None


def get_settings() -> RecurrenceSettings:
    """Get the global settings instance, creating it lazily if needed."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = RecurrenceSettings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
