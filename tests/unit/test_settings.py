"""Unit tests for calendarbot_rrule.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from calendarbot_rrule.rrule_generator import GeneratorConfig
from calendarbot_rrule.settings import RecurrenceSettings, get_settings, reset_settings

pytestmark = pytest.mark.unit


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "rrule:\n"
        "  default_horizon_years: 3\n"
        "  max_iterations: 500\n"
        "  default_timezone: Europe/Berlin\n"
        "  log_level: warning\n",
        encoding="utf-8",
    )
    return path


def test_defaults() -> None:
    settings = RecurrenceSettings()
    assert settings.default_horizon_years == 1
    assert settings.default_horizon_days == 1
    assert settings.max_iterations == 100_000
    assert settings.default_timezone == "UTC"
    assert settings.log_level == "INFO"
    assert settings.debug is False


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_MAX_ITERATIONS", "10")
    monkeypatch.setenv("CALENDARBOT_RRULE_DEBUG", "true")
    settings = RecurrenceSettings()
    assert settings.max_iterations == 10
    assert settings.debug is True


def test_yaml_file_values_are_loaded(config_file: Path) -> None:
    settings = RecurrenceSettings(config_file=config_file)
    assert settings.default_horizon_years == 3
    assert settings.max_iterations == 500
    assert settings.default_timezone == "Europe/Berlin"
    assert settings.log_level == "WARNING"


def test_yaml_file_from_environment(monkeypatch: pytest.MonkeyPatch, config_file: Path) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_CONFIG_FILE", str(config_file))
    assert RecurrenceSettings().default_horizon_years == 3


def test_flat_yaml_mapping(tmp_path: Path) -> None:
    path = tmp_path / "flat.yaml"
    path.write_text("default_horizon_days: 7\n", encoding="utf-8")
    assert RecurrenceSettings(config_file=path).default_horizon_days == 7


def test_explicit_arguments_win_over_yaml(config_file: Path) -> None:
    settings = RecurrenceSettings(config_file=config_file, default_horizon_years=2)
    assert settings.default_horizon_years == 2
    assert settings.max_iterations == 500


def test_environment_wins_over_yaml(monkeypatch: pytest.MonkeyPatch, config_file: Path) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_MAX_ITERATIONS", "42")
    settings = RecurrenceSettings(config_file=config_file)
    assert settings.max_iterations == 42
    assert settings.default_horizon_years == 3


def test_missing_yaml_file_keeps_defaults(tmp_path: Path) -> None:
    settings = RecurrenceSettings(config_file=tmp_path / "missing.yaml")
    assert settings.default_horizon_years == 1


def test_invalid_yaml_value_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("max_iterations: -1\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        RecurrenceSettings(config_file=path)


def test_non_mapping_yaml_rejected(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must contain a mapping"):
        RecurrenceSettings(config_file=path)


@pytest.mark.parametrize("field,value", [("log_level", "LOUD"), ("default_timezone", "Mars/Olympus_Mons")])
def test_invalid_values_rejected(field: str, value: str) -> None:
    with pytest.raises(ValidationError):
        RecurrenceSettings(**{field: value})


def test_get_settings_is_cached_until_reset() -> None:
    first = get_settings()
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first


def test_generator_config_from_settings() -> None:
    config = GeneratorConfig.from_settings(RecurrenceSettings(max_iterations=50, default_horizon_days=3))
    assert config == GeneratorConfig(default_horizon_years=1, default_horizon_days=3, max_iterations=50)
