"""Unit tests for calendarbot_rrule.rrule_logging."""

import logging
from collections.abc import Generator
from typing import Any

import pytest
from colorlog import ColoredFormatter

from calendarbot_rrule.rrule_logging import (
    RRULE_MODULES,
    configure_from_settings,
    configure_rrule_logging,
    create_console_handler,
    get_logging_status,
)
from calendarbot_rrule.settings import RecurrenceSettings

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_logger_levels() -> Generator[None, Any, None]:
    """Put root and package logger levels back after each test."""
    names = ["", *RRULE_MODULES]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_default_configuration_is_info() -> None:
    configure_rrule_logging()
    status = get_logging_status()
    assert status["root"] == "INFO"
    assert status["calendarbot_rrule"] == "INFO"
    assert status["calendarbot_rrule.rrule_generator"] == "INFO"


def test_debug_mode() -> None:
    configure_rrule_logging(debug_mode=True)
    assert logging.getLogger("calendarbot_rrule.rrule_stages").level == logging.DEBUG


def test_debug_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_DEBUG", "yes")
    configure_rrule_logging()
    assert get_logging_status()["calendarbot_rrule"] == "DEBUG"


def test_force_debug_overrides_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_DEBUG", "1")
    configure_rrule_logging(force_debug=False)
    assert get_logging_status()["calendarbot_rrule"] == "INFO"


def test_log_level_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDARBOT_RRULE_LOG_LEVEL", "warning")
    configure_rrule_logging()
    assert logging.getLogger().level == logging.WARNING


def test_console_handler_installed_only_without_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    configure_rrule_logging()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, ColoredFormatter)

    configure_rrule_logging()
    assert len(root.handlers) == 1


def test_create_console_handler_level() -> None:
    handler = create_console_handler(logging.WARNING)
    assert handler.level == logging.WARNING
    assert isinstance(handler.formatter, ColoredFormatter)


def test_configure_from_settings() -> None:
    configure_from_settings(RecurrenceSettings(log_level="ERROR"))
    assert get_logging_status()["calendarbot_rrule.rrule_parser"] == "ERROR"

    configure_from_settings(RecurrenceSettings(debug=True))
    assert get_logging_status()["calendarbot_rrule.rrule_parser"] == "DEBUG"
