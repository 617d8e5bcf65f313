"""Shared fixtures for calendarbot_rrule tests."""

import os
import zoneinfo
from collections.abc import Generator
from typing import Any

import pytest

from calendarbot_rrule.settings import ENV_PREFIX, reset_settings
from calendarbot_rrule.timezone_utils import TEST_TIME_ENV

FROZEN_NOW = "2024-01-01T00:00:00Z"


def pytest_configure(config: Any) -> None:
    """Configure pytest with optimized markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Ensure CALENDARBOT_RRULE_* variables and the settings singleton never leak between tests.

    Some tests set CALENDARBOT_RRULE_TEST_TIME to freeze the clock used for the
    default horizon, others configure settings through the environment.
    """
    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> str:
    """Freeze the engine clock at 2024-01-01T00:00:00Z."""
    monkeypatch.setenv(TEST_TIME_ENV, FROZEN_NOW)
    return FROZEN_NOW


@pytest.fixture
def new_york() -> zoneinfo.ZoneInfo:
    """Return a deterministic zone with daylight saving transitions.

    Using a fixed zone avoids host-local timezone differences which can make
    datetime-sensitive tests flaky.
    """
    return zoneinfo.ZoneInfo("America/New_York")
