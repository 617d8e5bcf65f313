"""Zone resolution and clock utilities for calendarbot_rrule."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import ClassVar, Optional

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc

TEST_TIME_ENV = "CALENDARBOT_RRULE_TEST_TIME"


class ZoneResolver:
    """Resolves TZID strings to tzinfo objects."""

    # Windows timezone names to IANA identifier mapping
    # Common Windows timezones used in ICS files from Outlook/Exchange
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "Arizona Standard Time": "America/Phoenix",
        "GMT Standard Time": "Europe/London",
        "Central European Standard Time": "Europe/Paris",
        "W. Europe Standard Time": "Europe/Berlin",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "India Standard Time": "Asia/Kolkata",
        "AUS Eastern Standard Time": "Australia/Sydney",
    }

    UTC_ALIASES: ClassVar[frozenset[str]] = frozenset({"UTC", "Z", "GMT", "Etc/UTC"})

    def resolve(self, tzid: str) -> datetime.tzinfo:
        """Resolve a TZID to a tzinfo.

        Args:
            tzid: IANA identifier ("Europe/Berlin") or Windows name ("Pacific Standard Time")

        Returns:
            tzinfo usable with ZonedInstant

        Raises:
            ValueError: If the identifier is unknown
        """
        name = tzid.strip().strip('"')
        if name in self.UTC_ALIASES:
            return UTC

        iana_name = self.WINDOWS_TZ_MAP.get(name, name)
        try:
            return zoneinfo.ZoneInfo(iana_name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone identifier: {tzid!r}") from e


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via CALENDARBOT_RRULE_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2025-10-27T08:20:00-07:00")
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(UTC)
                # Assume naive datetime is already UTC
                return dt.replace(tzinfo=UTC)
            except ValueError as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(UTC)


# Singleton instances for global use
_resolver = ZoneResolver()
_time_provider = TimeProvider()


def resolve_zone(tzid: Optional[str]) -> datetime.tzinfo:
    """Resolve a TZID to a tzinfo, treating None as UTC."""
    if tzid is None:
        return UTC
    return _resolver.resolve(tzid)


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def today_utc() -> datetime.date:
    """Get the current UTC calendar date."""
    return now_utc().date()
