"""Calendar date / zoned date-time values for recurrence processing.

A TemporalValue is either a CalendarDate (day granularity, iCalendar DATE) or a
ZonedInstant (second granularity with a fixed zone, iCalendar DATE-TIME). Both
expose the same arithmetic and field projections, but ordering is only defined
between values of the same granularity: comparing a date to a date-time raises
GranularityMismatchError instead of silently coercing one into the other.
"""

from __future__ import annotations

import calendar
import datetime
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from dateutil.relativedelta import relativedelta

from .exceptions import (
    GranularityMismatchError,
    InvalidDateAdjustmentError,
    MalformedTemporalError,
)
from .timezone_utils import UTC, resolve_zone

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y%m%d"
DATETIME_FORMAT = "%Y%m%dT%H%M%S"

_DATE_PATTERN = re.compile(r"^\d{8}$")
_DATETIME_PATTERN = re.compile(
    r"^(?P<local>\d{8}T\d{6})(?:(?P<utc>Z)|(?P<sign>[+-])(?P<hours>\d{2}):?(?P<minutes>\d{2}))?$"
)

# Minimal number of days a week must have inside a year to be numbered in it (ISO 8601)
MINIMAL_DAYS_IN_FIRST_WEEK = 4


class Granularity(str, Enum):
    """Resolution of a temporal value."""

    DATE = "DATE"
    DATE_TIME = "DATE-TIME"


class Weekday(str, Enum):
    """Days of the week keyed by their iCalendar two-letter symbol."""

    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"
    SUNDAY = "SU"

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def position(self) -> int:
        """Position in the week with Monday as 0, matching datetime.date.weekday()."""
        return _WEEKDAY_ORDER.index(self)

    @classmethod
    def from_symbol(cls, symbol: str) -> Weekday:
        """Look up a weekday by its two-letter symbol.

        Raises:
            ValueError: If the symbol is not recognized
        """
        try:
            return cls(symbol.strip().upper())
        except ValueError:
            raise ValueError(f"Weekday not recognized: {symbol!r}") from None

    @classmethod
    def from_position(cls, position: int) -> Weekday:
        return _WEEKDAY_ORDER[position]

    def __str__(self) -> str:
        return self.value


_WEEKDAY_ORDER: tuple[Weekday, ...] = tuple(Weekday)


class TemporalUnit(str, Enum):
    """Units accepted by TemporalValue.add()."""

    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"

    @property
    def is_time_based(self) -> bool:
        return self in (TemporalUnit.SECONDS, TemporalUnit.MINUTES, TemporalUnit.HOURS)


class TemporalField(str, Enum):
    """Fields accepted by TemporalValue.get() and TemporalValue.with_field()."""

    YEAR = "year"
    MONTH = "month"
    DAY_OF_MONTH = "day_of_month"
    DAY_OF_YEAR = "day_of_year"
    DAY_OF_WEEK = "day_of_week"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"

    @property
    def is_time_based(self) -> bool:
        return self in (TemporalField.HOUR, TemporalField.MINUTE, TemporalField.SECOND)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def week_of_year(day: datetime.date, week_start: Weekday = Weekday.MONDAY) -> int:
    """Week number of ``day`` within its own calendar year.

    Week 1 is the first week, starting on ``week_start``, with at least four
    days in the year. Days before week 1 are numbered 0 and days in a trailing
    partial week keep counting (53 or 54), so the number never jumps to the
    neighbouring year.
    """
    local_dow = (day.weekday() - week_start.position) % 7 + 1
    doy = day.timetuple().tm_yday
    first_week_start = (doy - local_dow) % 7
    offset = -first_week_start
    if first_week_start + 1 > MINIMAL_DAYS_IN_FIRST_WEEK:
        offset = 7 - first_week_start
    return (7 + offset + (doy - 1)) // 7


def weeks_in_year(year: int, week_start: Weekday = Weekday.MONDAY) -> int:
    """Number of the last week that belongs to ``year``.

    December 28th always falls in the last week holding at least four days of
    the year, whatever day the week starts on.
    """
    return week_of_year(datetime.date(year, 12, 28), week_start)


class TemporalValue(ABC):
    """Common contract of CalendarDate and ZonedInstant.

    Instances are immutable. Arithmetic and substitution return new values;
    substitutions that would land on a non-existent date raise
    InvalidDateAdjustmentError rather than rolling over into the next month.
    """

    granularity: ClassVar[Granularity]
    # Wrapped datetime.date or aware datetime.datetime, declared by each variant
    value: Any

    @abstractmethod
    def add(self, unit: TemporalUnit, amount: int) -> TemporalValue:
        """Add ``amount`` units; month and year steps clamp to the end of the month."""

    @abstractmethod
    def with_field(self, field: TemporalField, value: Any) -> TemporalValue:
        """Return a copy with ``field`` substituted."""

    @abstractmethod
    def with_date(self, day: datetime.date) -> TemporalValue:
        """Return a copy on ``day`` keeping any time of day and zone."""

    @abstractmethod
    def to_ical(self) -> str:
        """Render in iCalendar DATE / DATE-TIME form."""

    # Field projections

    def date(self) -> datetime.date:
        """Date-only projection."""
        value = self.value
        if isinstance(value, datetime.datetime):
            return value.date()
        return value

    @property
    def year(self) -> int:
        return self.value.year

    @property
    def month(self) -> int:
        return self.value.month

    @property
    def day(self) -> int:
        return self.value.day

    @property
    def day_of_year(self) -> int:
        return self.value.timetuple().tm_yday

    @property
    def day_of_week(self) -> Weekday:
        return Weekday.from_position(self.value.weekday())

    @property
    def is_date(self) -> bool:
        return self.granularity is Granularity.DATE

    def days_in_month(self) -> int:
        return days_in_month(self.year, self.month)

    def days_in_year(self) -> int:
        return days_in_year(self.year)

    def get(self, field: TemporalField) -> Any:
        """Read a field; DAY_OF_WEEK returns a Weekday."""
        if field is TemporalField.YEAR:
            return self.year
        if field is TemporalField.MONTH:
            return self.month
        if field is TemporalField.DAY_OF_MONTH:
            return self.day
        if field is TemporalField.DAY_OF_YEAR:
            return self.day_of_year
        if field is TemporalField.DAY_OF_WEEK:
            return self.day_of_week
        return self._get_time_field(field)

    def _get_time_field(self, field: TemporalField) -> int:
        raise GranularityMismatchError(self, field.value, operation="read")

    # Week based helpers

    def week_of_year(self, week_start: Weekday = Weekday.MONDAY) -> int:
        return week_of_year(self.date(), week_start)

    def with_week_of_year(self, week: int, week_start: Weekday = Weekday.MONDAY) -> TemporalValue:
        """Move by whole weeks so the value lands in week ``week`` of its year.

        Raises:
            InvalidDateAdjustmentError: If the year has no such week
        """
        last_week = weeks_in_year(self.year, week_start)
        if not 1 <= week <= last_week:
            raise InvalidDateAdjustmentError(
                f"Week {week} does not exist in {self.year} (1..{last_week})"
            )
        return self.add(TemporalUnit.WEEKS, week - self.week_of_year(week_start))

    def with_day_in_week(self, weekday: Weekday, week_start: Weekday = Weekday.MONDAY) -> TemporalValue:
        """Move to ``weekday`` inside the week (starting on ``week_start``) holding this value."""
        day = self.date()
        start_of_week = day - datetime.timedelta(days=(day.weekday() - week_start.position) % 7)
        offset = (weekday.position - week_start.position) % 7
        return self.with_date(start_of_week + datetime.timedelta(days=offset))

    # Ordering

    def compare(self, other: TemporalValue) -> int:
        """Three-way comparison; -1, 0 or 1.

        Raises:
            GranularityMismatchError: If the values are not the same variant
        """
        if not isinstance(other, TemporalValue) or other.granularity is not self.granularity:
            raise GranularityMismatchError(self, other)
        left, right = self.value, other.value
        return (left > right) - (left < right)

    def __lt__(self, other: TemporalValue) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: TemporalValue) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: TemporalValue) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: TemporalValue) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return self.value.isoformat()

    # Interop with the standard library

    def to_python(self) -> Union[datetime.date, datetime.datetime]:
        return self.value

    @staticmethod
    def from_python(
        value: Union[datetime.date, datetime.datetime],
        zone: Optional[datetime.tzinfo] = None,
    ) -> TemporalValue:
        """Wrap a stdlib date or datetime.

        Naive datetimes are placed in ``zone`` (UTC when omitted).
        """
        if isinstance(value, datetime.datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=zone or UTC)
            return ZonedInstant(value)
        return CalendarDate(value)


def _substitute_date_field(day: datetime.date, field: TemporalField, value: Any) -> datetime.date:
    try:
        if field is TemporalField.YEAR:
            return day.replace(year=value)
        if field is TemporalField.MONTH:
            return day.replace(month=value)
        if field is TemporalField.DAY_OF_MONTH:
            return day.replace(day=value)
        if field is TemporalField.DAY_OF_YEAR:
            if not 1 <= value <= days_in_year(day.year):
                raise ValueError(f"day of year {value} out of range for {day.year}")
            return datetime.date(day.year, 1, 1) + datetime.timedelta(days=value - 1)
        if field is TemporalField.DAY_OF_WEEK:
            # Monday based week, like the ISO calendar
            return day + datetime.timedelta(days=value.position - day.weekday())
    except ValueError as e:
        raise InvalidDateAdjustmentError(f"Cannot set {field.value}={value} on {day}: {e}") from e
    raise ValueError(f"Not a date field: {field}")


@dataclass(frozen=True)
class CalendarDate(TemporalValue):
    """A calendar day without time of day or zone (iCalendar DATE)."""

    value: datetime.date

    granularity: ClassVar[Granularity] = Granularity.DATE

    def __post_init__(self) -> None:
        if isinstance(self.value, datetime.datetime) or not isinstance(self.value, datetime.date):
            raise TypeError(f"CalendarDate requires a datetime.date, got {type(self.value).__name__}")

    @classmethod
    def of(cls, year: int, month: int, day: int) -> CalendarDate:
        return cls(datetime.date(year, month, day))

    def add(self, unit: TemporalUnit, amount: int) -> CalendarDate:
        if unit.is_time_based:
            raise GranularityMismatchError(self, unit.value, operation="add")
        return CalendarDate(self.value + relativedelta(**{unit.value: amount}))

    def with_field(self, field: TemporalField, value: Any) -> CalendarDate:
        if field.is_time_based:
            raise GranularityMismatchError(self, field.value, operation="set")
        return CalendarDate(_substitute_date_field(self.value, field, value))

    def with_date(self, day: datetime.date) -> CalendarDate:
        return CalendarDate(day)

    def to_ical(self) -> str:
        return self.value.strftime(DATE_FORMAT)


@dataclass(frozen=True)
class ZonedInstant(TemporalValue):
    """A wall-clock date-time to the second, bound to a fixed zone (iCalendar DATE-TIME).

    Calendar steps (days and up) keep the wall-clock time; clock steps (hours,
    minutes, seconds) move along the absolute timeline. Wall-clock times that
    fall in a daylight-saving gap are shifted forward by the gap length.
    """

    value: datetime.datetime

    granularity: ClassVar[Granularity] = Granularity.DATE_TIME

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime.datetime):
            raise TypeError(f"ZonedInstant requires a datetime.datetime, got {type(self.value).__name__}")
        if self.value.tzinfo is None:
            raise ValueError(f"ZonedInstant requires a zone, got naive {self.value!r}")
        if self.value.microsecond:
            object.__setattr__(self, "value", self.value.replace(microsecond=0))

    @classmethod
    def of(
        cls,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        zone: Optional[datetime.tzinfo] = None,
    ) -> ZonedInstant:
        return cls._normalized(datetime.datetime(year, month, day, hour, minute, second, tzinfo=zone or UTC))

    @classmethod
    def _normalized(cls, value: datetime.datetime) -> ZonedInstant:
        # Round trip through UTC resolves wall-clock times inside a DST gap
        return cls(value.astimezone(UTC).astimezone(value.tzinfo))

    @property
    def zone(self) -> datetime.tzinfo:
        return self.value.tzinfo  # type: ignore[return-value]

    @property
    def hour(self) -> int:
        return self.value.hour

    @property
    def minute(self) -> int:
        return self.value.minute

    @property
    def second(self) -> int:
        return self.value.second

    def _get_time_field(self, field: TemporalField) -> int:
        return int(getattr(self.value, field.value))

    def add(self, unit: TemporalUnit, amount: int) -> ZonedInstant:
        if unit.is_time_based:
            moved = self.value.astimezone(UTC) + datetime.timedelta(**{unit.value: amount})
            return ZonedInstant(moved.astimezone(self.zone))
        return self._normalized(self.value + relativedelta(**{unit.value: amount}))

    def with_field(self, field: TemporalField, value: Any) -> ZonedInstant:
        if field.is_time_based:
            try:
                replaced = self.value.replace(**{field.value: value})
            except ValueError as e:
                raise InvalidDateAdjustmentError(
                    f"Cannot set {field.value}={value} on {self.value}: {e}"
                ) from e
            return self._normalized(replaced)
        return self.with_date(_substitute_date_field(self.value.date(), field, value))

    def with_date(self, day: datetime.date) -> ZonedInstant:
        return self._normalized(self.value.replace(year=day.year, month=day.month, day=day.day))

    def to_ical(self) -> str:
        if self.zone is UTC or self.value.tzname() == "UTC":
            return self.value.strftime(DATETIME_FORMAT) + "Z"
        return self.value.strftime(DATETIME_FORMAT)


def parse_temporal(text: str, assumed_zone: Optional[datetime.tzinfo] = None) -> TemporalValue:
    """Parse iCalendar DATE or DATE-TIME text.

    Tries ``YYYYMMDD`` first, then ``YYYYMMDDTHHMMSS`` with an optional trailing
    ``Z`` (forces UTC) or numeric offset (``+0200`` / ``+02:00``). Floating
    date-times are placed in ``assumed_zone`` (UTC when omitted).

    Raises:
        MalformedTemporalError: If neither pattern matches or the fields are out of range
    """
    raw = text.strip() if isinstance(text, str) else text
    if not isinstance(raw, str) or not raw:
        raise MalformedTemporalError(str(text), "empty value")

    if _DATE_PATTERN.match(raw):
        try:
            return CalendarDate(datetime.datetime.strptime(raw, DATE_FORMAT).date())
        except ValueError as e:
            raise MalformedTemporalError(raw, str(e)) from e

    match = _DATETIME_PATTERN.match(raw)
    if match is None:
        raise MalformedTemporalError(raw)

    zone: datetime.tzinfo = assumed_zone or UTC
    if match.group("utc"):
        zone = UTC
    elif match.group("sign"):
        hours, minutes = int(match.group("hours")), int(match.group("minutes"))
        if hours > 23 or minutes > 59:
            raise MalformedTemporalError(raw, "offset out of range")
        offset = datetime.timedelta(hours=hours, minutes=minutes)
        zone = datetime.timezone(-offset if match.group("sign") == "-" else offset)

    try:
        local = datetime.datetime.strptime(match.group("local"), DATETIME_FORMAT)
    except ValueError as e:
        raise MalformedTemporalError(raw, str(e)) from e
    return ZonedInstant._normalized(local.replace(tzinfo=zone))


def parse_flex_temporal(
    text: str,
    value_type: Union[Granularity, str, None] = None,
    tzid: Optional[str] = None,
    default_zone: Optional[datetime.tzinfo] = None,
) -> TemporalValue:
    """Parse a DTSTART / DTEND / UNTIL style value honouring its VALUE and TZID parameters.

    Args:
        text: Property value text
        value_type: "DATE" or "DATE-TIME"; anything else (or None) means DATE-TIME
        tzid: Optional TZID parameter, resolved through the zone resolver
        default_zone: Zone for floating date-times without TZID

    Returns:
        The parsed value, guaranteed to have the requested granularity

    Raises:
        MalformedTemporalError: On unparsable text, unknown TZID, TZID combined with
            a trailing Z, or a value whose granularity contradicts ``value_type``
    """
    expected = _granularity_from_text(value_type)
    zone = default_zone
    if expected is Granularity.DATE_TIME and tzid:
        if text.strip().endswith("Z"):
            raise MalformedTemporalError(text, "a DATE-TIME may have a TZID parameter or end with 'Z', not both")
        try:
            zone = resolve_zone(tzid)
        except ValueError as e:
            raise MalformedTemporalError(text, str(e)) from e

    result = parse_temporal(text, zone)
    if result.granularity is not expected:
        raise MalformedTemporalError(
            text, f"expected {expected.value} but parsed a {result.granularity.value}"
        )
    return result


def _granularity_from_text(value_type: Union[Granularity, str, None]) -> Granularity:
    if isinstance(value_type, Granularity):
        return value_type
    if isinstance(value_type, str) and value_type.strip().upper() == Granularity.DATE.value:
        return Granularity.DATE
    return Granularity.DATE_TIME
