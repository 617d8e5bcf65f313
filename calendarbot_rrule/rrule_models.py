"""Data models for RRULE processing - structured, validated recurrence rules."""

from __future__ import annotations

from enum import Enum
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import InvalidRuleError
from .temporal import TemporalUnit, TemporalValue, Weekday

FREQUENCY_KEY = "FREQ"
INTERVAL_KEY = "INTERVAL"
COUNT_KEY = "COUNT"
UNTIL_KEY = "UNTIL"
WEEKSTART_KEY = "WKST"

BYSECOND_KEY = "BYSECOND"
BYMINUTE_KEY = "BYMINUTE"
BYHOUR_KEY = "BYHOUR"
BYWEEKDAY_KEY = "BYDAY"
BYMONTHDAY_KEY = "BYMONTHDAY"
BYYEARDAY_KEY = "BYYEARDAY"
BYWEEKNUMBER_KEY = "BYWEEKNO"
BYMONTH_KEY = "BYMONTH"
BYSETPOSITION_KEY = "BYSETPOS"

WEEKDAY_ORDINAL_LIMIT = 53


class Frequency(str, Enum):
    """RRULE FREQ values, each stepping the base iteration by one unit."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @property
    def unit(self) -> TemporalUnit:
        return _FREQUENCY_UNITS[self]

    @property
    def is_time_based(self) -> bool:
        return self.unit.is_time_based


_FREQUENCY_UNITS: dict[Frequency, TemporalUnit] = {
    Frequency.SECONDLY: TemporalUnit.SECONDS,
    Frequency.MINUTELY: TemporalUnit.MINUTES,
    Frequency.HOURLY: TemporalUnit.HOURS,
    Frequency.DAILY: TemporalUnit.DAYS,
    Frequency.WEEKLY: TemporalUnit.WEEKS,
    Frequency.MONTHLY: TemporalUnit.MONTHS,
    Frequency.YEARLY: TemporalUnit.YEARS,
}


class IntListSpec(NamedTuple):
    """Validation rule for an integer BY* list."""

    key: str
    field_name: str
    minimum: int
    maximum: int
    allow_negative: bool = False

    def check(self, value: int) -> None:
        magnitude = abs(value) if self.allow_negative else value
        if not self.minimum <= magnitude <= self.maximum:
            sign = "+/-" if self.allow_negative else ""
            raise InvalidRuleError(
                f"must be in range of {sign}{self.minimum} to {sign}{self.maximum}",
                key=self.key,
                value=str(value),
            )


INT_LIST_SPECS: tuple[IntListSpec, ...] = (
    IntListSpec(BYSECOND_KEY, "by_second", 0, 60),
    IntListSpec(BYMINUTE_KEY, "by_minute", 0, 59),
    IntListSpec(BYHOUR_KEY, "by_hour", 0, 23),
    IntListSpec(BYMONTHDAY_KEY, "by_month_day", 1, 31, allow_negative=True),
    IntListSpec(BYYEARDAY_KEY, "by_year_day", 1, 366, allow_negative=True),
    IntListSpec(BYWEEKNUMBER_KEY, "by_week_number", 1, 53, allow_negative=True),
    IntListSpec(BYMONTH_KEY, "by_month", 1, 12),
    IntListSpec(BYSETPOSITION_KEY, "by_set_position", 1, 366, allow_negative=True),
)

INT_LIST_SPECS_BY_FIELD: dict[str, IntListSpec] = {spec.field_name: spec for spec in INT_LIST_SPECS}


class WeekdayRule(NamedTuple):
    """One BYDAY entry: ``ordinal`` 0 means every such weekday in the period."""

    ordinal: int
    weekday: Weekday

    def __str__(self) -> str:
        if self.ordinal == 0:
            return self.weekday.symbol
        return f"{self.ordinal:+d}{self.weekday.symbol}"


class RecurrenceRule(BaseModel):
    """A validated RRULE.

    Instances are immutable. Construction enforces the cross-field invariants,
    so an invalid combination never produces a usable object; failures surface
    as InvalidRuleError rather than pydantic's ValidationError.

    Negative BYMONTHDAY / BYYEARDAY / BYWEEKNO / BYSETPOS values keep their sign;
    interpreting them is the generator's job.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    frequency: Frequency
    interval: int = Field(default=1, description="Step between base iterations, in frequency units")
    count: Optional[int] = Field(default=None, description="Maximum number of occurrences")
    until: Optional[TemporalValue] = Field(default=None, description="Inclusive upper bound")
    week_start: Weekday = Weekday.MONDAY

    by_second: Optional[tuple[int, ...]] = None
    by_minute: Optional[tuple[int, ...]] = None
    by_hour: Optional[tuple[int, ...]] = None
    by_week_day: Optional[tuple[WeekdayRule, ...]] = None
    by_month_day: Optional[tuple[int, ...]] = None
    by_year_day: Optional[tuple[int, ...]] = None
    by_week_number: Optional[tuple[int, ...]] = None
    by_month: Optional[tuple[int, ...]] = None
    by_set_position: Optional[tuple[int, ...]] = None

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise _invalid_rule_from_validation(e) from e

    @classmethod
    def parse(cls, text: str, **kwargs: Any) -> RecurrenceRule:
        """Parse RRULE value text, see rrule_parser.parse_rrule."""
        from .rrule_parser import parse_rrule

        return parse_rrule(text, **kwargs)

    @field_validator(
        "by_second",
        "by_minute",
        "by_hour",
        "by_month_day",
        "by_year_day",
        "by_week_number",
        "by_month",
        "by_set_position",
    )
    @classmethod
    def check_int_list(cls, values: Optional[tuple[int, ...]], info: Any) -> Optional[tuple[int, ...]]:
        if values is None:
            return None
        spec = INT_LIST_SPECS_BY_FIELD[info.field_name]
        if not values:
            raise InvalidRuleError("must list at least one value", key=spec.key)
        for value in values:
            spec.check(value)
        return values

    @field_validator("by_week_day")
    @classmethod
    def check_week_days(cls, values: Optional[tuple[WeekdayRule, ...]]) -> Optional[tuple[WeekdayRule, ...]]:
        if values is None:
            return None
        if not values:
            raise InvalidRuleError("must list at least one value", key=BYWEEKDAY_KEY)
        for rule in values:
            if abs(rule.ordinal) > WEEKDAY_ORDINAL_LIMIT:
                raise InvalidRuleError(
                    f"ordinal must be in range of -{WEEKDAY_ORDINAL_LIMIT} to {WEEKDAY_ORDINAL_LIMIT}",
                    key=BYWEEKDAY_KEY,
                    value=str(rule),
                )
        return values

    @model_validator(mode="after")
    def check_invariants(self) -> RecurrenceRule:
        if self.count is not None and self.count <= 0:
            raise InvalidRuleError("must be > 0", key=COUNT_KEY, value=str(self.count))
        if self.interval <= 0:
            raise InvalidRuleError("must be > 0", key=INTERVAL_KEY, value=str(self.interval))
        if self.count is not None and self.until is not None:
            raise InvalidRuleError(f"Only one of {COUNT_KEY} or {UNTIL_KEY} may be provided, not both")
        if self.by_week_number is not None and self.frequency is not Frequency.YEARLY:
            raise InvalidRuleError(
                f"may only be specified when the {FREQUENCY_KEY} is {Frequency.YEARLY.value}",
                key=BYWEEKNUMBER_KEY,
            )
        if self.by_year_day is not None and self.frequency in (
            Frequency.DAILY,
            Frequency.WEEKLY,
            Frequency.MONTHLY,
        ):
            raise InvalidRuleError(
                f"cannot be specified with a {FREQUENCY_KEY} of {self.frequency.value}",
                key=BYYEARDAY_KEY,
            )
        if self.by_month_day is not None and self.frequency is Frequency.WEEKLY:
            raise InvalidRuleError(
                f"cannot be specified with a {FREQUENCY_KEY} of {Frequency.WEEKLY.value}",
                key=BYMONTHDAY_KEY,
            )
        return self

    @property
    def is_bounded(self) -> bool:
        """True when COUNT or UNTIL terminates the rule."""
        return self.count is not None or self.until is not None

    @property
    def has_time_filters(self) -> bool:
        return any(values is not None for values in (self.by_hour, self.by_minute, self.by_second))

    def as_parameter_map(self) -> dict[str, str]:
        """Canonical RRULE key/value pairs for serializers.

        Defaults (INTERVAL=1, WKST=MO) are omitted so that parsing a rule and
        exporting it gives back the keys that were written.
        """
        params: dict[str, str] = {FREQUENCY_KEY: self.frequency.value}
        if self.interval != 1:
            params[INTERVAL_KEY] = str(self.interval)
        if self.count is not None:
            params[COUNT_KEY] = str(self.count)
        if self.until is not None:
            params[UNTIL_KEY] = self.until.to_ical()
        if self.week_start is not Weekday.MONDAY:
            params[WEEKSTART_KEY] = self.week_start.symbol
        if self.by_week_day is not None:
            params[BYWEEKDAY_KEY] = ",".join(str(rule) for rule in self.by_week_day)
        for spec in INT_LIST_SPECS:
            values = getattr(self, spec.field_name)
            if values is not None:
                params[spec.key] = ",".join(str(value) for value in values)
        return params

    def __str__(self) -> str:
        return ";".join(f"{key}={value}" for key, value in self.as_parameter_map().items())


def _invalid_rule_from_validation(error: ValidationError) -> InvalidRuleError:
    """Unwrap the InvalidRuleError a validator raised, or describe pydantic's own complaint."""
    for detail in error.errors():
        original = (detail.get("ctx") or {}).get("error")
        if isinstance(original, InvalidRuleError):
            return original

    detail = error.errors()[0]
    location = ".".join(str(part) for part in detail.get("loc", ())) or None
    return InvalidRuleError(detail.get("msg", str(error)), key=location)
