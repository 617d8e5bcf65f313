"""calendarbot_rrule - iCalendar recurrence rules for CalendarBot.

Parses RRULE values into validated rules and expands them into the ordered
occurrences of a date or zoned date-time anchor. The package has no I/O;
hosting code hands in already extracted property values.
"""

__version__ = "0.1.0"

from .exceptions import (
    GranularityMismatchError,
    InvalidDateAdjustmentError,
    InvalidRuleError,
    MalformedTemporalError,
    RecurrenceError,
)
from .rrule_generator import GeneratorConfig, RecurrenceGenerator, calculate_recurrences
from .rrule_logging import configure_rrule_logging
from .rrule_models import Frequency, RecurrenceRule, WeekdayRule
from .rrule_parser import parse_rrule
from .settings import RecurrenceSettings, get_settings, reset_settings
from .temporal import (
    CalendarDate,
    Granularity,
    TemporalValue,
    Weekday,
    ZonedInstant,
    parse_flex_temporal,
    parse_temporal,
)

__all__ = [
    "CalendarDate",
    "Frequency",
    "GeneratorConfig",
    "Granularity",
    "GranularityMismatchError",
    "InvalidDateAdjustmentError",
    "InvalidRuleError",
    "MalformedTemporalError",
    "RecurrenceError",
    "RecurrenceGenerator",
    "RecurrenceRule",
    "RecurrenceSettings",
    "TemporalValue",
    "Weekday",
    "WeekdayRule",
    "ZonedInstant",
    "calculate_recurrences",
    "configure_rrule_logging",
    "get_settings",
    "parse_flex_temporal",
    "parse_rrule",
    "parse_temporal",
    "reset_settings",
]
