"""RRULE value text parsing for calendarbot_rrule.

Turns the value part of an RRULE content line (``FREQ=WEEKLY;BYDAY=TU,TH;COUNT=5``)
into a validated RecurrenceRule. Line unfolding and parameter handling belong to
the content line reader, this module only sees the already extracted value.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Any, Callable, Optional

from .exceptions import InvalidRuleError
from .rrule_models import (
    BYWEEKDAY_KEY,
    COUNT_KEY,
    FREQUENCY_KEY,
    INT_LIST_SPECS,
    INTERVAL_KEY,
    UNTIL_KEY,
    WEEKSTART_KEY,
    Frequency,
    RecurrenceRule,
    WeekdayRule,
)
from .temporal import Weekday, parse_temporal

logger = logging.getLogger(__name__)

_WEEKDAY_TOKEN = re.compile(r"^(?P<ordinal>[+-]?\d{1,2})?(?P<symbol>[A-Z]{2})$")

RECOGNIZED_KEYS: frozenset[str] = frozenset(
    {FREQUENCY_KEY, INTERVAL_KEY, COUNT_KEY, UNTIL_KEY, WEEKSTART_KEY, BYWEEKDAY_KEY}
    | {spec.key for spec in INT_LIST_SPECS}
)


def split_calendar_value_to_map(text: str) -> dict[str, str]:
    """Split ``KEY=VALUE;KEY=VALUE`` text into an ordered dict.

    Keys are upper-cased. Empty text gives an empty dict.

    Raises:
        InvalidRuleError: If a segment is not a single ``key=value`` pair or a key repeats
    """
    if not text:
        return {}

    pairs: dict[str, str] = {}
    for segment in text.split(";"):
        parts = segment.split("=")
        if len(parts) != 2 or not parts[0].strip():
            raise InvalidRuleError(
                f'Invalid key value pair {segment!r}, should be in format "<key>=<value>" separated by \';\''
            )
        key, value = parts[0].strip().upper(), parts[1].strip()
        if key in pairs:
            raise InvalidRuleError("Duplicate key found", key=key, value=value)
        pairs[key] = value
    return pairs


def parse_int(key: str, token: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise InvalidRuleError("not an integer", key=key, value=token) from None


def parse_int_list(key: str, text: str) -> tuple[int, ...]:
    """Parse a comma separated integer list; range checks happen on the model."""
    return tuple(parse_int(key, token) for token in text.split(","))


def parse_weekday(key: str, symbol: str) -> Weekday:
    try:
        return Weekday.from_symbol(symbol)
    except ValueError as e:
        raise InvalidRuleError(str(e), key=key, value=symbol) from e


def parse_weekday_list(text: str) -> tuple[WeekdayRule, ...]:
    """Parse BYDAY tokens like ``MO``, ``+2TU`` or ``-1SU`` into (ordinal, weekday) pairs."""
    rules = []
    for token in text.split(","):
        match = _WEEKDAY_TOKEN.match(token.strip().upper())
        if match is None:
            raise InvalidRuleError("expected [+/-N]<weekday code>", key=BYWEEKDAY_KEY, value=token)
        ordinal = int(match.group("ordinal")) if match.group("ordinal") else 0
        rules.append(WeekdayRule(ordinal, parse_weekday(BYWEEKDAY_KEY, match.group("symbol"))))
    return tuple(rules)


def parse_frequency(text: str) -> Frequency:
    try:
        return Frequency(text.upper())
    except ValueError:
        raise InvalidRuleError("unknown frequency", key=FREQUENCY_KEY, value=text) from None


_SCALAR_PARSERS: dict[str, tuple[str, Callable[[str], Any]]] = {
    INTERVAL_KEY: ("interval", lambda value: parse_int(INTERVAL_KEY, value)),
    COUNT_KEY: ("count", lambda value: parse_int(COUNT_KEY, value)),
    WEEKSTART_KEY: ("week_start", lambda value: parse_weekday(WEEKSTART_KEY, value)),
    BYWEEKDAY_KEY: ("by_week_day", parse_weekday_list),
}


def parse_rrule(text: str, assumed_zone: Optional[datetime.tzinfo] = None) -> RecurrenceRule:
    """Parse RRULE value text into a validated RecurrenceRule.

    Args:
        text: RRULE value, e.g. "FREQ=MONTHLY;BYDAY=MO,TU,WE,TH,FR;BYSETPOS=1"
        assumed_zone: Zone for a floating UNTIL date-time (UTC when omitted)

    Returns:
        Immutable RecurrenceRule

    Raises:
        InvalidRuleError: Unknown or duplicate key, bad value, missing FREQ or
            contradictory fields
        MalformedTemporalError: If UNTIL is neither a DATE nor a DATE-TIME
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidRuleError(f"{FREQUENCY_KEY} is required", key=FREQUENCY_KEY)

    parts = split_calendar_value_to_map(text.strip())

    unknown = [key for key in parts if key not in RECOGNIZED_KEYS]
    if unknown:
        raise InvalidRuleError("unrecognized rule part", key=unknown[0], value=parts[unknown[0]])

    if FREQUENCY_KEY not in parts:
        raise InvalidRuleError(f"{FREQUENCY_KEY} is required", key=FREQUENCY_KEY)

    fields: dict[str, Any] = {"frequency": parse_frequency(parts[FREQUENCY_KEY])}

    for key, (field_name, parser) in _SCALAR_PARSERS.items():
        if key in parts:
            fields[field_name] = parser(parts[key])

    if UNTIL_KEY in parts:
        fields["until"] = parse_temporal(parts[UNTIL_KEY], assumed_zone)

    for spec in INT_LIST_SPECS:
        if spec.key in parts:
            fields[spec.field_name] = parse_int_list(spec.key, parts[spec.key])

    rule = RecurrenceRule(**fields)
    logger.debug("Parsed RRULE %r -> %s", text, rule)
    return rule
