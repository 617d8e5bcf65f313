"""Expand / limit stages and the per-frequency pipeline table for RRULE evaluation.

A single base iteration turns one source value into the candidate set of that
period by running it through a fixed sequence of stages:

- expand stages replace every candidate with the values obtained by
  substituting a BY* field (cross product of BY* values and candidates)
- limit stages drop candidates whose field matches none of the BY* values
- the final set-position stage sorts, de-duplicates and applies BYSETPOS

Which stages run, and in which order, depends on the rule frequency. Stages are
only built for BY* lists that are present; an absent list is a no-op. Stages
never mutate their input, they return a new tuple of candidates.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .exceptions import InvalidDateAdjustmentError
from .rrule_models import Frequency, RecurrenceRule, WeekdayRule
from .temporal import TemporalField, TemporalValue, Weekday, days_in_month, days_in_year, weeks_in_year

logger = logging.getLogger(__name__)

Candidates = tuple[TemporalValue, ...]


class Stage(Protocol):
    """One step of a base-iteration pipeline."""

    @property
    def name(self) -> str:
        """Stage name for logging."""
        ...

    @property
    def resolves_day(self) -> bool:
        """True when the stage chooses the day, rather than keeping the source's day."""
        ...

    def apply(self, candidates: Candidates) -> Candidates:
        """Return the candidates produced from ``candidates``."""
        ...


@dataclass(frozen=True)
class ExpandStage:
    """Cross product of BY* values (outer) and candidates (inner).

    ``produce`` returns the values derived from one candidate and one BY* value.
    Substitutions that land on a non-existent date are dropped.
    """

    name: str
    values: tuple[Any, ...]
    produce: Callable[[TemporalValue, Any], Iterable[TemporalValue]]
    resolves_day: bool = False

    def apply(self, candidates: Candidates) -> Candidates:
        results: list[TemporalValue] = []
        for value in self.values:
            for candidate in candidates:
                try:
                    results.extend(self.produce(candidate, value))
                except InvalidDateAdjustmentError:
                    continue
        return tuple(results)


@dataclass(frozen=True)
class LimitStage:
    """Keep candidates for which ``matches`` holds for at least one BY* value."""

    name: str
    values: tuple[Any, ...]
    matches: Callable[[TemporalValue, Any], bool]
    resolves_day: bool = False

    def apply(self, candidates: Candidates) -> Candidates:
        return tuple(
            candidate for candidate in candidates if any(self.matches(candidate, value) for value in self.values)
        )


@dataclass(frozen=True)
class SetPositionStage:
    """Sort and de-duplicate, then keep the BYSETPOS ranks (1-based, negative from the end)."""

    positions: Optional[tuple[int, ...]] = None
    name: str = "set-position"
    resolves_day: bool = False

    def apply(self, candidates: Candidates) -> Candidates:
        ordered = tuple(sorted(set(candidates)))
        if self.positions is None:
            return ordered
        size = len(ordered)
        return tuple(
            candidate
            for index, candidate in enumerate(ordered)
            if index + 1 in self.positions or index - size in self.positions
        )


@dataclass(frozen=True)
class ExpansionPipeline:
    """Ordered stages for one frequency, finished by set-position selection."""

    frequency: Frequency
    stages: tuple[Stage, ...]
    set_position: SetPositionStage

    @property
    def resolves_day(self) -> bool:
        return any(stage.resolves_day for stage in self.stages)

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self.stages) + (self.set_position.name,)

    def run(self, source: TemporalValue) -> Candidates:
        """Expand one base-iteration source into its sorted, unique candidates."""
        candidates: Candidates = (source,)
        for stage in self.stages:
            candidates = stage.apply(candidates)
            if not candidates:
                break
        return self.set_position.apply(candidates)


def resolve_index(value: int, size: int) -> int:
    """Map a signed 1-based index onto 1..size; -1 is the last element."""
    return value if value > 0 else size + value + 1


# Single field substitutions


def _substitute(field: TemporalField) -> Callable[[TemporalValue, Any], Iterable[TemporalValue]]:
    def produce(candidate: TemporalValue, value: Any) -> Iterable[TemporalValue]:
        return (candidate.with_field(field, value),)

    return produce


def _field_equals(field: TemporalField) -> Callable[[TemporalValue, Any], bool]:
    def matches(candidate: TemporalValue, value: Any) -> bool:
        return candidate.get(field) == value

    return matches


def expand_by_month(values: tuple[int, ...], anchor_day: Optional[int] = None, clamp: bool = False) -> ExpandStage:
    """Move each candidate into every BYMONTH month.

    The day of month is ``anchor_day`` when given, else the candidate's own day.
    With ``clamp`` a day past the end of the target month becomes its last day,
    for pipelines where a later stage picks the day; without it the candidate
    is dropped.
    """

    def produce(candidate: TemporalValue, month: int) -> Iterable[TemporalValue]:
        day = candidate.day if anchor_day is None else anchor_day
        last_day = days_in_month(candidate.year, month)
        if day > last_day:
            if not clamp:
                raise InvalidDateAdjustmentError(f"Day {day} does not exist in {candidate.year}-{month:02d}")
            day = last_day
        return (candidate.with_date(datetime.date(candidate.year, month, day)),)

    return ExpandStage("expand-month", values, produce, resolves_day=clamp or anchor_day is not None)


def limit_by_month(values: tuple[int, ...]) -> LimitStage:
    return LimitStage("limit-month", values, _field_equals(TemporalField.MONTH))


def expand_by_week_number(values: tuple[int, ...], week_start: Weekday) -> ExpandStage:
    def produce(candidate: TemporalValue, week: int) -> Iterable[TemporalValue]:
        resolved = resolve_index(week, weeks_in_year(candidate.year, week_start))
        return (candidate.with_week_of_year(resolved, week_start),)

    return ExpandStage("expand-week-number", values, produce, resolves_day=True)


def expand_by_year_day(values: tuple[int, ...]) -> ExpandStage:
    def produce(candidate: TemporalValue, year_day: int) -> Iterable[TemporalValue]:
        resolved = resolve_index(year_day, days_in_year(candidate.year))
        return (candidate.with_field(TemporalField.DAY_OF_YEAR, resolved),)

    return ExpandStage("expand-year-day", values, produce, resolves_day=True)


def limit_by_year_day(values: tuple[int, ...]) -> LimitStage:
    def matches(candidate: TemporalValue, year_day: int) -> bool:
        return candidate.day_of_year == resolve_index(year_day, candidate.days_in_year())

    return LimitStage("limit-year-day", values, matches)


def expand_by_month_day(values: tuple[int, ...]) -> ExpandStage:
    def produce(candidate: TemporalValue, month_day: int) -> Iterable[TemporalValue]:
        resolved = resolve_index(month_day, days_in_month(candidate.year, candidate.month))
        return (candidate.with_field(TemporalField.DAY_OF_MONTH, resolved),)

    return ExpandStage("expand-month-day", values, produce, resolves_day=True)


def limit_by_month_day(values: tuple[int, ...]) -> LimitStage:
    def matches(candidate: TemporalValue, month_day: int) -> bool:
        return candidate.day == resolve_index(month_day, candidate.days_in_month())

    return LimitStage("limit-month-day", values, matches)


# Weekday handling


def limit_by_week_day(rules: tuple[WeekdayRule, ...]) -> LimitStage:
    def matches(candidate: TemporalValue, rule: WeekdayRule) -> bool:
        return candidate.day_of_week is rule.weekday

    return LimitStage("limit-week-day", rules, matches)


def expand_by_week_day_into_week(rules: tuple[WeekdayRule, ...], week_start: Weekday) -> ExpandStage:
    def produce(candidate: TemporalValue, rule: WeekdayRule) -> Iterable[TemporalValue]:
        return (candidate.with_day_in_week(rule.weekday, week_start),)

    return ExpandStage("expand-week-day-into-week", rules, produce, resolves_day=True)


def _select_ordinal(matches: list[datetime.date], ordinal: int) -> list[datetime.date]:
    if ordinal == 0:
        return matches
    index = ordinal - 1 if ordinal > 0 else len(matches) + ordinal
    if 0 <= index < len(matches):
        return [matches[index]]
    return []


def _weekdays_between(first: datetime.date, last: datetime.date, weekday: Weekday) -> list[datetime.date]:
    day = first + datetime.timedelta(days=(weekday.position - first.weekday()) % 7)
    matches = []
    while day <= last:
        matches.append(day)
        day += datetime.timedelta(weeks=1)
    return matches


def expand_by_week_day_into_month(rules: tuple[WeekdayRule, ...]) -> ExpandStage:
    """Nth weekday of the candidate's month; ordinal 0 keeps every match."""

    def produce(candidate: TemporalValue, rule: WeekdayRule) -> Iterable[TemporalValue]:
        first = datetime.date(candidate.year, candidate.month, 1)
        last = first.replace(day=candidate.days_in_month())
        days = _select_ordinal(_weekdays_between(first, last, rule.weekday), rule.ordinal)
        return [candidate.with_date(day) for day in days]

    return ExpandStage("expand-week-day-into-month", rules, produce, resolves_day=True)


def expand_by_week_day_into_year(rules: tuple[WeekdayRule, ...]) -> ExpandStage:
    """Nth weekday of the candidate's year; ordinal 0 keeps every match."""

    def produce(candidate: TemporalValue, rule: WeekdayRule) -> Iterable[TemporalValue]:
        first = datetime.date(candidate.year, 1, 1)
        last = datetime.date(candidate.year, 12, 31)
        days = _select_ordinal(_weekdays_between(first, last, rule.weekday), rule.ordinal)
        return [candidate.with_date(day) for day in days]

    return ExpandStage("expand-week-day-into-year", rules, produce, resolves_day=True)


# Time of day


def expand_by_hour(values: tuple[int, ...]) -> ExpandStage:
    return ExpandStage("expand-hour", values, _substitute(TemporalField.HOUR))


def limit_by_hour(values: tuple[int, ...]) -> LimitStage:
    return LimitStage("limit-hour", values, _field_equals(TemporalField.HOUR))


def expand_by_minute(values: tuple[int, ...]) -> ExpandStage:
    return ExpandStage("expand-minute", values, _substitute(TemporalField.MINUTE))


def limit_by_minute(values: tuple[int, ...]) -> LimitStage:
    return LimitStage("limit-minute", values, _field_equals(TemporalField.MINUTE))


def expand_by_second(values: tuple[int, ...]) -> ExpandStage:
    return ExpandStage("expand-second", values, _substitute(TemporalField.SECOND))


def limit_by_second(values: tuple[int, ...]) -> LimitStage:
    return LimitStage("limit-second", values, _field_equals(TemporalField.SECOND))


# Pipeline table


def _yearly_week_day_stage(rule: RecurrenceRule, rules: tuple[WeekdayRule, ...]) -> Stage:
    if rule.by_month_day is not None or rule.by_year_day is not None:
        return limit_by_week_day(rules)
    if rule.by_week_number is not None:
        return expand_by_week_day_into_week(rules, rule.week_start)
    if rule.by_month is not None:
        return expand_by_week_day_into_month(rules)
    return expand_by_week_day_into_year(rules)


def _monthly_week_day_stage(rule: RecurrenceRule, rules: tuple[WeekdayRule, ...]) -> Stage:
    if rule.by_month_day is not None:
        return limit_by_week_day(rules)
    return expand_by_week_day_into_month(rules)


def _time_stages(rule: RecurrenceRule, limit_until: Optional[TemporalField]) -> list[Optional[Stage]]:
    """Hour / minute / second stages: limits up to ``limit_until``, expansions after it."""
    order = (
        (TemporalField.HOUR, rule.by_hour, expand_by_hour, limit_by_hour),
        (TemporalField.MINUTE, rule.by_minute, expand_by_minute, limit_by_minute),
        (TemporalField.SECOND, rule.by_second, expand_by_second, limit_by_second),
    )
    stages: list[Optional[Stage]] = []
    limiting = limit_until is not None
    for field, values, expand, limit in order:
        if values is not None:
            stages.append(limit(values) if limiting else expand(values))
        if field is limit_until:
            limiting = False
    return stages


def _optional(values: Optional[tuple[Any, ...]], factory: Callable[..., Stage], *args: Any) -> Optional[Stage]:
    if values is None:
        return None
    return factory(values, *args)


def build_pipeline(rule: RecurrenceRule, anchor_day: Optional[int] = None) -> ExpansionPipeline:
    """Compose the stages of one base iteration for ``rule``'s frequency.

    ``anchor_day`` is the day YEARLY month expansion restores when no later stage
    picks the day, so a Feb 29 anchor still lands on the 29th of other months.

    | frequency | order |
    |---|---|
    | YEARLY | E(month) E(weekno) E(yearday) E(monthday) weekday E(hour) E(minute) E(second) |
    | MONTHLY | L(month) E(monthday) weekday E(hour) E(minute) E(second) |
    | WEEKLY | L(month) E(weekday in week) E(hour) E(minute) E(second) |
    | DAILY | L(month) L(monthday) L(weekday) E(hour) E(minute) E(second) |
    | HOURLY | L(month) L(yearday) L(monthday) L(weekday) L(hour) E(minute) E(second) |
    | MINUTELY | ... L(hour) L(minute) E(second) |
    | SECONDLY | ... L(hour) L(minute) L(second) |
    """
    frequency = rule.frequency
    week_days = rule.by_week_day
    stages: list[Optional[Stage]]

    if frequency is Frequency.YEARLY:
        day_stages: list[Optional[Stage]] = [
            _optional(rule.by_week_number, expand_by_week_number, rule.week_start),
            _optional(rule.by_year_day, expand_by_year_day),
            _optional(rule.by_month_day, expand_by_month_day),
            _yearly_week_day_stage(rule, week_days) if week_days is not None else None,
        ]
        # Later day stages need a candidate in every month, whatever its day
        clamp = any(stage is not None and stage.resolves_day for stage in day_stages)
        stages = [
            _optional(rule.by_month, expand_by_month, anchor_day, clamp),
            *day_stages,
            *_time_stages(rule, limit_until=None),
        ]
        _log_negative_expansion(rule)
    elif frequency is Frequency.MONTHLY:
        stages = [
            _optional(rule.by_month, limit_by_month),
            _optional(rule.by_month_day, expand_by_month_day),
            _monthly_week_day_stage(rule, week_days) if week_days is not None else None,
            *_time_stages(rule, limit_until=None),
        ]
    elif frequency is Frequency.WEEKLY:
        stages = [
            _optional(rule.by_month, limit_by_month),
            _optional(week_days, expand_by_week_day_into_week, rule.week_start),
            *_time_stages(rule, limit_until=None),
        ]
    elif frequency is Frequency.DAILY:
        stages = [
            _optional(rule.by_month, limit_by_month),
            _optional(rule.by_month_day, limit_by_month_day),
            _optional(week_days, limit_by_week_day),
            *_time_stages(rule, limit_until=None),
        ]
    else:
        limit_until = {
            Frequency.HOURLY: TemporalField.HOUR,
            Frequency.MINUTELY: TemporalField.MINUTE,
            Frequency.SECONDLY: TemporalField.SECOND,
        }[frequency]
        stages = [
            _optional(rule.by_month, limit_by_month),
            _optional(rule.by_year_day, limit_by_year_day),
            _optional(rule.by_month_day, limit_by_month_day),
            _optional(week_days, limit_by_week_day),
            *_time_stages(rule, limit_until=limit_until),
        ]

    pipeline = ExpansionPipeline(
        frequency=frequency,
        stages=tuple(stage for stage in stages if stage is not None),
        set_position=SetPositionStage(rule.by_set_position),
    )
    logger.debug("Built %s pipeline: %s", frequency.value, " -> ".join(pipeline.stage_names))
    return pipeline


def _log_negative_expansion(rule: RecurrenceRule) -> None:
    for label, values in (("BYWEEKNO", rule.by_week_number), ("BYYEARDAY", rule.by_year_day)):
        if values is not None and any(value < 0 for value in values):
            logger.debug("%s expansion counts negative values back from the end of the year: %s", label, values)
