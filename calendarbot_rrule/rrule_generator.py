"""RRULE occurrence generation.

RecurrenceGenerator steps a source value from the anchor by INTERVAL units of
FREQ, runs each source through the frequency's expansion pipeline and merges
the results into a sorted, duplicate-free accumulator until the horizon, UNTIL
or COUNT stops it. The anchor is always the first occurrence.
"""

from __future__ import annotations

import bisect
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta

from .exceptions import GranularityMismatchError
from .rrule_models import BYHOUR_KEY, BYMINUTE_KEY, BYSECOND_KEY, Frequency, RecurrenceRule
from .rrule_stages import ExpansionPipeline, build_pipeline
from .settings import get_settings
from .temporal import TemporalValue, ZonedInstant
from .timezone_utils import resolve_zone, today_utc

logger = logging.getLogger(__name__)

HorizonLike = Union[TemporalValue, datetime.date, datetime.datetime]


@dataclass
class GeneratorConfig:
    """Safety bounds for occurrence generation.

    Consolidates generator settings with explicit defaults.
    """

    default_horizon_years: int = 1
    default_horizon_days: int = 1
    # None disables the guard
    max_iterations: Optional[int] = 100_000

    @property
    def default_bound(self) -> relativedelta:
        return relativedelta(years=self.default_horizon_years, days=self.default_horizon_days)

    @classmethod
    def from_settings(cls, settings: Any) -> GeneratorConfig:
        """Extract generator configuration from settings object.

        Args:
            settings: Configuration object with generator settings

        Returns:
            GeneratorConfig with values from settings or defaults
        """
        return cls(
            default_horizon_years=getattr(settings, "default_horizon_years", 1),
            default_horizon_days=getattr(settings, "default_horizon_days", 1),
            max_iterations=getattr(settings, "max_iterations", 100_000),
        )


class _OccurrenceAccumulator:
    """Sorted, duplicate-free collection of occurrences."""

    def __init__(self) -> None:
        self._ordered: list[TemporalValue] = []
        self._seen: set[TemporalValue] = set()

    def add(self, value: TemporalValue) -> None:
        if value in self._seen:
            return
        self._seen.add(value)
        bisect.insort(self._ordered, value)

    def __len__(self) -> int:
        return len(self._ordered)

    @property
    def last(self) -> TemporalValue:
        return self._ordered[-1]

    def as_list(self) -> list[TemporalValue]:
        return list(self._ordered)


class RecurrenceGenerator:
    """Computes the occurrences of a rule starting at an anchor.

    Construction checks that the anchor and the rule can be combined; a
    date-only anchor cannot be stepped by hours or filtered by time of day,
    and UNTIL must share the anchor's granularity.
    """

    def __init__(
        self,
        rule: RecurrenceRule,
        anchor: TemporalValue,
        config: Optional[GeneratorConfig] = None,
    ):
        """Initialize the generator.

        Args:
            rule: Validated recurrence rule
            anchor: First occurrence (DTSTART)
            config: Safety bounds, defaults when omitted

        Raises:
            GranularityMismatchError: If the rule needs time of day but the anchor
                is a date, or UNTIL and the anchor differ in granularity
        """
        self.rule = rule
        self.anchor = anchor
        self.config = config or GeneratorConfig()
        self._check_granularity()
        self.pipeline: ExpansionPipeline = build_pipeline(rule, anchor.day)

    def _check_granularity(self) -> None:
        rule, anchor = self.rule, self.anchor
        if rule.until is not None and rule.until.granularity is not anchor.granularity:
            raise GranularityMismatchError(anchor, rule.until, operation="bound")
        if not anchor.is_date:
            return
        if rule.frequency.is_time_based:
            raise GranularityMismatchError(anchor, f"FREQ={rule.frequency.value}", operation="step")
        for key, values in ((BYHOUR_KEY, rule.by_hour), (BYMINUTE_KEY, rule.by_minute), (BYSECOND_KEY, rule.by_second)):
            if values is not None:
                raise GranularityMismatchError(anchor, key, operation="expand")

    def source_at(self, step: int) -> TemporalValue:
        """Base-iteration source ``step`` intervals after the anchor.

        Raises:
            OverflowError, ValueError: If the source falls past year 9999
        """
        return self.anchor.add(self.rule.frequency.unit, step * self.rule.interval)

    def _is_clamped(self, source: TemporalValue) -> bool:
        # Month and year steps clamp to the end of the month (Jan 31 + 1 month)
        if self.rule.frequency not in (Frequency.MONTHLY, Frequency.YEARLY):
            return False
        return source.day != self.anchor.day

    def _resolve_horizon(self, horizon: Optional[HorizonLike]) -> Optional[datetime.date]:
        if horizon is not None:
            if isinstance(horizon, TemporalValue):
                return horizon.date()
            if isinstance(horizon, datetime.datetime):
                return horizon.date()
            return horizon

        rule = self.rule
        if rule.until is not None:
            return rule.until.date() + self.config.default_bound
        if rule.count is not None:
            return None
        return today_utc() + self.config.default_bound

    def expand_source(self, source: TemporalValue) -> tuple[TemporalValue, ...]:
        """Occurrences produced by a single base iteration."""
        if self._is_clamped(source) and not self.pipeline.resolves_day:
            logger.debug("Skipping %s: anchor day %d does not exist in that month", source, self.anchor.day)
            return ()
        return self.pipeline.run(source)

    def calculate(self, horizon: Optional[HorizonLike] = None) -> list[TemporalValue]:
        """Compute the sorted occurrences of the rule.

        Args:
            horizon: Stop stepping once a base-iteration source reaches this date.
                Without it, UNTIL rules stop one default bound after UNTIL, COUNT
                rules stop on COUNT (or at year 9999 when COUNT is never reached),
                and unbounded rules stop one default bound (a year and a day)
                after today.

        Returns:
            Occurrences in ascending order, starting with the anchor

        Raises:
            GranularityMismatchError: If a generated value cannot be ordered against the others
        """
        rule = self.rule
        horizon_date = self._resolve_horizon(horizon)
        max_iterations = self.config.max_iterations

        occurrences = _OccurrenceAccumulator()
        occurrences.add(self.anchor)
        for value in self.expand_source(self.anchor):
            if value > self.anchor:
                occurrences.add(value)

        step = 0
        source = self.anchor
        while (
            (horizon_date is None or source.date() < horizon_date)
            and (rule.until is None or occurrences.last <= rule.until)
            and (rule.count is None or len(occurrences) < rule.count)
        ):
            if max_iterations is not None and step >= max_iterations:
                logger.warning(
                    "Stopped expanding %s after %d iterations, result may be incomplete", rule, max_iterations
                )
                break
            step += 1
            try:
                source = self.source_at(step)
                candidates = self.expand_source(source)
            except (OverflowError, ValueError):
                logger.warning(
                    "Stopped expanding %s at iteration %d, next source is past the supported date range", rule, step
                )
                break
            for value in candidates:
                occurrences.add(value)

        logger.debug("Expanded %s from %s in %d iterations: %d candidates", rule, self.anchor, step, len(occurrences))

        result = occurrences.as_list()
        if rule.count is not None:
            return result[: rule.count]
        if rule.until is not None:
            return [value for value in result if value <= rule.until]
        return result


def calculate_recurrences(
    rule: Union[RecurrenceRule, str],
    anchor: Union[TemporalValue, datetime.date, datetime.datetime],
    horizon: Optional[HorizonLike] = None,
    config: Optional[GeneratorConfig] = None,
) -> list[TemporalValue]:
    """Expand ``rule`` from ``anchor`` (convenience function).

    Accepts RRULE text and stdlib dates. Naive datetimes, and a floating UNTIL,
    are placed in the anchor's zone or the configured default timezone.
    Without ``config`` the bounds come from the process settings.
    """
    settings = get_settings()
    default_zone = resolve_zone(settings.default_timezone)
    if not isinstance(anchor, TemporalValue):
        anchor = TemporalValue.from_python(anchor, default_zone)
    if isinstance(rule, str):
        zone = anchor.zone if isinstance(anchor, ZonedInstant) else default_zone
        rule = RecurrenceRule.parse(rule, assumed_zone=zone)
    if config is None:
        config = GeneratorConfig.from_settings(settings)
    return RecurrenceGenerator(rule, anchor, config).calculate(horizon)
