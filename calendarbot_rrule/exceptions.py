"""Custom exception hierarchy for recurrence rule processing.

Every error raised by calendarbot_rrule derives from RecurrenceError so hosting
code can catch the whole family at once, while the concrete subclasses keep
enough context for a useful message to the end user.
"""

from __future__ import annotations

from typing import Any, Optional


class RecurrenceError(Exception):
    """Base exception for all recurrence rule errors."""


class InvalidRuleError(RecurrenceError, ValueError):
    """A recurrence rule string could not be turned into a valid rule.

    Raised when:
    - FREQ is missing or unknown
    - A key is unrecognized or duplicated
    - A BY* value is not an integer or is out of range
    - Fields contradict each other (COUNT with UNTIL, BYWEEKNO without YEARLY, ...)
    """

    def __init__(
        self,
        reason: str,
        key: Optional[str] = None,
        value: Optional[str] = None,
    ) -> None:
        self.reason = reason
        self.key = key
        self.value = value
        if key is not None and value is not None:
            message = f"Invalid {key}={value!r}: {reason}"
        elif key is not None:
            message = f"Invalid {key}: {reason}"
        else:
            message = reason
        super().__init__(message)


class MalformedTemporalError(RecurrenceError, ValueError):
    """Text matched neither the DATE nor the DATE-TIME pattern."""

    def __init__(self, text: str, reason: Optional[str] = None) -> None:
        self.text = text
        self.reason = reason
        message = f"Unable to parse calendar date or date-time: {text!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class GranularityMismatchError(RecurrenceError, TypeError):
    """A date-only value met a date-time value where one granularity is required."""

    def __init__(self, left: Any, right: Any, operation: str = "compare") -> None:
        self.left = left
        self.right = right
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {left!r} with {right!r}: date and date-time granularities differ"
        )


class InvalidDateAdjustmentError(RecurrenceError, ValueError):
    """A field substitution would produce a calendar date that does not exist.

    Expansion stages recover from this by dropping the candidate, it never
    reaches callers of RecurrenceGenerator.calculate().
    """
