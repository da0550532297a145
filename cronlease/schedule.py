"""
Schedule expression evaluation.

Supported expressions:
- standard cron (5 fields, or 6 with seconds) and croniter macros such as @hourly
- fixed intervals: "@every 30s", "@every 1h30m", "@every 2d"

All datetimes are naive UTC.
"""

import re
from datetime import datetime, timedelta

from croniter import croniter

from cronlease.errors import ScheduleEvaluationError

_EVERY_PREFIX = "@every"
_DURATION_PART = re.compile(r"(\d+)(ms|s|m|h|d)")
_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_interval(text: str) -> timedelta:
    """
    Parse a compound duration such as "1h30m" or "45s".

    Raises:
        ValueError: If the text is not a positive duration.
    """
    text = text.strip()
    pos = 0
    total = timedelta()
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += int(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()

    if not text or pos != len(text):
        raise ValueError(f"invalid duration {text!r}")
    if total <= timedelta():
        raise ValueError("duration must be positive")
    return total


def next_due_at(expression: str, now: datetime) -> datetime:
    """
    Compute the next due time for a schedule expression.

    Args:
        expression: The job's schedule expression.
        now: The instant the computation is made at.

    Returns:
        A datetime strictly greater than `now`.

    Raises:
        ScheduleEvaluationError: If the expression is invalid or does not
            produce a future time.
    """
    expression = (expression or "").strip()
    if not expression:
        raise ScheduleEvaluationError(expression, "empty expression")

    if expression.startswith(_EVERY_PREFIX):
        try:
            interval = parse_interval(expression[len(_EVERY_PREFIX):])
        except ValueError as e:
            raise ScheduleEvaluationError(expression, str(e)) from e
        result = now + interval
    else:
        if not croniter.is_valid(expression):
            raise ScheduleEvaluationError(expression, "invalid cron expression")
        try:
            result = croniter(expression, now).get_next(datetime)
        except (ValueError, KeyError) as e:
            raise ScheduleEvaluationError(expression, str(e)) from e

    if result <= now:
        raise ScheduleEvaluationError(expression, "next due time is not in the future")
    return result


def validate_expression(expression: str) -> None:
    """
    Check that an expression can be evaluated.

    Raises:
        ScheduleEvaluationError: If it cannot.
    """
    next_due_at(expression, datetime(2000, 1, 1))
