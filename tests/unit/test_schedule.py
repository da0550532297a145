"""
Unit tests for schedule expression evaluation.
"""

from datetime import datetime, timedelta

import pytest

from cronlease.errors import ScheduleEvaluationError
from cronlease.schedule import next_due_at, parse_interval, validate_expression


class TestParseInterval:
    """Tests for compound duration parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("30s", timedelta(seconds=30)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("2d", timedelta(days=2)),
            ("250ms", timedelta(milliseconds=250)),
            (" 5m ", timedelta(minutes=5)),
        ],
    )
    def test_valid(self, text: str, expected: timedelta):
        assert parse_interval(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "10", "5x", "1h 30m", "0s"])
    def test_invalid(self, text: str):
        with pytest.raises(ValueError):
            parse_interval(text)


class TestNextDueAt:
    """Tests for next_due_at."""

    def test_cron_next_tick(self):
        now = datetime(2026, 3, 1, 10, 30)
        assert next_due_at("0 * * * *", now) == datetime(2026, 3, 1, 11, 0)

    def test_cron_is_strictly_after_now(self):
        """Test that a tick falling exactly on now is skipped."""
        now = datetime(2026, 3, 1, 11, 0)
        assert next_due_at("0 * * * *", now) == datetime(2026, 3, 1, 12, 0)

    def test_cron_macro(self):
        now = datetime(2026, 3, 1, 10, 30)
        assert next_due_at("@daily", now) == datetime(2026, 3, 2, 0, 0)

    def test_every_interval(self):
        now = datetime(2026, 3, 1, 10, 30, 15)
        assert next_due_at("@every 1h30m", now) == datetime(2026, 3, 1, 12, 0, 15)

    @pytest.mark.parametrize(
        "expression",
        ["*/5 * * * *", "0 2 * * 1-5", "@hourly", "@every 45s", "@every 1d"],
    )
    def test_monotonic(self, expression: str):
        """Test that repeated evaluation always moves forward."""
        now = datetime(2026, 12, 31, 23, 59, 59)
        for _ in range(5):
            due = next_due_at(expression, now)
            assert due > now
            now = due

    @pytest.mark.parametrize(
        "expression",
        ["", "   ", "not a cron", "61 * * * *", "@every", "@every 0s", "@every soon"],
    )
    def test_invalid_expression(self, expression: str):
        with pytest.raises(ScheduleEvaluationError) as exc_info:
            next_due_at(expression, datetime(2026, 3, 1))

        assert exc_info.value.expression == expression.strip()

    def test_validate_expression(self):
        validate_expression("*/10 * * * *")

        with pytest.raises(ScheduleEvaluationError):
            validate_expression("every tuesday")
