"""
Small shared helpers.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    All timestamps stored in the jobs table are naive UTC so that
    comparisons behave the same on PostgreSQL and SQLite.
    """
    return datetime.now(UTC).replace(tzinfo=None)
