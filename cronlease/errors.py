"""
Exception hierarchy.

Routine claim outcomes (nothing due, contention) are not exceptions; see
PreemptOutcome in cronlease.constants.
"""


class CronLeaseError(Exception):
    """Base class for all cronlease errors."""


class PersistenceError(CronLeaseError):
    """The job store is unreachable or rejected a write for a non-concurrency reason."""


class JobAlreadyExistsError(PersistenceError):
    """A job with the same name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Job with name {name!r} already exists")
        self.name = name


class ScheduleEvaluationError(CronLeaseError):
    """A schedule expression could not be evaluated to a future time."""

    def __init__(self, expression: str, reason: str):
        super().__init__(f"Cannot evaluate schedule {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class InvalidTransitionError(CronLeaseError):
    """An administrative status change was requested from the wrong status."""

    def __init__(self, job_id: int, current: str, requested: str):
        super().__init__(
            f"Job {job_id} cannot move from {current} to {requested}"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested
