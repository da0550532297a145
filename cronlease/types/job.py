"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cronlease.constants import PreemptOutcome
from cronlease.db.models import Job
from cronlease.utils import utcnow


class ExecutionResult(BaseModel):
    """
    Result of running a job through its executor.
    Returned by executors after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    completed_at: datetime = Field(default_factory=utcnow)
    duration_ms: float | None = None


@dataclass
class ExecutionContext:
    """
    Context passed to executors during a run.
    The config payload is handed over untouched.
    """

    job_id: int
    name: str
    executor: str
    config: dict[str, Any]
    version: int
    worker_id: str


@dataclass
class Lease:
    """
    A worker's claim on a RUNNING job.

    `version` is the owner's last known row version. Every successful
    heartbeat advances it by one; a write with a stale version is rejected.
    """

    job_id: int
    version: int
    worker_id: str
    acquired_at: datetime = field(default_factory=utcnow)
    last_heartbeat_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job, worker_id: str) -> "Lease":
        """Create a lease from a freshly claimed job row."""
        return cls(job_id=job.id, version=job.version, worker_id=worker_id)


@dataclass
class PreemptResult:
    """
    Outcome of a claim attempt.
    `job` is set only when the outcome is CLAIMED.
    """

    outcome: PreemptOutcome
    job: Job | None = None
    attempts: int = 0

    @property
    def claimed(self) -> bool:
        """Check if a job was claimed."""
        return self.outcome == PreemptOutcome.CLAIMED
