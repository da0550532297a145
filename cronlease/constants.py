"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job scheduling states.

    State transitions:
    - WAITING -> RUNNING (claimed by a worker)
    - RUNNING -> WAITING (released after a run, or reclaimed when stale)
    - WAITING -> PAUSED (administrative)
    - PAUSED -> WAITING (administrative)

    RUNNING -> PAUSED is never allowed directly.
    """

    WAITING = "waiting"
    RUNNING = "running"
    PAUSED = "paused"


class PreemptOutcome(StrEnum):
    """Result kinds of a claim attempt."""

    CLAIMED = "claimed"
    NOT_FOUND = "not_found"
    CONTENTION = "contention"


class LeaseStatus(StrEnum):
    """Result of a heartbeat against an owned job."""

    OK = "ok"
    NOT_OWNER = "not_owner"


# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_PREEMPT_CONTENTION = "preempt_contention_total"
METRIC_JOB_RUNS = "job_runs_total"
METRIC_JOB_RUN_DURATION = "job_run_duration_seconds"
METRIC_LEASES_RECLAIMED = "leases_reclaimed_total"
METRIC_HEARTBEATS = "heartbeats_total"
METRIC_RELEASES_REJECTED = "releases_rejected_total"
METRIC_SCHEDULE_ERRORS = "schedule_errors_total"
METRIC_JOBS_BY_STATUS = "jobs_by_status"

# Trace span names
SPAN_PREEMPT = "preempt"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_RELEASE_LEASE = "release_lease"
SPAN_RECLAIM_STALE = "reclaim_stale"
