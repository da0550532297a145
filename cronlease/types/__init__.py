"""
Type definitions for cronlease.
Contains input/output type definitions grouped by module.
"""

from cronlease.types.api import (
    CreateJobRequest,
    ErrorResponse,
    HealthResponse,
    JobListResponse,
    JobResponse,
    JobStatsResponse,
)
from cronlease.types.job import (
    ExecutionContext,
    ExecutionResult,
    Lease,
    PreemptResult,
)

__all__ = [
    # API types
    "CreateJobRequest",
    "JobResponse",
    "JobListResponse",
    "JobStatsResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "ExecutionContext",
    "ExecutionResult",
    "Lease",
    "PreemptResult",
]
