"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from cronlease.constants import JobStatus
from cronlease.errors import ScheduleEvaluationError
from cronlease.schedule import validate_expression


class CreateJobRequest(BaseModel):
    """Request body for creating a new job."""

    name: str = Field(..., min_length=1, max_length=128, description="Unique job name")
    executor: str = Field(..., min_length=1, max_length=255, description="Executor identifier")
    expression: str = Field(..., min_length=1, max_length=255, description="Schedule expression")
    config: dict[str, Any] = Field(default_factory=dict, description="Opaque executor payload")
    next_due_at: datetime | None = Field(
        default=None, description="First due time (UTC). Defaults to the next schedule tick."
    )

    @field_validator("expression")
    @classmethod
    def check_expression(cls, value: str) -> str:
        try:
            validate_expression(value)
        except ScheduleEvaluationError as e:
            raise ValueError(str(e)) from e
        return value


class JobResponse(BaseModel):
    """Full job details response."""

    id: int
    name: str
    executor: str
    expression: str
    config: dict[str, Any]
    status: JobStatus
    version: int
    next_due_at: datetime
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int
    has_next: bool


class JobStatsResponse(BaseModel):
    """Job counts by status."""

    stats: dict[str, int]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
