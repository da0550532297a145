"""
Administrative job routes.

These are plain, non-concurrent CRUD operations. Pause and resume go through
the same versioned conditional update as the workers, so a pause racing a
claim simply loses (409) instead of pausing a running job.
"""

import logging
from datetime import UTC

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from cronlease.constants import API_V1_PREFIX, JobStatus
from cronlease.db import get_async_session
from cronlease.db.models import Job
from cronlease.db.repository import JobRepository
from cronlease.errors import InvalidTransitionError, JobAlreadyExistsError
from cronlease.schedule import next_due_at
from cronlease.types.api import (
    CreateJobRequest,
    ErrorResponse,
    JobListResponse,
    JobResponse,
    JobStatsResponse,
)
from cronlease.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


def _job_to_response(job: Job) -> JobResponse:
    """Convert a Job model to a JobResponse."""
    return JobResponse(
        id=job.id,
        name=job.name,
        executor=job.executor,
        expression=job.expression,
        config=job.config,
        status=job.status,
        version=job.version,
        next_due_at=job.next_due_at,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


async def _get_or_404(repo: JobRepository, job_id: int) -> Job:
    job = await repo.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return job


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Create a job",
    description="Create a scheduled job in WAITING status.",
)
async def create_job(
    request: CreateJobRequest,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    """
    Create a new job.

    When next_due_at is omitted the first due time is the next tick of the
    schedule expression.
    """
    if request.next_due_at is None:
        first_due = next_due_at(request.expression, utcnow())
    elif request.next_due_at.tzinfo is not None:
        first_due = request.next_due_at.astimezone(UTC).replace(tzinfo=None)
    else:
        first_due = request.next_due_at

    repo = JobRepository(session)
    try:
        job = await repo.create_job(
            name=request.name,
            executor=request.executor,
            expression=request.expression,
            config=request.config,
            next_due_at=first_due,
        )
    except JobAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    await session.commit()
    return _job_to_response(job)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List jobs with optional status filtering.",
)
async def list_jobs(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: JobStatus | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),
) -> JobListResponse:
    """List jobs ordered by id."""
    repo = JobRepository(session)
    offset = (page - 1) * page_size

    jobs, total = await repo.list_jobs(
        status=status,
        limit=page_size,
        offset=offset,
    )

    return JobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
        has_next=(page * page_size) < total,
    )


@router.get(
    "/stats/summary",
    response_model=JobStatsResponse,
    summary="Get job statistics",
    description="Get job counts by status.",
)
async def get_job_stats(
    session: AsyncSession = Depends(get_async_session),
) -> JobStatsResponse:
    repo = JobRepository(session)
    return JobStatsResponse(stats=await repo.get_job_stats())


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get job details",
)
async def get_job(
    job_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    repo = JobRepository(session)
    return _job_to_response(await _get_or_404(repo, job_id))


async def _transition(
    job_id: int,
    session: AsyncSession,
    pause: bool,
) -> JobResponse:
    repo = JobRepository(session)
    try:
        job = await (repo.pause_job(job_id) if pause else repo.resume_job(job_id))
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    await session.commit()
    return _job_to_response(job)


@router.post(
    "/{job_id}/pause",
    response_model=JobResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Pause a job",
    description="Pause a WAITING job. Running jobs cannot be paused.",
)
async def pause_job(
    job_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    return await _transition(job_id, session, pause=True)


@router.post(
    "/{job_id}/resume",
    response_model=JobResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Resume a job",
    description="Return a PAUSED job to WAITING.",
)
async def resume_job(
    job_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    return await _transition(job_id, session, pause=False)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a job",
)
async def delete_job(
    job_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    repo = JobRepository(session)
    if not await repo.delete_job(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    await session.commit()
    logger.info("Job deleted by operator", extra={"job_id": job_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
