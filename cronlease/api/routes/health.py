"""
Health check and metrics routes.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cronlease import __version__
from cronlease.db import get_async_session
from cronlease.db.repository import JobRepository
from cronlease.errors import PersistenceError
from cronlease.observability.metrics import get_metrics
from cronlease.types.api import HealthResponse
from cronlease.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and the job store.",
)
async def health_check(
    session: AsyncSession = Depends(get_async_session),
) -> HealthResponse:
    """
    Perform a health check.

    Checks job store connectivity and returns service status.
    """
    db_status = "healthy"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db_status = "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        version=__version__,
        database=db_status,
        timestamp=utcnow(),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Readiness probe: the jobs table must be queryable."""
    try:
        await JobRepository(session).get_job_stats()
    except PersistenceError:
        return {"ready": False}
    return {"ready": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics, including current job counts by status.",
)
async def metrics(
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    """
    Expose Prometheus metrics.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    try:
        metrics_collector.update_job_counts(await JobRepository(session).get_job_stats())
    except PersistenceError as e:
        logger.warning(f"Serving last known job counts: {e}")
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
