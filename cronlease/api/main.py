"""
FastAPI application entry point for the administrative surface.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cronlease import __version__
from cronlease.api.routes import health_router, jobs_router
from cronlease.config import get_settings
from cronlease.db import close_db, init_db
from cronlease.errors import PersistenceError
from cronlease.observability.logging import setup_logging
from cronlease.observability.metrics import setup_metrics
from cronlease.observability.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    setup_logging(component="api")
    setup_metrics()
    setup_tracing()
    await init_db()

    logger.info("Application started")

    yield

    await close_db()
    logger.info("Application shutdown")


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Report job store failures as 503."""
    logger.error(
        f"Job store error: {exc}",
        extra={"path": request.url.path}
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Job store unavailable"},
    )


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        use_lifespan: Manage the database connection from the app lifespan.
            Tests initialise the database themselves and pass False.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="cronlease admin API",
        description="Administrative surface for cron-scheduled, lease-protected jobs",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_exception_handler(PersistenceError, persistence_error_handler)

    app.include_router(health_router)
    app.include_router(jobs_router)

    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        create_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
