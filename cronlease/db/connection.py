"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cronlease.config import get_settings
from cronlease.db.models import Base
from cronlease.errors import PersistenceError
from cronlease.observability.tracing import instrument_sqlalchemy

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Get or create the async database engine.

    Args:
        database_url: Optional URL overriding the configured one.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        url = database_url or settings.database_url
        options: dict = {
            "echo": settings.log_level == "DEBUG",
            "pool_pre_ping": True,
        }
        if not url.startswith("sqlite"):
            options["pool_size"] = settings.database_pool_size
            options["max_overflow"] = settings.database_max_overflow
        _engine = create_async_engine(url, **options)
    return _engine


async def init_db(database_url: str | None = None) -> None:
    """
    Initialize the database connection and session factory.
    Should be called on process startup.

    Args:
        database_url: Optional URL overriding the configured one.
    """
    global AsyncSessionLocal
    engine = get_engine(database_url)
    instrument_sqlalchemy(engine)
    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Database connection initialized")


async def create_schema() -> None:
    """
    Create the jobs table if it does not exist.
    Used for tests and local development; production runs the Alembic migration.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close the database connection.
    Should be called on process shutdown.
    """
    global _engine, AsyncSessionLocal
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        AsyncSessionLocal = None
        logger.info("Database connection closed")


async def _commit(session: AsyncSession) -> None:
    """Commit, reporting store failures as PersistenceError."""
    try:
        await session.commit()
    except SQLAlchemyError as e:
        raise PersistenceError(str(e)) from e


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Dependency for getting async database sessions.

    Yields:
        AsyncSession: An async database session.

    Raises:
        RuntimeError: If the database is not initialized.
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await _commit(session)
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession]:
    """
    Context manager for getting async database sessions.
    Used by the worker, the reaper and the lease components.

    Yields:
        AsyncSession: An async database session.
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await _commit(session)
        except Exception:
            await session.rollback()
            raise
