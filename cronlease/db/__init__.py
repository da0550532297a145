"""
Database module.
Contains database connection, models, and repository implementations.
"""

from cronlease.db.connection import (
    close_db,
    create_schema,
    get_async_session,
    get_engine,
    get_session_context,
    init_db,
)
from cronlease.db.models import Base, Job

__all__ = [
    "get_async_session",
    "get_session_context",
    "get_engine",
    "init_db",
    "create_schema",
    "close_db",
    "Job",
    "Base",
]
