"""
API routes module.
"""

from cronlease.api.routes.health import router as health_router
from cronlease.api.routes.jobs import router as jobs_router

__all__ = ["jobs_router", "health_router"]
