"""
API module.
Contains the administrative FastAPI application and routes.
"""

from cronlease.api.main import create_app, run

__all__ = ["create_app", "run"]
