"""
Worker module.
Contains the scheduler loop and the executor registry.
"""

from cronlease.worker.executors import list_executors, register_executor
from cronlease.worker.main import Worker, run

__all__ = ["Worker", "run", "register_executor", "list_executors"]
