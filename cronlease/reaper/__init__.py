"""
Reaper module.
Contains the independent stale lease reclaimer.
"""

from cronlease.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]
