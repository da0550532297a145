"""
cronlease

Distributed preemption and leasing of cron-scheduled jobs over a shared
relational store, using optimistic row versioning instead of a lock service.
"""

__version__ = "1.0.0"
