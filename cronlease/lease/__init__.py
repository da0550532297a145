"""
Lease module.
Contains the preemption engine and the lease/heartbeat manager.
"""

from cronlease.lease.heartbeat import HeartbeatTicker, LeaseManager
from cronlease.lease.preemption import Preemptor

__all__ = ["Preemptor", "LeaseManager", "HeartbeatTicker"]
