"""
Lease and heartbeat management.

An owner proves liveness by bumping updated_at (and version) on its RUNNING
row. Rows whose heartbeat has gone silent for longer than the lease timeout
are returned to WAITING by reclaim_stale, which never needs the owner's
participation.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from cronlease.config import get_settings
from cronlease.constants import SPAN_RECLAIM_STALE, SPAN_RELEASE_LEASE, JobStatus, LeaseStatus
from cronlease.db import get_session_context
from cronlease.db.repository import JobRepository
from cronlease.errors import PersistenceError
from cronlease.observability.metrics import get_metrics
from cronlease.observability.tracing import get_tracer
from cronlease.types.job import Lease
from cronlease.utils import utcnow

logger = logging.getLogger(__name__)


class LeaseManager:
    """
    Versioned lease transitions on RUNNING jobs.

    All writes go through JobRepository.conditional_update, so the
    reclaim scan and an owner's heartbeat or release can race freely:
    at most one of them wins and the loser changes nothing.
    """

    def __init__(self, lease_timeout: float | None = None):
        """
        Initialize the lease manager.

        Args:
            lease_timeout: Heartbeat silence in seconds after which a lease is stale.
        """
        settings = get_settings()
        self.lease_timeout = (
            settings.lease_timeout_seconds if lease_timeout is None else lease_timeout
        )
        self._metrics = get_metrics()

    async def heartbeat(self, lease: Lease, now: datetime | None = None) -> LeaseStatus:
        """
        Refresh the lease on an owned job.

        Args:
            lease: The owner's lease; its version advances on success.
            now: Heartbeat timestamp.

        Returns:
            LeaseStatus.OK, or LeaseStatus.NOT_OWNER if the lease was lost.
        """
        now = now or utcnow()
        async with get_session_context() as session:
            repo = JobRepository(session)
            affected = await repo.conditional_update(
                lease.job_id,
                lease.version,
                {},
                now=now,
                expected_status=JobStatus.RUNNING,
            )

        if not affected:
            self._metrics.record_heartbeat(LeaseStatus.NOT_OWNER)
            logger.warning(
                "Heartbeat rejected, lease no longer owned",
                extra={"job_id": lease.job_id, "version": lease.version}
            )
            return LeaseStatus.NOT_OWNER

        lease.version += 1
        lease.last_heartbeat_at = now
        self._metrics.record_heartbeat(LeaseStatus.OK)
        logger.debug(
            "Extended lease",
            extra={"job_id": lease.job_id, "version": lease.version}
        )
        return LeaseStatus.OK

    async def release(
        self,
        lease: Lease,
        next_due_at: datetime | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Hand a job back to WAITING in a single conditional write.

        Status, next_due_at, updated_at and version change together, so a
        crash can never leave a rescheduled job RUNNING or a released job
        with a stale due time.

        Args:
            lease: The owner's lease.
            next_due_at: New due time; None keeps the previous one.
            now: Release timestamp.

        Returns:
            True if released, False if the lease had already been reclaimed.
        """
        fields: dict = {"status": JobStatus.WAITING}
        if next_due_at is not None:
            fields["next_due_at"] = next_due_at

        with get_tracer().start_as_current_span(SPAN_RELEASE_LEASE) as span:
            span.set_attribute("job_id", lease.job_id)
            async with get_session_context() as session:
                repo = JobRepository(session)
                affected = await repo.conditional_update(
                    lease.job_id,
                    lease.version,
                    fields,
                    now=now or utcnow(),
                    expected_status=JobStatus.RUNNING,
                )
            span.set_attribute("released", bool(affected))

        if not affected:
            self._metrics.record_release_rejected()
            logger.warning(
                "Release dropped, lease was reclaimed",
                extra={"job_id": lease.job_id, "version": lease.version}
            )
            return False

        lease.version += 1
        logger.info(
            "Released job",
            extra={
                "job_id": lease.job_id,
                "version": lease.version,
                "next_due_at": next_due_at.isoformat() if next_due_at else None,
            }
        )
        return True

    async def reclaim_stale(
        self,
        now: datetime | None = None,
        lease_timeout: float | None = None,
    ) -> int:
        """
        Return abandoned RUNNING jobs to WAITING.

        Args:
            now: The current instant.
            lease_timeout: Override for the configured lease timeout, in seconds.

        Returns:
            Number of jobs reclaimed.
        """
        now = now or utcnow()
        if lease_timeout is None:
            lease_timeout = self.lease_timeout
        timeout = timedelta(seconds=lease_timeout)
        reclaimed = 0

        with get_tracer().start_as_current_span(SPAN_RECLAIM_STALE) as span:
            async with get_session_context() as session:
                repo = JobRepository(session)

                for job in await repo.find_stale(now, timeout):
                    affected = await repo.conditional_update(
                        job.id,
                        job.version,
                        {"status": JobStatus.WAITING},
                        now=now,
                        expected_status=JobStatus.RUNNING,
                    )
                    if affected:
                        reclaimed += 1
                        logger.warning(
                            "Reclaimed stale lease",
                            extra={
                                "job_id": job.id,
                                "job_name": job.name,
                                "last_heartbeat": job.updated_at.isoformat(),
                            }
                        )
            span.set_attribute("reclaimed", reclaimed)

        self._metrics.record_reclaimed(reclaimed)
        return reclaimed

    @asynccontextmanager
    async def keep_alive(
        self,
        lease: Lease,
        interval: float | None = None,
    ) -> AsyncIterator["HeartbeatTicker"]:
        """
        Heartbeat `lease` in the background for the duration of the block.

        The ticker is stopped between beats on exit, so the lease version
        is settled by the time the caller releases.
        """
        ticker = HeartbeatTicker(
            self,
            lease,
            get_settings().heartbeat_interval_seconds if interval is None else interval,
        )
        ticker.start()
        try:
            yield ticker
        finally:
            await ticker.stop()


class HeartbeatTicker:
    """Periodic heartbeat task for one lease."""

    def __init__(self, manager: LeaseManager, lease: Lease, interval: float):
        self._manager = manager
        self._lease = lease
        self._interval = interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.lost = asyncio.Event()
        self.beats = 0

    def start(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                status = await self._manager.heartbeat(self._lease)
            except PersistenceError as e:
                # Keep trying; the lease only goes stale after the full timeout
                logger.warning(
                    f"Heartbeat failed: {e}",
                    extra={"job_id": self._lease.job_id}
                )
                continue

            self.beats += 1
            if status == LeaseStatus.NOT_OWNER:
                self.lost.set()
                break
