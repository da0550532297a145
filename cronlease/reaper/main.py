"""
Lease reaper for reclaiming abandoned jobs.

The reaper runs on its own timer, independent of any worker, and returns
RUNNING jobs whose heartbeat has gone silent to WAITING. It keeps working
even when every worker that ever claimed a job has died.
"""

import asyncio
import logging
import signal

from cronlease.config import get_settings
from cronlease.db import close_db, get_session_context, init_db
from cronlease.db.repository import JobRepository
from cronlease.errors import PersistenceError
from cronlease.lease.heartbeat import LeaseManager
from cronlease.observability.logging import setup_logging
from cronlease.observability.metrics import get_metrics, serve_metrics
from cronlease.observability.tracing import setup_tracing

logger = logging.getLogger(__name__)


class Reaper:
    """
    Periodic stale lease reclaimer.

    Each run:
    1. Finds RUNNING jobs with updated_at older than the lease timeout
    2. Returns each to WAITING with a versioned conditional update
    3. Refreshes the per-status job gauge
    """

    def __init__(
        self,
        interval_seconds: float | None = None,
        lease_timeout_seconds: float | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            interval_seconds: Seconds between reaper runs.
            lease_timeout_seconds: Heartbeat silence after which a lease is stale.
        """
        settings = get_settings()
        self.interval = (
            settings.reaper_interval_seconds if interval_seconds is None else interval_seconds
        )
        self._leases = LeaseManager(lease_timeout=lease_timeout_seconds)
        self._running = False
        self._wakeup = asyncio.Event()
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(
            f"Reaper starting with interval {self.interval}s",
            extra={"lease_timeout": self._leases.lease_timeout}
        )
        self._running = True

        while self._running:
            try:
                await self.run_once()
            except PersistenceError as e:
                logger.error(f"Job store unavailable during reclaim: {e}")
            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Reaper stopped")

    async def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._running = False
        self._wakeup.set()

    async def run_once(self) -> int:
        """
        Run the reaper once (for testing or cron-style execution).

        Returns:
            Number of jobs reclaimed.
        """
        reclaimed = await self._leases.reclaim_stale()

        if reclaimed > 0:
            logger.info(f"Reclaimed {reclaimed} stale leases")

        async with get_session_context() as session:
            stats = await JobRepository(session).get_job_stats()
        self._metrics.update_job_counts(stats)

        return reclaimed


async def run_async() -> None:
    """Run the reaper asynchronously."""
    setup_logging(component="reaper")
    setup_tracing()
    serve_metrics(get_settings().prometheus_port)
    await init_db()

    reaper = Reaper()

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reaper.stop())
        )

    try:
        await reaper.start()
    finally:
        await close_db()


def run() -> None:
    """Run the reaper."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
