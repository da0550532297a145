"""
Worker process driving the claim / execute / reschedule / release cycle.

Each worker is an independent peer: it claims one due job at a time through
the preemption engine, runs it through its executor while a heartbeat keeps
the lease alive, computes the next due time and hands the job back in a
single conditional write. Any number of workers can share one job store.
"""

import asyncio
import logging
import os
import signal
import socket
import time

from cronlease.config import get_settings
from cronlease.constants import SPAN_EXECUTE_JOB
from cronlease.db import close_db, init_db
from cronlease.db.models import Job
from cronlease.errors import PersistenceError, ScheduleEvaluationError
from cronlease.lease.backoff import compute_backoff
from cronlease.lease.heartbeat import HeartbeatTicker, LeaseManager
from cronlease.lease.preemption import Preemptor
from cronlease.observability.logging import bind_context, setup_logging
from cronlease.observability.metrics import get_metrics, serve_metrics
from cronlease.observability.tracing import get_tracer, setup_tracing
from cronlease.schedule import next_due_at
from cronlease.types.job import ExecutionContext, ExecutionResult, Lease
from cronlease.utils import utcnow
from cronlease.worker.executors import run_executor

logger = logging.getLogger(__name__)


class Worker:
    """
    Per-process scheduler loop: Idle -> Claiming -> Executing -> Rescheduling -> Idle.

    Features:
    - Bounded, jittered idle backoff when nothing is due or the store is down
    - Heartbeat ticker running alongside the executor
    - Execution timeout enforced independently of the store
    - Failed runs still advance the schedule (no automatic retry)
    - Graceful shutdown on SIGTERM/SIGINT after the current job
    """

    def __init__(
        self,
        worker_id: str | None = None,
        execution_timeout: float | None = None,
        heartbeat_interval: float | None = None,
        idle_backoff: float | None = None,
        idle_backoff_max: float | None = None,
        preemptor: Preemptor | None = None,
        leases: LeaseManager | None = None,
    ):
        """
        Initialize the worker.

        Args:
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            execution_timeout: Seconds an executor may run before it is cancelled.
            heartbeat_interval: Seconds between heartbeats while executing.
            idle_backoff: Minimum sleep after an empty or failed claim.
            idle_backoff_max: Maximum sleep after repeated empty claims.
            preemptor: Claim engine (defaults to one built from settings).
            leases: Lease manager (defaults to one built from settings).
        """
        settings = get_settings()

        self.worker_id = (
            worker_id or settings.worker_id or f"{socket.gethostname()}-{os.getpid()}"
        )
        self.execution_timeout = (
            settings.execution_timeout_seconds if execution_timeout is None else execution_timeout
        )
        self.heartbeat_interval = (
            settings.heartbeat_interval_seconds if heartbeat_interval is None else heartbeat_interval
        )
        self.idle_backoff = (
            settings.worker_idle_backoff_seconds if idle_backoff is None else idle_backoff
        )
        self.idle_backoff_max = max(
            self.idle_backoff,
            settings.worker_idle_backoff_max_seconds if idle_backoff_max is None else idle_backoff_max,
        )

        self._preemptor = preemptor or Preemptor(self.worker_id)
        self._leases = leases or LeaseManager()
        self._running = False
        self._idle_streak = 0
        self._wakeup = asyncio.Event()
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Start the worker loop."""
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "execution_timeout": self.execution_timeout,
                "heartbeat_interval": self.heartbeat_interval,
            }
        )

        self._running = True

        while self._running:
            try:
                processed = await self.run_once()
            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.worker_id}
                )
                processed = False

            if processed:
                self._idle_streak = 0
            else:
                await self._idle()

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop the worker gracefully once the current job is released."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False
        self._wakeup.set()

    async def run_once(self) -> bool:
        """
        Claim and process at most one due job.

        Returns:
            True if a job was claimed and processed. False when nothing was
            claimed, or when the claimed job could not be rescheduled; in
            both cases the loop backs off before claiming again.
        """
        try:
            result = await self._preemptor.preempt()
        except PersistenceError as e:
            logger.error(
                f"Job store unavailable while claiming: {e}",
                extra={"worker_id": self.worker_id}
            )
            return False

        if not result.claimed:
            return False

        return await self._process(result.job)

    async def _idle(self) -> None:
        self._idle_streak += 1
        delay = min(
            self.idle_backoff_max,
            self.idle_backoff + compute_backoff(
                self._idle_streak,
                self.idle_backoff,
                self.idle_backoff_max - self.idle_backoff,
            ),
        )
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _process(self, job: Job) -> bool:
        """
        Execute a claimed job, then reschedule and release it.

        Args:
            job: The job as returned by the claim (status RUNNING).

        Returns:
            False if the job went back with its old, already past, due time.
        """
        lease = Lease.from_job(job, self.worker_id)
        context = ExecutionContext(
            job_id=job.id,
            name=job.name,
            executor=job.executor,
            config=dict(job.config or {}),
            version=job.version,
            worker_id=self.worker_id,
        )

        logger.info(
            "Executing job",
            extra={"job_id": job.id, "job_name": job.name, "executor": job.executor}
        )

        start_time = time.monotonic()
        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", job.id)
            span.set_attribute("executor", job.executor)

            async with self._leases.keep_alive(lease, self.heartbeat_interval) as ticker:
                result = await self._execute(context, ticker)

            span.set_attribute("success", result.success)

        duration = time.monotonic() - start_time
        status = "succeeded" if result.success else "failed"
        self._metrics.record_job_run(job.executor, status, duration)

        if ticker.lost.is_set():
            # The reaper already returned the job to WAITING; we are no longer the owner
            logger.warning(
                "Lease lost during execution, abandoning job",
                extra={"job_id": job.id, "duration": f"{duration:.2f}s"}
            )
            return True

        if result.success:
            logger.info(
                "Job run succeeded",
                extra={"job_id": job.id, "duration": f"{duration:.2f}s"}
            )
        else:
            logger.warning(
                "Job run failed",
                extra={"job_id": job.id, "error": result.error, "duration": f"{duration:.2f}s"}
            )

        return await self._reschedule(job, lease)

    async def _execute(
        self,
        context: ExecutionContext,
        ticker: HeartbeatTicker,
    ) -> ExecutionResult:
        """
        Run the executor until it finishes, times out, or the lease is lost.

        Timeouts and lost leases cancel the executor and count as failed runs.
        """
        exec_task = asyncio.create_task(run_executor(context))
        lost_waiter = asyncio.create_task(ticker.lost.wait())

        try:
            done, _ = await asyncio.wait(
                {exec_task, lost_waiter},
                timeout=self.execution_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            lost_waiter.cancel()
            if not exec_task.done():
                exec_task.cancel()
                try:
                    await exec_task
                except asyncio.CancelledError:
                    pass

        if exec_task in done:
            return exec_task.result()

        if lost_waiter in done:
            return ExecutionResult(success=False, error="Lease lost during execution")

        logger.warning(
            f"Execution timed out after {self.execution_timeout}s",
            extra={"job_id": context.job_id}
        )
        return ExecutionResult(
            success=False,
            error=f"Execution timed out after {self.execution_timeout}s",
        )

    async def _reschedule(self, job: Job, lease: Lease) -> bool:
        """
        Compute the next due time and release the job in one conditional write.

        An unevaluable expression leaves next_due_at unchanged and is
        escalated through the error log and metrics.

        Returns:
            True if the schedule advanced.
        """
        now = utcnow()
        due = None
        try:
            due = next_due_at(job.expression, now)
        except ScheduleEvaluationError as e:
            self._metrics.record_schedule_error(job.executor)
            logger.error(
                f"Cannot reschedule job: {e}",
                extra={"job_id": job.id, "job_name": job.name, "expression": job.expression}
            )

        try:
            await self._leases.release(lease, next_due_at=due, now=now)
        except PersistenceError as e:
            logger.error(
                f"Release failed, lease will be reclaimed after timeout: {e}",
                extra={"job_id": job.id}
            )

        return due is not None


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging(component="worker")
    setup_tracing()
    serve_metrics(get_settings().prometheus_port)
    await init_db()

    worker = Worker()
    bind_context(worker_id=worker.worker_id)

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
