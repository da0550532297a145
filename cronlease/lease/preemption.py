"""
Preemption engine.

Gives a worker exclusive, versioned ownership of exactly one due job.
Workers never coordinate directly: two of them may read the same
candidate, but only one compare-and-swap on its (id, version) can succeed.
"""

import asyncio
import logging
import random
from datetime import datetime

from cronlease.config import get_settings
from cronlease.constants import SPAN_PREEMPT, JobStatus, PreemptOutcome
from cronlease.db import get_session_context
from cronlease.db.repository import JobRepository
from cronlease.lease.backoff import compute_backoff
from cronlease.observability.metrics import get_metrics
from cronlease.observability.tracing import get_tracer
from cronlease.types.job import PreemptResult
from cronlease.utils import utcnow

logger = logging.getLogger(__name__)


class Preemptor:
    """
    Claims due jobs with a bounded, jittered compare-and-swap loop.

    Each attempt runs in its own transaction:
    1. Select the earliest-due WAITING candidate
    2. Conditionally flip it to RUNNING at version + 1
    3. On a lost race, back off and retry; give up with CONTENTION
    """

    def __init__(
        self,
        worker_id: str,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the preemptor.

        Args:
            worker_id: Identifier of the claiming worker (logs and metrics).
            max_attempts: Lost races tolerated before returning CONTENTION.
            backoff_base: First retry delay ceiling in seconds.
            backoff_max: Retry delay cap in seconds.
            rng: Optional random source for jitter.
        """
        settings = get_settings()

        self.worker_id = worker_id
        self.max_attempts = (
            settings.preempt_max_attempts if max_attempts is None else max_attempts
        )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backoff_base = (
            settings.preempt_backoff_base_seconds if backoff_base is None else backoff_base
        )
        self.backoff_max = (
            settings.preempt_backoff_max_seconds if backoff_max is None else backoff_max
        )
        self._rng = rng
        self._metrics = get_metrics()

    async def preempt(self, now: datetime | None = None) -> PreemptResult:
        """
        Claim one due job.

        Args:
            now: Evaluation instant. Defaults to the current time on each attempt.

        Returns:
            PreemptResult with outcome CLAIMED (and the updated job),
            NOT_FOUND or CONTENTION.

        Raises:
            PersistenceError: If the store fails.
        """
        with get_tracer().start_as_current_span(SPAN_PREEMPT) as span:
            span.set_attribute("worker_id", self.worker_id)
            result = await self._preempt(now)
            span.set_attribute("outcome", result.outcome.value)
            span.set_attribute("attempts", result.attempts)
            return result

    async def _preempt(self, now: datetime | None) -> PreemptResult:
        for attempt in range(1, self.max_attempts + 1):
            at = now or utcnow()

            async with get_session_context() as session:
                repo = JobRepository(session)

                candidate = await repo.find_due_candidate(at)
                if candidate is None:
                    return PreemptResult(PreemptOutcome.NOT_FOUND, attempts=attempt)

                affected = await repo.conditional_update(
                    candidate.id,
                    candidate.version,
                    {"status": JobStatus.RUNNING},
                    now=at,
                    expected_status=JobStatus.WAITING,
                )
                if affected:
                    job = await repo.get_job(candidate.id)

            if affected:
                self._metrics.record_claim(self.worker_id)
                logger.info(
                    "Claimed job",
                    extra={
                        "job_id": job.id,
                        "job_name": job.name,
                        "version": job.version,
                        "attempt": attempt,
                    }
                )
                return PreemptResult(PreemptOutcome.CLAIMED, job=job, attempts=attempt)

            # Optimistic conflict: another worker won this (id, version)
            logger.debug(
                "Lost claim race",
                extra={
                    "job_id": candidate.id,
                    "version": candidate.version,
                    "attempt": attempt,
                }
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(
                    compute_backoff(attempt, self.backoff_base, self.backoff_max, self._rng)
                )

        self._metrics.record_contention(self.worker_id)
        logger.info(
            f"Claim retry budget exhausted after {self.max_attempts} attempts",
            extra={"worker_id": self.worker_id}
        )
        return PreemptResult(PreemptOutcome.CONTENTION, attempts=self.max_attempts)
