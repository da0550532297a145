"""
Job repository for database operations.
Implements the versioned conditional write all lease transitions build on.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cronlease.constants import JobStatus
from cronlease.db.models import Job
from cronlease.errors import (
    InvalidTransitionError,
    JobAlreadyExistsError,
    PersistenceError,
)
from cronlease.utils import utcnow

logger = logging.getLogger(__name__)

# Columns a conditional update may never touch through `fields`
_PROTECTED_FIELDS = frozenset({"id", "name", "created_at", "version", "updated_at"})


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Due candidate selection ordered by (next_due_at, id)
    - Optimistic compare-and-swap on the version column
    - Stale lease discovery
    - Administrative create / pause / resume / delete
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def _execute(self, stmt: Any) -> Any:
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    async def create_job(
        self,
        name: str,
        executor: str,
        expression: str,
        next_due_at: datetime,
        config: dict[str, Any] | None = None,
    ) -> Job:
        """
        Create a new job in WAITING status at version 0.

        Args:
            name: Unique human identifier.
            executor: Executor identifier used by workers.
            expression: Schedule expression.
            next_due_at: First moment the job becomes claimable.
            config: Opaque executor payload.

        Returns:
            The created Job.

        Raises:
            JobAlreadyExistsError: If the name is taken.
            PersistenceError: On any other store failure.
        """
        now = utcnow()
        job = Job(
            name=name,
            executor=executor,
            expression=expression,
            config=config or {},
            status=JobStatus.WAITING,
            version=0,
            next_due_at=next_due_at,
            created_at=now,
            updated_at=now,
        )
        self._session.add(job)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise JobAlreadyExistsError(name) from e
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

        logger.info(
            "Created new job",
            extra={"job_id": job.id, "job_name": name, "executor": executor}
        )
        return job

    async def get_job(self, job_id: int) -> Job | None:
        """
        Get a job by ID, always reflecting the stored row.

        Args:
            job_id: The job ID.

        Returns:
            The Job or None if not found.
        """
        stmt = (
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def get_job_by_name(self, name: str) -> Job | None:
        """Get a job by its unique name."""
        stmt = (
            select(Job)
            .where(Job.name == name)
            .execution_options(populate_existing=True)
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Job], int]:
        """
        List jobs with optional status filtering.

        Args:
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        filters = []
        if status is not None:
            filters.append(Job.status == status)

        count_stmt = select(func.count()).select_from(Job).where(*filters)
        count_result = await self._execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(Job)
            .where(*filters)
            .order_by(Job.id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._execute(stmt)
        jobs = result.scalars().all()

        return jobs, total

    async def find_due_candidate(self, now: datetime) -> Job | None:
        """
        Find the earliest-due claimable job.

        A job is claimable only when WAITING and strictly past its due time.
        Ties on next_due_at are broken by id so older rows are not starved.

        Args:
            now: The instant to evaluate due-ness against.

        Returns:
            One candidate Job or None.
        """
        stmt = (
            select(Job)
            .where(
                and_(
                    Job.status == JobStatus.WAITING,
                    Job.next_due_at < now,
                )
            )
            .order_by(Job.next_due_at.asc(), Job.id.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def conditional_update(
        self,
        job_id: int,
        expected_version: int,
        fields: dict[str, Any],
        now: datetime | None = None,
        expected_status: JobStatus | None = None,
    ) -> int:
        """
        Apply `fields` only if the stored row still carries `expected_version`.

        The write always sets version = expected_version + 1 and
        updated_at = now, so at most one writer can succeed per
        (id, version) pair.

        Args:
            job_id: The job ID.
            expected_version: Version read immediately before this write.
            fields: Column values to set.
            now: Timestamp recorded as updated_at.
            expected_status: Optional additional status guard.

        Returns:
            Number of rows affected: 1 on success, 0 if the race was lost.
        """
        protected = _PROTECTED_FIELDS.intersection(fields)
        if protected:
            raise ValueError(f"Cannot set protected fields: {sorted(protected)}")

        conditions = [Job.id == job_id, Job.version == expected_version]
        if expected_status is not None:
            conditions.append(Job.status == expected_status)

        stmt = (
            update(Job)
            .where(and_(*conditions))
            .values(
                **fields,
                version=expected_version + 1,
                updated_at=now or utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        return result.rowcount

    async def find_stale(
        self,
        now: datetime,
        lease_timeout: timedelta,
    ) -> Sequence[Job]:
        """
        Find RUNNING jobs whose owner has not heartbeated within the lease timeout.

        Args:
            now: The current instant.
            lease_timeout: Maximum allowed heartbeat silence.

        Returns:
            Stale jobs, oldest heartbeat first.
        """
        cutoff = now - lease_timeout
        stmt = (
            select(Job)
            .where(
                and_(
                    Job.status == JobStatus.RUNNING,
                    Job.updated_at < cutoff,
                )
            )
            .order_by(Job.updated_at.asc(), Job.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._execute(stmt)
        return result.scalars().all()

    async def _transition(
        self,
        job_id: int,
        source: JobStatus,
        target: JobStatus,
    ) -> Job | None:
        job = await self.get_job(job_id)
        if job is None:
            return None
        if job.status != source:
            raise InvalidTransitionError(job_id, job.status, target)

        affected = await self.conditional_update(
            job.id,
            job.version,
            {"status": target},
            expected_status=source,
        )
        updated = await self.get_job(job_id)
        if not affected:
            # A worker claimed or released the row between the read and the write
            current = updated.status if updated else "deleted"
            raise InvalidTransitionError(job_id, current, target)

        logger.info(
            f"Job moved from {source} to {target}",
            extra={"job_id": job_id}
        )
        return updated

    async def pause_job(self, job_id: int) -> Job | None:
        """
        Pause a WAITING job.

        Returns:
            The updated Job or None if not found.

        Raises:
            InvalidTransitionError: If the job is not WAITING.
        """
        return await self._transition(job_id, JobStatus.WAITING, JobStatus.PAUSED)

    async def resume_job(self, job_id: int) -> Job | None:
        """
        Resume a PAUSED job.

        Returns:
            The updated Job or None if not found.

        Raises:
            InvalidTransitionError: If the job is not PAUSED.
        """
        return await self._transition(job_id, JobStatus.PAUSED, JobStatus.WAITING)

    async def delete_job(self, job_id: int) -> bool:
        """
        Delete a job.

        Returns:
            True if a row was deleted.
        """
        result = await self._execute(delete(Job).where(Job.id == job_id))
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted job", extra={"job_id": job_id})
        return deleted

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by status.

        Returns:
            Dictionary of status -> count.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        result = await self._execute(stmt)
        return {JobStatus(status).value: count for status, count in result.all()}
