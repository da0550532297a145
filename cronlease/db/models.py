"""
SQLAlchemy database models.
Defines the Job table, the single shared resource all workers contend over.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cronlease.constants import JobStatus
from cronlease.utils import utcnow


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    A scheduled job definition plus its mutable scheduling state.

    This is the authoritative source of truth for job ownership.
    Every lease transition (claim, heartbeat, release, reclaim) goes
    through a versioned conditional update on this table.

    Key constraints:
    - name is unique and immutable after creation
    - version increases by exactly one on every lease transition
    - updated_at doubles as the heartbeat signal while status is RUNNING
    """

    __tablename__ = "jobs"

    # SQLite only autoincrements INTEGER PRIMARY KEY columns
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    name: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
    )
    executor: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    expression: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Opaque to the core, handed to the executor as-is
    config: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=dict,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.WAITING,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Timestamps (naive UTC)
    next_due_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        # Candidate selection: status = waiting AND next_due_at < now
        Index("ix_jobs_due_poll", "status", "next_due_at"),
        # Stale lease scan: status = running AND updated_at < cutoff
        Index("ix_jobs_lease_staleness", "status", "updated_at"),
    )

    def is_due(self, now: datetime) -> bool:
        """Check whether the job is claimable at the given instant."""
        return self.status == JobStatus.WAITING and self.next_due_at < now

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, name={self.name}, "
            f"status={self.status}, version={self.version})"
        )
