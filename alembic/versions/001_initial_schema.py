"""Initial schema with jobs table

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE job_status AS ENUM ('waiting', 'running', 'paused');
        EXCEPTION
            WHEN duplicate_object THEN null;
        END $$;
    """)

    op.create_table(
        "jobs",
        sa.Column("id", sa.BigInteger, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("executor", sa.String(255), nullable=False),
        sa.Column("expression", sa.String(255), nullable=False),
        sa.Column("config", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column(
            "status",
            postgresql.ENUM("waiting", "running", "paused", name="job_status", create_type=False),
            nullable=False,
            server_default="waiting",
        ),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("next_due_at", sa.DateTime, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime,
            nullable=False,
            server_default=sa.text("(now() AT TIME ZONE 'utc')"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime,
            nullable=False,
            server_default=sa.text("(now() AT TIME ZONE 'utc')"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_jobs_name"),
    )

    # Candidate selection: status = 'waiting' AND next_due_at < now
    op.create_index("ix_jobs_due_poll", "jobs", ["status", "next_due_at"])

    # Stale lease scan: status = 'running' AND updated_at < cutoff
    op.create_index("ix_jobs_lease_staleness", "jobs", ["status", "updated_at"])


def downgrade() -> None:
    op.drop_index("ix_jobs_lease_staleness")
    op.drop_index("ix_jobs_due_poll")
    op.drop_table("jobs")
    op.execute("DROP TYPE IF EXISTS job_status")
