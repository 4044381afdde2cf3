"""
Initial schema: readings hypertable and cached_credentials table.

Enables the TimescaleDB extension, creates the append-only ``readings``
table keyed on ``observed_at`` and converts it to a hypertable with a
7-day chunk interval, then creates ``cached_credentials`` with an index on
``issued_at`` for the newest-credential lookup.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

CHANGELOG:
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the readings hypertable and the cached_credentials table."""
    op.execute("CREATE EXTENSION IF NOT EXISTS timescaledb")

    op.create_table(
        "readings",
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("current_power_w", sa.Double(), nullable=False),
        sa.Column("raw_payload", postgresql.JSONB(), nullable=False),
        sa.Column("uv_index", sa.Double(), nullable=True),
        sa.Column("temperature", sa.Double(), nullable=True),
        sa.PrimaryKeyConstraint("observed_at"),
    )

    op.execute(
        "SELECT create_hypertable("
        "'readings', 'observed_at', "
        "chunk_time_interval => INTERVAL '7 days', "
        "if_not_exists => TRUE"
        ")"
    )

    op.create_table(
        "cached_credentials",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("token_blob", postgresql.JSONB(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_cached_credentials_issued_at",
        "cached_credentials",
        ["issued_at"],
    )


def downgrade() -> None:
    """Drop both tables (the timescaledb extension is left in place)."""
    op.drop_index("ix_cached_credentials_issued_at", table_name="cached_credentials")
    op.drop_table("cached_credentials")
    op.drop_table("readings")
