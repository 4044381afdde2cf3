"""
SQLAlchemy ORM models for the harvester database.

Defines the SolarReading model stored in the ``readings`` TimescaleDB
hypertable and the CachedCredential model holding every SEMS credential ever
issued. Both tables are append-only: rows are inserted, never updated.

CHANGELOG:
- 2026-10-19: Add cached_credentials table (STORY-003)
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Double, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development).
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all harvester ORM models."""

    pass


class SolarReading(Base):
    """Fused solar/UV/weather reading captured by one poll cycle.

    Stored in the ``readings`` hypertable keyed on ``observed_at``; a single
    station is polled so the capture time alone identifies a row. Capture
    times must therefore be unique: a second reading with the same
    ``observed_at`` is rejected by the primary key and surfaces from
    ``ingest_reading`` as a StoreError, failing that cycle only.

    Attributes:
        observed_at: Capture timestamp in UTC.
        current_power_w: Instantaneous solar output in watts.
        raw_payload: Complete SEMS plant-details response.
        uv_index: UV index (nullable, best-effort enrichment).
        temperature: Air temperature in Celsius (nullable).
    """

    __tablename__ = "readings"

    observed_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        primary_key=True,
        nullable=False,
    )
    current_power_w: Mapped[float] = mapped_column(Double, nullable=False)
    raw_payload: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    uv_index: Mapped[float | None] = mapped_column(Double, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Double, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the SolarReading."""
        return (
            f"SolarReading(observed_at={self.observed_at!r}, "
            f"current_power_w={self.current_power_w!r})"
        )


class CachedCredential(Base):
    """A SEMS session credential as issued by the login exchange.

    The newest row by ``issued_at`` is the current credential; older rows
    are history only.
    """

    __tablename__ = "cached_credentials"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    token_blob: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    issued_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """Return string representation of the CachedCredential."""
        return f"CachedCredential(id={self.id!r}, issued_at={self.issued_at!r})"
