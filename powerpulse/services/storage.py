"""
Append-only storage for finished telemetry samples.

Each finished sample becomes exactly one telemetry_readings row. Rows are
never updated. The read side returns the most recent N readings, newest
first, optionally filtered by source.

CHANGELOG:
- 2026-10-04: Initial creation

TODO:
- None
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from powerpulse.db.models import TelemetryReading
from powerpulse.models import FinishedSample, SourceKind

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 100


def _phase(r: float | None, y: float | None, b: float | None) -> dict:
    return {"R": r, "Y": y, "B": b}


def reading_to_dict(reading: TelemetryReading) -> dict:
    """Serialise a TelemetryReading row to the dashboard JSON shape.

    Args:
        reading: The ORM row to serialise.

    Returns:
        dict: JSON-serialisable reading with camelCase keys.
    """
    return {
        "type": reading.source,
        "timestamp": reading.ts.isoformat(),
        "voltage": _phase(reading.voltage_r, reading.voltage_y, reading.voltage_b),
        "current": _phase(reading.current_r, reading.current_y, reading.current_b),
        "activePower": _phase(
            reading.active_power_r,
            reading.active_power_y,
            reading.active_power_b,
        ),
        "powerFactor": reading.power_factor,
        "thd": reading.thd,
        "avgVoltage": reading.avg_voltage,
        "avgCurrent": reading.avg_current,
        "avgActivePower": reading.avg_active_power,
    }


async def query_recent(
    db: AsyncSession,
    source: SourceKind | None = None,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> list[TelemetryReading]:
    """Return the most recent readings, newest first.

    Args:
        db: Async SQLAlchemy session.
        source: Restrict to one source, or None for all sources.
        limit: Maximum number of rows to return.

    Returns:
        list[TelemetryReading]: Rows ordered by ts descending.
    """
    stmt = select(TelemetryReading)
    if source is not None:
        stmt = stmt.where(TelemetryReading.source == source.value)
    stmt = stmt.order_by(TelemetryReading.ts.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


class SampleStore:
    """Persists finished samples through an async session factory.

    Args:
        session_factory: Factory producing AsyncSession instances.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, sample: FinishedSample) -> None:
        """Insert one row for *sample* and commit.

        Raises whatever the database layer raises; callers decide whether a
        storage failure matters.
        """
        async with self._session_factory() as session:
            session.add(TelemetryReading.from_sample(sample))
            await session.commit()
        logger.info(
            "Saved %s sample at %s",
            sample.source.value,
            sample.timestamp.isoformat(),
        )

    async def recent(
        self,
        source: SourceKind | None = None,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> list[TelemetryReading]:
        """Most recent readings, newest first. See :func:`query_recent`."""
        async with self._session_factory() as session:
            return await query_recent(session, source, limit)
