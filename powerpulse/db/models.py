"""
SQLAlchemy ORM models for the reading store.

Defines the TelemetryReading model: one append-only row per finished sample.
Readings are never updated, so a surrogate id is the primary key and the
(source, ts) index serves the "most recent N per source" query.

CHANGELOG:
- 2026-10-04: Initial creation

TODO:
- None
"""

from __future__ import annotations

import datetime

from sqlalchemy import BigInteger, DateTime, Double, Index, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from powerpulse.models import FinishedSample


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all PowerPulse ORM models."""

    pass


class TelemetryReading(Base):
    """Finished telemetry sample for one source.

    Attributes:
        id: Surrogate primary key.
        source: ``grid`` or ``generator``.
        ts: Completion timestamp in UTC.
        voltage_r, voltage_y, voltage_b: Phase voltages.
        current_r, current_y, current_b: Phase currents.
        active_power_r, active_power_y, active_power_b: Phase active power
            (nullable, not required for completion).
        power_factor: Average power factor.
        thd: Total harmonic distortion (nullable).
        avg_voltage: Average voltage.
        avg_current: Average current.
        avg_active_power: Average active power (nullable).
    """

    __tablename__ = "telemetry_readings"
    __table_args__ = (Index("ix_telemetry_readings_source_ts", "source", "ts"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    ts: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    voltage_r: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_y: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_r: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_y: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_r: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_y: Mapped[float | None] = mapped_column(Double, nullable=True)
    active_power_b: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_factor: Mapped[float | None] = mapped_column(Double, nullable=True)
    thd: Mapped[float | None] = mapped_column(Double, nullable=True)
    avg_voltage: Mapped[float | None] = mapped_column(Double, nullable=True)
    avg_current: Mapped[float | None] = mapped_column(Double, nullable=True)
    avg_active_power: Mapped[float | None] = mapped_column(Double, nullable=True)

    @classmethod
    def from_sample(cls, sample: FinishedSample) -> TelemetryReading:
        """Build an unsaved row from a FinishedSample."""
        return cls(
            source=sample.source.value,
            ts=sample.timestamp,
            voltage_r=sample.voltage.r,
            voltage_y=sample.voltage.y,
            voltage_b=sample.voltage.b,
            current_r=sample.current.r,
            current_y=sample.current.y,
            current_b=sample.current.b,
            active_power_r=sample.active_power.r,
            active_power_y=sample.active_power.y,
            active_power_b=sample.active_power.b,
            power_factor=sample.power_factor,
            thd=sample.thd,
            avg_voltage=sample.avg_voltage,
            avg_current=sample.avg_current,
            avg_active_power=sample.avg_active_power,
        )

    def __repr__(self) -> str:
        """Return string representation of the TelemetryReading."""
        return (
            f"TelemetryReading(source={self.source!r}, "
            f"ts={self.ts!r}, avg_voltage={self.avg_voltage!r})"
        )
