"""
Pydantic models for power-meter telemetry.

Defines the canonical record shared by live previews, finished samples and
stored readings, plus the decoded Fragment produced by the field decoder.
All wire-facing models serialise with the dashboard's camelCase keys
(``activePower``, ``avgVoltage``, ...) and the source under ``type``.

CHANGELOG:
- 2026-10-08: Add PredictionInput for the prediction collaborator
- 2026-10-06: Add IngestOutcome result channel
- 2026-10-02: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SourceKind(StrEnum):
    """Telemetry origin. Each source is accumulated independently."""

    GRID = "grid"
    GENERATOR = "generator"


class FieldKind(StrEnum):
    """Classification of a single telemetry field label."""

    PHASE_VOLTAGE = "phase_voltage"
    PHASE_CURRENT = "phase_current"
    PHASE_ACTIVE_POWER = "phase_active_power"
    AVERAGE_POWER_FACTOR = "average_power_factor"
    AVERAGE_VOLTAGE = "average_voltage"
    AVERAGE_ACTIVE_POWER = "average_active_power"
    UNRECOGNIZED = "unrecognized"

    @property
    def is_triple(self) -> bool:
        """True for fields carrying one value per phase (R, Y, B)."""
        return self in _TRIPLE_KINDS


_TRIPLE_KINDS = frozenset(
    {
        FieldKind.PHASE_VOLTAGE,
        FieldKind.PHASE_CURRENT,
        FieldKind.PHASE_ACTIVE_POWER,
    }
)

FIELD_TARGETS: dict[FieldKind, str] = {
    FieldKind.PHASE_VOLTAGE: "voltage",
    FieldKind.PHASE_CURRENT: "current",
    FieldKind.PHASE_ACTIVE_POWER: "active_power",
    FieldKind.AVERAGE_POWER_FACTOR: "power_factor",
    FieldKind.AVERAGE_VOLTAGE: "avg_voltage",
    FieldKind.AVERAGE_ACTIVE_POWER: "avg_active_power",
}
"""Maps a recognised FieldKind -> record attribute it populates."""


class IngestOutcome(StrEnum):
    """Result of feeding one raw event through the pipeline."""

    DECODE_REJECTED = "decode_rejected"
    ABSORBED = "absorbed"
    DELIVERED = "delivered"
    PERSIST_FAILED = "persist_failed"


def phase_mean(values: Iterable[float | None]) -> float | None:
    """Arithmetic mean of the non-null, non-NaN values, or None if there are none."""
    valid = [v for v in values if v is not None and not math.isnan(v)]
    if not valid:
        return None
    return sum(valid) / len(valid)


class PhaseValues(BaseModel):
    """Per-phase readings for a three-phase meter. Each phase may be missing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    r: float | None = Field(default=None, alias="R")
    y: float | None = Field(default=None, alias="Y")
    b: float | None = Field(default=None, alias="B")

    @classmethod
    def from_tuple(cls, values: tuple[float | None, ...]) -> PhaseValues:
        padded = tuple(values) + (None, None, None)
        return cls(r=padded[0], y=padded[1], b=padded[2])

    def as_tuple(self) -> tuple[float | None, float | None, float | None]:
        return (self.r, self.y, self.b)

    @property
    def is_complete(self) -> bool:
        return all(v is not None for v in self.as_tuple())

    def mean(self) -> float | None:
        return phase_mean(self.as_tuple())


class TelemetryRecord(BaseModel):
    """Record-shaped telemetry reading for one source.

    Used directly for live partial previews, where most fields are null,
    and as the base of :class:`FinishedSample`.

    Attributes:
        source: Grid or generator (serialised as ``type``).
        timestamp: When the record was produced (UTC).
        voltage: Phase voltages in volts.
        current: Phase currents in amperes.
        active_power: Phase active power.
        power_factor: Average power factor.
        thd: Total harmonic distortion. No ingestion path populates it.
        avg_voltage: Average voltage, source-supplied or derived.
        avg_current: Average current, always derived from phase currents.
        avg_active_power: Average active power, source-supplied or derived.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    source: SourceKind = Field(alias="type")
    timestamp: datetime
    voltage: PhaseValues = Field(default_factory=PhaseValues)
    current: PhaseValues = Field(default_factory=PhaseValues)
    active_power: PhaseValues = Field(default_factory=PhaseValues)
    power_factor: float | None = None
    thd: float | None = None
    avg_voltage: float | None = None
    avg_current: float | None = None
    avg_active_power: float | None = None

    def to_wire(self) -> dict:
        """Serialise to the JSON-compatible dashboard shape."""
        return self.model_dump(mode="json", by_alias=True)


class FinishedSample(TelemetryRecord):
    """A complete, immutable reading ready for persistence and broadcast.

    Only the accumulator builds these, and only once voltage and current
    are populated on all three phases and the power factor is known.
    """


class Fragment(BaseModel):
    """One decoded field update for one source.

    Attributes:
        source: Which meter the update came from.
        kind: Classification of the field label.
        values: Three phase values (R, Y, B) for per-phase fields, one
            scalar otherwise. Missing trailing phases are None.
        field_name: The original field label, kept for logging.
        received_at: When the event was decoded (UTC).
    """

    model_config = ConfigDict(frozen=True)

    source: SourceKind
    kind: FieldKind
    values: tuple[float | None, ...]
    field_name: str = ""
    received_at: datetime

    @property
    def scalar(self) -> float | None:
        return self.values[0] if self.values else None

    def to_preview(self) -> TelemetryRecord:
        """Render this fragment as a record-shaped partial update.

        Only the fragment's own field is populated. Averages that can be
        computed from the fragment's own phase values are filled in.
        """
        target = FIELD_TARGETS[self.kind]
        if self.kind.is_triple:
            fields: dict = {target: PhaseValues.from_tuple(self.values)}
        else:
            fields = {target: self.scalar}

        if self.kind is FieldKind.PHASE_VOLTAGE:
            fields["avg_voltage"] = phase_mean(self.values)
        elif self.kind is FieldKind.PHASE_CURRENT:
            fields["avg_current"] = phase_mean(self.values)
        elif self.kind is FieldKind.PHASE_ACTIVE_POWER:
            fields["avg_active_power"] = phase_mean(self.values)

        return TelemetryRecord(
            source=self.source,
            timestamp=self.received_at,
            **fields,
        )


class PredictionInput(BaseModel):
    """Reading fields accepted by the prediction collaborator.

    All fields are optional; missing values are substituted with neutral
    defaults when the request is built.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    voltage: PhaseValues = Field(default_factory=PhaseValues)
    current: PhaseValues = Field(default_factory=PhaseValues)
    avg_active_power: float | None = None
    power_factor: float | None = None
    thd: float | None = None
