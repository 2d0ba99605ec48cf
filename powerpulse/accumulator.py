"""
Per-source sample accumulator.

Meters report one field per event (phase voltages, phase currents, power
factor, ...). The accumulator folds those fragments into one in-progress
PartialSample per source and emits a FinishedSample as soon as voltage and
current are known on all three phases and the power factor is known. The
emitting source's slot is reset to empty in the same step.

Grid and generator slots are independent and never merge. State lives on a
SampleAccumulator instance, so each service (and each test) owns its own.

CHANGELOG:
- 2026-10-12: Recompute derived averages when a phase triple is replaced
- 2026-10-09: Optional staleness limit for pending partial samples
- 2026-10-03: Initial creation

TODO:
- None
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from powerpulse.models import (
    FIELD_TARGETS,
    FieldKind,
    FinishedSample,
    Fragment,
    PhaseValues,
    SourceKind,
    phase_mean,
)

logger = logging.getLogger(__name__)

Triple = tuple[float | None, float | None, float | None]

_EMPTY_TRIPLE: Triple = (None, None, None)


def _complete(triple: Triple) -> bool:
    return all(v is not None for v in triple)


def _any_present(triple: Triple) -> bool:
    return any(v is not None for v in triple)


@dataclass
class PartialSample:
    """In-progress accumulation state for one source.

    Attributes:
        voltage: Phase voltages (R, Y, B).
        current: Phase currents (R, Y, B).
        active_power: Phase active power (R, Y, B).
        power_factor: Average power factor.
        avg_voltage: Average voltage, source-supplied or derived.
        avg_active_power: Average active power, source-supplied or derived.
        avg_current: Average current, always derived.
        started_at: When the first fragment of this cycle was merged.
        avg_voltage_supplied: Set once the source reports its own average
            voltage in this cycle.
        avg_active_power_supplied: Same, for average active power.
    """

    voltage: Triple = _EMPTY_TRIPLE
    current: Triple = _EMPTY_TRIPLE
    active_power: Triple = _EMPTY_TRIPLE
    power_factor: float | None = None
    avg_voltage: float | None = None
    avg_active_power: float | None = None
    avg_current: float | None = None
    started_at: datetime | None = None
    avg_voltage_supplied: bool = field(default=False, repr=False)
    avg_active_power_supplied: bool = field(default=False, repr=False)

    @property
    def is_empty(self) -> bool:
        """True when no measurement field has been set."""
        return (
            not _any_present(self.voltage)
            and not _any_present(self.current)
            and not _any_present(self.active_power)
            and self.power_factor is None
            and self.avg_voltage is None
            and self.avg_active_power is None
            and self.avg_current is None
        )

    @property
    def is_complete(self) -> bool:
        """True once voltage and current are full and power factor is known."""
        return (
            _complete(self.voltage)
            and _complete(self.current)
            and self.power_factor is not None
        )

    def merge(self, fragment: Fragment) -> None:
        """Overwrite the field carried by *fragment*; leave the rest untouched."""
        target = FIELD_TARGETS[fragment.kind]
        if fragment.kind.is_triple:
            padded = tuple(fragment.values) + _EMPTY_TRIPLE
            setattr(self, target, padded[:3])
        else:
            setattr(self, target, fragment.scalar)

        if fragment.kind is FieldKind.AVERAGE_VOLTAGE:
            self.avg_voltage_supplied = True
        elif fragment.kind is FieldKind.AVERAGE_ACTIVE_POWER:
            self.avg_active_power_supplied = True

    def derive_averages(self) -> None:
        """Fill in averages from phase values.

        Average voltage and average active power follow the latest phase
        triple until the source supplies its own value, which then sticks
        for the rest of the cycle. Average current has no source-supplied
        form and is recomputed whenever any phase current is present.
        """
        if not self.avg_voltage_supplied and _any_present(self.voltage):
            self.avg_voltage = phase_mean(self.voltage)
        if not self.avg_active_power_supplied and _any_present(self.active_power):
            self.avg_active_power = phase_mean(self.active_power)
        if _any_present(self.current):
            self.avg_current = phase_mean(self.current)

    def finish(self, source: SourceKind, timestamp: datetime) -> FinishedSample:
        """Build an immutable FinishedSample from the current state."""
        return FinishedSample(
            source=source,
            timestamp=timestamp,
            voltage=PhaseValues.from_tuple(self.voltage),
            current=PhaseValues.from_tuple(self.current),
            active_power=PhaseValues.from_tuple(self.active_power),
            power_factor=self.power_factor,
            avg_voltage=self.avg_voltage,
            avg_current=self.avg_current,
            avg_active_power=self.avg_active_power,
        )


class SampleAccumulator:
    """Folds fragments into per-source partial samples.

    Args:
        max_partial_age: Optional staleness limit. When set, a pending
            partial sample that started longer ago than this is discarded
            before the next fragment for its source is merged. ``None``
            (the default) keeps partial samples indefinitely.

    Usage::

        accumulator = SampleAccumulator()
        for fragment in fragments:
            sample = accumulator.accumulate(fragment)
            if sample is not None:
                ...
    """

    def __init__(self, max_partial_age: timedelta | None = None) -> None:
        self._slots: dict[SourceKind, PartialSample] = {}
        self._max_partial_age = max_partial_age

    def accumulate(
        self,
        fragment: Fragment,
        *,
        now: datetime | None = None,
    ) -> FinishedSample | None:
        """Merge *fragment* into its source's slot.

        Args:
            fragment: A decoded, recognised fragment.
            now: Completion timestamp to stamp on a finished sample.
                Defaults to the current UTC time.

        Returns:
            The FinishedSample if this fragment completed the slot,
            otherwise ``None``.
        """
        now = now or datetime.now(tz=UTC)
        source = fragment.source

        partial = self._slots.get(source)
        if partial is None:
            partial = self._slots[source] = PartialSample()
        elif self._is_stale(partial, now):
            logger.warning(
                "Discarding stale %s partial sample started at %s",
                source.value,
                partial.started_at.isoformat() if partial.started_at else None,
            )
            partial = self._slots[source] = PartialSample()

        if partial.started_at is None:
            partial.started_at = now

        partial.merge(fragment)
        partial.derive_averages()

        if not partial.is_complete:
            return None

        sample = partial.finish(source, timestamp=now)
        self._slots[source] = PartialSample()
        logger.debug("Completed %s sample at %s", source.value, now.isoformat())
        return sample

    def pending(self, source: SourceKind) -> PartialSample | None:
        """Return a copy of the slot for *source*, or None if never created."""
        partial = self._slots.get(source)
        if partial is None:
            return None
        return dataclasses.replace(partial)

    def reset(self, source: SourceKind | None = None) -> None:
        """Clear one source's slot, or every slot when *source* is None."""
        if source is None:
            self._slots.clear()
        else:
            self._slots.pop(source, None)

    def _is_stale(self, partial: PartialSample, now: datetime) -> bool:
        if self._max_partial_age is None or partial.started_at is None:
            return False
        return now - partial.started_at > self._max_partial_age
