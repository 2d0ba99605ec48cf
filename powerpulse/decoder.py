"""
Pure field decoder that turns one raw Powerpulse event into a Fragment.

A raw event is a JSON object of the form::

    {"Powerpulse": {"server_id": 1, "addr": 40, "name": "RYB_Current",
                    "data": "[10.1, 11.0, 9.8]"}}

``server_id`` selects the meter (1 = grid, 2 = generator), ``name`` selects
the field, and ``data`` carries bracketed, comma-separated numbers. The
decoder is deliberately lossy: tokens that do not parse as numbers become
``0.0`` instead of failing the event.

This is a pure function apart from logging: no I/O, no shared state. The
decode time can be injected so callers and tests control the clock.

CHANGELOG:
- 2026-10-12: Treat non-finite and underscore-separated tokens as unparsable
- 2026-10-05: Pad short per-phase payloads with None instead of rejecting
- 2026-10-02: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from powerpulse.models import FieldKind, Fragment, SourceKind

logger = logging.getLogger(__name__)

ENVELOPE_KEY = "Powerpulse"
"""Top-level key wrapping the payload in every raw event."""

_SOURCE_BY_SERVER_ID: dict[int, SourceKind] = {
    1: SourceKind.GRID,
    2: SourceKind.GENERATOR,
}

# ---------------------------------------------------------------------------
# Substring rules evaluated after the per-source phase-voltage check.
#
# Order matters: first match wins. "avg_voltage" sits before the current and
# power rules and is a separate branch from the plain phase-voltage labels.
# ---------------------------------------------------------------------------

_FIELD_RULES: tuple[tuple[str, FieldKind], ...] = (
    ("avg_voltage", FieldKind.AVERAGE_VOLTAGE),
    ("ryb_current", FieldKind.PHASE_CURRENT),
    ("avg_pf", FieldKind.AVERAGE_POWER_FACTOR),
    ("ryb_activepower", FieldKind.PHASE_ACTIVE_POWER),
    ("avg_activepower", FieldKind.AVERAGE_ACTIVE_POWER),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_source(server_id: Any) -> SourceKind | None:
    """Map a device identifier to its source, or None if it is not routable.

    Accepts ints, floats and numeric strings (``"1"``, ``"2.0"``).
    """
    if server_id is None or isinstance(server_id, bool):
        return None
    try:
        code = float(server_id)
    except (TypeError, ValueError):
        return None
    if not code.is_integer():
        return None
    return _SOURCE_BY_SERVER_ID.get(int(code))


def _to_float(token: str) -> float:
    # float() also accepts digit separators and overflowing exponents.
    if "_" in token:
        return 0.0
    try:
        value = float(token)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def parse_payload(data: str) -> list[float]:
    """Parse a bracketed, comma-separated numeric string.

    Brackets are stripped, the remainder is split on commas and every token
    is parsed as a float. Unparsable tokens become ``0.0``; this never raises.

    Example:
        ``"[12.5, abc, 7]"`` -> ``[12.5, 0.0, 7.0]``
    """
    cleaned = data.replace("[", "").replace("]", "").strip()
    return [_to_float(token) for token in cleaned.split(",")]


def classify_field(source: SourceKind, name: str) -> FieldKind:
    """Classify a field label for the given source.

    Matching is case-insensitive. The generator reports phase voltages under
    the exact label ``voltage``; the grid meter under labels containing
    ``voltage1``. All other kinds are matched by substring in fixed order.
    """
    lowered = name.lower()

    if source is SourceKind.GENERATOR and lowered == "voltage":
        return FieldKind.PHASE_VOLTAGE
    if source is SourceKind.GRID and "voltage1" in lowered:
        return FieldKind.PHASE_VOLTAGE

    for needle, kind in _FIELD_RULES:
        if needle in lowered:
            return kind

    return FieldKind.UNRECOGNIZED


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode(
    raw: Any,
    *,
    received_at: datetime | None = None,
) -> Fragment | None:
    """Decode one raw telemetry event into a Fragment.

    Args:
        raw: The event body as parsed from JSON.
        received_at: Decode timestamp to embed. Defaults to the current
            UTC time.

    Returns:
        A :class:`Fragment`, or ``None`` if the envelope or payload string
        is missing, the device is not routable, or the field label is not
        recognised.
    """
    if not isinstance(raw, Mapping):
        return None

    envelope = raw.get(ENVELOPE_KEY)
    if not isinstance(envelope, Mapping):
        return None

    data = envelope.get("data")
    if not isinstance(data, str) or not data:
        return None

    source = resolve_source(envelope.get("server_id"))
    if source is None:
        logger.debug(
            "Dropping event from unroutable server_id %r",
            envelope.get("server_id"),
        )
        return None

    name = envelope.get("name") or ""
    if not isinstance(name, str):
        name = str(name)

    kind = classify_field(source, name)
    if kind is FieldKind.UNRECOGNIZED:
        logger.warning(
            "Unrecognized entry ignored: %s (addr=%s, source=%s)",
            name,
            envelope.get("addr"),
            source.value,
        )
        return None

    numbers = parse_payload(data)
    if kind.is_triple:
        values: tuple[float | None, ...] = tuple(
            numbers[i] if i < len(numbers) else None for i in range(3)
        )
    else:
        values = (numbers[0],)

    return Fragment(
        source=source,
        kind=kind,
        values=values,
        field_name=name,
        received_at=received_at or datetime.now(tz=UTC),
    )
