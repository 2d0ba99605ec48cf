"""
HTTP client for the anomaly-prediction service.

Two calls are supported:

- ``predict``: POST ``/predict`` with phase voltages/currents, active power,
  power factor and THD; returns an anomaly flag and a predicted active power.
- ``detect_thd``: POST ``/detect_thd`` with THD and phase voltages; returns a
  THD-anomaly flag and a threshold-violation flag.

Both calls are best-effort. Network errors, non-200 responses and malformed
bodies are logged and replaced by a sentinel result, so callers can treat a
missing prediction as non-fatal.

CHANGELOG:
- 2026-10-08: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from powerpulse.models import PredictionInput

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 5.0


class PredictionResult(BaseModel):
    """Anomaly prediction for one reading. Both fields None when unknown."""

    model_config = ConfigDict(populate_by_name=True)

    is_anomaly: bool | None = None
    predicted_active_power: float | None = Field(
        default=None, alias="predicted_activePower"
    )


class ThdResult(BaseModel):
    """THD anomaly check for one reading."""

    is_thd_anomaly: bool = False
    threshold_violation: bool = False
    message: str | None = None


PREDICTION_UNKNOWN = PredictionResult()
THD_UNKNOWN = ThdResult(message="Error")


def _or_default(value: float | None, default: float) -> float:
    return default if value is None else value


def build_predict_payload(reading: PredictionInput) -> dict[str, float]:
    """Request body for ``/predict``; missing values become neutral defaults."""
    return {
        "voltage_R": _or_default(reading.voltage.r, 0),
        "voltage_Y": _or_default(reading.voltage.y, 0),
        "voltage_B": _or_default(reading.voltage.b, 0),
        "current_R": _or_default(reading.current.r, 0),
        "current_Y": _or_default(reading.current.y, 0),
        "current_B": _or_default(reading.current.b, 0),
        "activePower": _or_default(reading.avg_active_power, 0),
        "powerFactor": _or_default(reading.power_factor, 1),
        "thd": _or_default(reading.thd, 0),
    }


def build_thd_payload(reading: PredictionInput) -> dict[str, float]:
    """Request body for ``/detect_thd``."""
    return {
        "thd": _or_default(reading.thd, 0),
        "voltage_R": _or_default(reading.voltage.r, 0),
        "voltage_Y": _or_default(reading.voltage.y, 0),
        "voltage_B": _or_default(reading.voltage.b, 0),
    }


class PredictionClient:
    """Best-effort client for the prediction service.

    Args:
        base_url: Service base URL, e.g. ``http://localhost:8083``.
        timeout_s: Per-request timeout in seconds.

    Usage::

        client = PredictionClient("http://ml:8083")
        result = await client.predict(reading)
        if result.is_anomaly:
            ...
    """

    def __init__(self, base_url: str, timeout_s: float = _DEFAULT_TIMEOUT_S) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    async def predict(self, reading: PredictionInput) -> PredictionResult:
        """Ask for an anomaly flag and predicted active power."""
        body = await self._post("/predict", build_predict_payload(reading))
        if body is None:
            return PREDICTION_UNKNOWN
        try:
            return PredictionResult.model_validate(body)
        except ValidationError:
            logger.warning("Prediction response malformed: %r", body)
            return PREDICTION_UNKNOWN

    async def detect_thd(self, reading: PredictionInput) -> ThdResult:
        """Ask whether the reading's THD is anomalous."""
        body = await self._post("/detect_thd", build_thd_payload(reading))
        if body is None:
            return THD_UNKNOWN
        try:
            return ThdResult.model_validate(body)
        except ValidationError:
            logger.warning("THD detection response malformed: %r", body)
            return THD_UNKNOWN

    async def _post(self, path: str, payload: dict[str, float]) -> Any | None:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Prediction request to %s failed: %s", url, exc)
            return None

        if response.status_code != 200:
            logger.warning(
                "Prediction request to %s failed (HTTP %d)",
                url,
                response.status_code,
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning("Prediction response from %s is not JSON", url)
            return None
        logger.debug("Prediction response from %s: %s", url, body)
        return body
