"""
POST /v1/predict endpoint proxying a reading to the prediction service.

Runs the anomaly prediction and the THD check concurrently and returns
both results. A failing or unreachable prediction service never fails the
request; the affected half of the response carries its unknown sentinel.

CHANGELOG:
- 2026-10-08: Initial creation
"""

import asyncio
import logging

from fastapi import APIRouter, Request

from powerpulse.models import PredictionInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["predict"])


@router.post("/predict")
async def predict(request: Request, reading: PredictionInput) -> dict:
    """Return ``{"mlResult": ..., "thdResult": ...}`` for *reading*."""
    client = request.app.state.prediction_client
    ml_result, thd_result = await asyncio.gather(
        client.predict(reading),
        client.detect_thd(reading),
    )
    return {
        "mlResult": ml_result.model_dump(by_alias=True),
        "thdResult": thd_result.model_dump(),
    }
