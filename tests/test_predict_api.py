"""
Tests for POST /v1/predict.

CHANGELOG:
- 2026-10-08: Initial creation
"""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from powerpulse.services.prediction import (
    PREDICTION_UNKNOWN,
    THD_UNKNOWN,
    PredictionResult,
    ThdResult,
)

READING = {
    "voltage": {"R": 230, "Y": 231, "B": 229},
    "current": {"R": 10, "Y": 11, "B": 9},
    "avgActivePower": 5.5,
    "powerFactor": 0.95,
    "thd": 2.0,
}


def _mock_prediction_client(
    ml: PredictionResult, thd: ThdResult
) -> MagicMock:
    prediction_client = MagicMock()
    prediction_client.predict = AsyncMock(return_value=ml)
    prediction_client.detect_thd = AsyncMock(return_value=thd)
    return prediction_client


def test_returns_both_results(client: TestClient) -> None:
    prediction_client = _mock_prediction_client(
        PredictionResult(is_anomaly=True, predicted_active_power=4.0),
        ThdResult(is_thd_anomaly=True, threshold_violation=True),
    )
    client.app.state.prediction_client = prediction_client

    response = client.post("/v1/predict", json=READING)

    assert response.status_code == 200
    assert response.json() == {
        "mlResult": {"is_anomaly": True, "predicted_activePower": 4.0},
        "thdResult": {
            "is_thd_anomaly": True,
            "threshold_violation": True,
            "message": None,
        },
    }
    reading = prediction_client.predict.await_args.args[0]
    assert reading.voltage.r == 230
    assert reading.avg_active_power == 5.5


def test_unavailable_service_returns_sentinels(client: TestClient) -> None:
    client.app.state.prediction_client = _mock_prediction_client(
        PREDICTION_UNKNOWN, THD_UNKNOWN
    )

    response = client.post("/v1/predict", json={})

    assert response.status_code == 200
    assert response.json() == {
        "mlResult": {"is_anomaly": None, "predicted_activePower": None},
        "thdResult": {
            "is_thd_anomaly": False,
            "threshold_violation": False,
            "message": "Error",
        },
    }


def test_invalid_body_returns_422(client: TestClient) -> None:
    response = client.post("/v1/predict", json={"powerFactor": "high"})
    assert response.status_code == 422
