"""
Tests for the prediction service client.

The HTTP transport is mocked by patching httpx.AsyncClient in the
prediction module.

CHANGELOG:
- 2026-10-08: Initial creation

TODO:
- None
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from powerpulse.models import PhaseValues, PredictionInput
from powerpulse.services.prediction import (
    PREDICTION_UNKNOWN,
    THD_UNKNOWN,
    PredictionClient,
    build_predict_payload,
    build_thd_payload,
)

BASE_URL = "http://ml.test:8083"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reading() -> PredictionInput:
    return PredictionInput(
        voltage=PhaseValues(r=230, y=231, b=229),
        current=PhaseValues(r=10, y=11, b=None),
        avg_active_power=5.5,
        power_factor=None,
        thd=2.5,
    )


def _mock_client(
    status_code: int = 200,
    body: object = None,
    post_side_effect: Exception | None = None,
    json_side_effect: Exception | None = None,
) -> AsyncMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    if json_side_effect is not None:
        mock_response.json = MagicMock(side_effect=json_side_effect)
    else:
        mock_response.json = MagicMock(return_value=body)

    mock_client = AsyncMock()
    if post_side_effect is not None:
        mock_client.post = AsyncMock(side_effect=post_side_effect)
    else:
        mock_client.post = AsyncMock(return_value=mock_response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


class TestPayloads:
    def test_predict_payload_defaults(self) -> None:
        payload = build_predict_payload(_reading())
        assert payload == {
            "voltage_R": 230,
            "voltage_Y": 231,
            "voltage_B": 229,
            "current_R": 10,
            "current_Y": 11,
            "current_B": 0,
            "activePower": 5.5,
            "powerFactor": 1,
            "thd": 2.5,
        }

    def test_predict_payload_empty_reading(self) -> None:
        payload = build_predict_payload(PredictionInput())
        assert payload["activePower"] == 0
        assert payload["powerFactor"] == 1
        assert payload["thd"] == 0

    def test_thd_payload(self) -> None:
        assert build_thd_payload(_reading()) == {
            "thd": 2.5,
            "voltage_R": 230,
            "voltage_Y": 231,
            "voltage_B": 229,
        }


# ---------------------------------------------------------------------------
# predict()
# ---------------------------------------------------------------------------


class TestPredict:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        mock_client = _mock_client(
            body={"is_anomaly": True, "predicted_activePower": 4.2}
        )
        client = PredictionClient(BASE_URL + "/")

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await client.predict(_reading())

        assert result.is_anomaly is True
        assert result.predicted_active_power == 4.2
        call_args = mock_client.post.call_args
        assert call_args[0][0] == "http://ml.test:8083/predict"
        assert call_args[1]["json"]["powerFactor"] == 1

    @pytest.mark.asyncio
    async def test_network_error_returns_sentinel(self) -> None:
        mock_client = _mock_client(
            post_side_effect=httpx.ConnectError("connection refused")
        )
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await client.predict(_reading())

        assert result == PREDICTION_UNKNOWN
        assert result.is_anomaly is None
        assert result.predicted_active_power is None

    @pytest.mark.asyncio
    async def test_timeout_returns_sentinel(self) -> None:
        mock_client = _mock_client(post_side_effect=httpx.ReadTimeout("slow"))
        client = PredictionClient(BASE_URL, timeout_s=0.1)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ) as mock_cls:
            result = await client.predict(_reading())

        assert result == PREDICTION_UNKNOWN
        mock_cls.assert_called_once_with(timeout=0.1)

    @pytest.mark.asyncio
    async def test_non_200_returns_sentinel(self) -> None:
        mock_client = _mock_client(status_code=500, body={"detail": "boom"})
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            assert await client.predict(_reading()) == PREDICTION_UNKNOWN

    @pytest.mark.asyncio
    async def test_non_json_body_returns_sentinel(self) -> None:
        mock_client = _mock_client(json_side_effect=ValueError("not json"))
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            assert await client.predict(_reading()) == PREDICTION_UNKNOWN

    @pytest.mark.asyncio
    async def test_malformed_body_returns_sentinel(self) -> None:
        mock_client = _mock_client(body={"is_anomaly": "not-a-bool"})
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            assert await client.predict(_reading()) == PREDICTION_UNKNOWN


# ---------------------------------------------------------------------------
# detect_thd()
# ---------------------------------------------------------------------------


class TestDetectThd:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        mock_client = _mock_client(
            body={"is_thd_anomaly": True, "threshold_violation": False}
        )
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await client.detect_thd(_reading())

        assert result.is_thd_anomaly is True
        assert result.threshold_violation is False
        assert result.message is None
        assert mock_client.post.call_args[0][0] == "http://ml.test:8083/detect_thd"

    @pytest.mark.asyncio
    async def test_failure_returns_error_sentinel(self) -> None:
        mock_client = _mock_client(
            post_side_effect=httpx.ConnectError("connection refused")
        )
        client = PredictionClient(BASE_URL)

        with patch(
            "powerpulse.services.prediction.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await client.detect_thd(_reading())

        assert result == THD_UNKNOWN
        assert result.is_thd_anomaly is False
        assert result.threshold_violation is False
        assert result.message == "Error"
