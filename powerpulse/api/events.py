"""
POST /v1/events endpoint for raw telemetry events from the meter stream.

Accepts one raw event object or a JSON array of them. Events are not
decoded here: each one is handed to the stream consumer's queue and the
route returns immediately with the number accepted and dropped. Decoding,
accumulation, persistence and broadcasting happen on the consumer task.

CHANGELOG:
- 2026-10-06: Report dropped events when the queue is full
- 2026-10-05: Initial creation

TODO:
- None
"""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from powerpulse.api.deps import get_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["events"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class EventsResponse(BaseModel):
    """Response from the events endpoint."""

    accepted: int
    dropped: int


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


@router.post("/events", response_model=EventsResponse, status_code=202)
async def post_events(
    request: Request,
    stream: Annotated[str, Depends(get_stream)],
) -> EventsResponse:
    """Queue raw telemetry events for processing.

    Args:
        request: The incoming FastAPI request.
        stream: Authenticated stream name from the bearer token.

    Returns:
        EventsResponse: Counts of queued and dropped events.

    Raises:
        HTTPException: 400 on an invalid Content-Length header.
        HTTPException: 413 if the body exceeds MAX_REQUEST_BYTES.
        HTTPException: 422 if the body is not a JSON object or array of objects.
    """
    max_request_bytes = request.app.state.settings.max_request_bytes

    # Pre-check Content-Length before buffering
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            content_length_int = int(content_length)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail="Invalid Content-Length header.",
            ) from None
        if content_length_int > max_request_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Request body exceeds limit of {max_request_bytes} bytes.",
            )

    body = await request.body()
    if len(body) > max_request_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Request body exceeds limit of {max_request_bytes} bytes.",
        )

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail="Request body is not valid JSON.",
        ) from None

    events = payload if isinstance(payload, list) else [payload]
    if not all(isinstance(event, dict) for event in events):
        raise HTTPException(
            status_code=422,
            detail="Expected a JSON object or an array of JSON objects.",
        )

    consumer = request.app.state.consumer
    accepted = 0
    for event in events:
        if consumer.submit(event):
            accepted += 1
    dropped = len(events) - accepted

    if dropped:
        logger.warning(
            "Stream %s: %d of %d event(s) dropped, queue full",
            stream,
            dropped,
            len(events),
        )
    else:
        logger.debug("Stream %s: queued %d event(s)", stream, accepted)

    return EventsResponse(accepted=accepted, dropped=dropped)
