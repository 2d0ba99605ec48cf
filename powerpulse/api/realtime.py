"""
WebSocket /ws endpoint and GET /v1/stats.

Dashboard clients connect to ``/ws`` and receive every fragment preview and
finished sample as a JSON text frame. Anything a client sends is read and
ignored; the receive loop only exists to notice disconnects. A subscriber
is removed from the registry when it disconnects or when a send to it fails.

CHANGELOG:
- 2026-10-06: Add /v1/stats
- 2026-10-05: Initial creation

TODO:
- None
"""

import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from powerpulse.realtime import WebSocketSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Register the connection as a subscriber until it closes."""
    registry = websocket.app.state.registry
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    registry.register(subscriber)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.warning("WebSocket error from %s", subscriber.remote, exc_info=True)
    finally:
        registry.unregister(subscriber)


@router.get("/v1/stats")
async def stats(request: Request) -> dict[str, int]:
    """Pipeline counters plus current subscriber and queue sizes."""
    state = request.app.state
    data = state.pipeline.stats.as_dict()
    data["subscribers"] = state.registry.count
    data["queue_pending"] = state.consumer.pending
    return data
