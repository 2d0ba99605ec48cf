"""
Registry of live real-time subscribers (dashboard WebSocket clients).

Broadcasts are serialised to JSON once and delivered to every subscriber
that reports itself open. Each delivery is error-isolated: a subscriber that
fails to receive, or does not accept the frame within the send timeout, is
deregistered and the remaining subscribers still get the message.
Iteration runs over a snapshot of the live set, so connections arriving
or leaving mid-broadcast never disturb the loop.

The registry performs no liveness polling. The WebSocket route removes its
subscriber on disconnect or transport error.

CHANGELOG:
- 2026-10-12: Bound each send with a timeout so a stalled client cannot block
  the consumer task
- 2026-10-06: Deregister subscribers whose send fails
- 2026-10-03: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from fastapi.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Anything that can receive broadcast text frames."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


class WebSocketSubscriber:
    """Adapts a FastAPI WebSocket connection to the Subscriber protocol.

    Identity is the adapter object itself, so one connection registered twice
    through two adapters counts as two subscribers. Routes create exactly one
    adapter per connection.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state is WebSocketState.CONNECTED
            and self._websocket.application_state is WebSocketState.CONNECTED
        )

    @property
    def remote(self) -> str:
        client = self._websocket.client
        if client is None:
            return "unknown"
        return f"{client.host}:{client.port}"

    async def send_text(self, data: str) -> None:
        await self._websocket.send_text(data)


class SubscriberRegistry:
    """Tracks connected subscribers and fans messages out to them.

    Args:
        send_timeout_s: Seconds one subscriber may take to accept a frame.
    """

    def __init__(self, send_timeout_s: float = 5.0) -> None:
        self._subscribers: set[Subscriber] = set()
        self._send_timeout_s = send_timeout_s

    def register(self, subscriber: Subscriber) -> None:
        """Add *subscriber* to the live set."""
        self._subscribers.add(subscriber)
        logger.info("Client connected (total: %d)", len(self._subscribers))

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove *subscriber*; unknown subscribers are ignored."""
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Client disconnected (remaining: %d)", len(self._subscribers))

    @property
    def count(self) -> int:
        """Number of currently registered subscribers."""
        return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    async def broadcast(self, message: Mapping[str, Any]) -> int:
        """Deliver *message* to every open subscriber.

        Args:
            message: JSON-serialisable mapping.

        Returns:
            Number of subscribers the message was delivered to.
        """
        if not self._subscribers:
            return 0

        payload = json.dumps(message)
        delivered = 0
        for subscriber in list(self._subscribers):
            if subscriber not in self._subscribers or not subscriber.is_open:
                continue
            try:
                await asyncio.wait_for(
                    subscriber.send_text(payload), timeout=self._send_timeout_s
                )
            except TimeoutError:
                logger.warning(
                    "Delivery to subscriber %r timed out after %.1fs, deregistering",
                    subscriber,
                    self._send_timeout_s,
                )
                self.unregister(subscriber)
                continue
            except Exception:
                logger.warning(
                    "Delivery to subscriber %r failed, deregistering",
                    subscriber,
                    exc_info=True,
                )
                self.unregister(subscriber)
                continue
            delivered += 1
        return delivered
