"""Real-time fan-out to dashboard subscribers."""

from powerpulse.realtime.registry import (
    Subscriber,
    SubscriberRegistry,
    WebSocketSubscriber,
)

__all__ = ["Subscriber", "SubscriberRegistry", "WebSocketSubscriber"]
