"""
Distribution hub: persists finished samples and broadcasts telemetry.

Every decoded fragment is broadcast immediately as a partial update. Every
finished sample is persisted first and then broadcast as a complete update.
A storage failure is logged and reported through the returned outcome, but
never blocks the broadcast: live viewers keep receiving telemetry during a
database outage.

Outbound message shape::

    {"type": "iot", "update": "partial" | "complete", "data": {...}}

CHANGELOG:
- 2026-10-12: Take the cache Redis URL instead of an on/off flag
- 2026-10-07: Invalidate the latest-reading cache after a successful save
- 2026-10-06: Return IngestOutcome from publish_finished_sample
- 2026-10-03: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from powerpulse.cache.redis_client import invalidate_source_cache
from powerpulse.models import FinishedSample, Fragment, IngestOutcome

if TYPE_CHECKING:
    from powerpulse.realtime.registry import SubscriberRegistry
    from powerpulse.services.storage import SampleStore

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "iot"
UPDATE_PARTIAL = "partial"
UPDATE_COMPLETE = "complete"


def build_message(update: str, data: dict) -> dict[str, Any]:
    """Wrap a record in the outbound broadcast envelope."""
    return {"type": MESSAGE_TYPE, "update": update, "data": data}


class DistributionHub:
    """Routes fragments and finished samples to storage and subscribers.

    Args:
        registry: Live subscriber registry to broadcast through.
        store: Append-only sample store.
        redis_url: Redis holding the latest-reading cache. When set, the
            source's cache entry is cleared after each successful save.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        store: SampleStore,
        redis_url: str | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self.redis_url = redis_url

    async def publish_fragment_preview(self, fragment: Fragment) -> int:
        """Broadcast *fragment* as a partial update, best-effort.

        Returns:
            Number of subscribers the preview reached.
        """
        message = build_message(UPDATE_PARTIAL, fragment.to_preview().to_wire())
        return await self._registry.broadcast(message)

    async def publish_finished_sample(self, sample: FinishedSample) -> IngestOutcome:
        """Persist *sample*, then broadcast it as a complete update.

        Returns:
            ``DELIVERED`` if the sample was saved, ``PERSIST_FAILED`` if the
            save raised. The broadcast happens in both cases.
        """
        outcome = IngestOutcome.DELIVERED
        try:
            await self._store.append(sample)
        except Exception:
            logger.error(
                "Failed to save %s sample",
                sample.source.value,
                exc_info=True,
            )
            outcome = IngestOutcome.PERSIST_FAILED
        else:
            if self.redis_url is not None:
                await invalidate_source_cache(self.redis_url, sample.source)

        await self._registry.broadcast(build_message(UPDATE_COMPLETE, sample.to_wire()))
        return outcome
