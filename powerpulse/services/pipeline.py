"""
Telemetry pipeline and single-task stream consumer.

The pipeline handles one raw event end to end: decode, broadcast the
fragment preview, accumulate, and (when a sample completes) persist and
broadcast it. Every event yields an IngestOutcome, which is counted in
PipelineStats.

The stream consumer owns an asyncio queue of raw events and drains it from
a single task, so fragments are processed strictly one at a time in arrival
order and two merges for the same source can never interleave. An exception
while handling one event is logged and never stops the loop.

CHANGELOG:
- 2026-10-06: Count outcomes in PipelineStats
- 2026-10-05: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from powerpulse.decoder import decode
from powerpulse.models import IngestOutcome

if TYPE_CHECKING:
    from powerpulse.accumulator import SampleAccumulator
    from powerpulse.services.distribution import DistributionHub

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Counters for events entering and leaving the pipeline."""

    events_received: int = 0
    events_dropped: int = 0
    outcomes: Counter = field(default_factory=Counter)

    def record(self, outcome: IngestOutcome) -> None:
        self.outcomes[outcome] += 1

    def as_dict(self) -> dict[str, int]:
        data = {
            "events_received": self.events_received,
            "events_dropped": self.events_dropped,
        }
        for outcome in IngestOutcome:
            data[outcome.value] = self.outcomes[outcome]
        return data


class TelemetryPipeline:
    """Decode -> preview -> accumulate -> publish for one raw event.

    Args:
        accumulator: Per-source sample accumulator.
        hub: Distribution hub for previews and finished samples.
        stats: Counters to record outcomes in. A fresh instance is created
            when omitted.
    """

    def __init__(
        self,
        accumulator: SampleAccumulator,
        hub: DistributionHub,
        stats: PipelineStats | None = None,
    ) -> None:
        self._accumulator = accumulator
        self._hub = hub
        self.stats = stats if stats is not None else PipelineStats()

    async def handle_event(self, raw: Any) -> IngestOutcome:
        """Process one raw event and return what happened to it."""
        fragment = decode(raw)
        if fragment is None:
            self.stats.record(IngestOutcome.DECODE_REJECTED)
            return IngestOutcome.DECODE_REJECTED

        await self._hub.publish_fragment_preview(fragment)

        sample = self._accumulator.accumulate(fragment)
        if sample is None:
            self.stats.record(IngestOutcome.ABSORBED)
            return IngestOutcome.ABSORBED

        outcome = await self._hub.publish_finished_sample(sample)
        self.stats.record(outcome)
        return outcome


class StreamConsumer:
    """Drains raw events from an in-process queue, one at a time.

    Args:
        pipeline: The pipeline each event is handed to.
        queue_size: Maximum number of events waiting to be processed.
        idle_timeout_s: How long ``run`` waits for an event before
            re-checking the shutdown event.
    """

    def __init__(
        self,
        pipeline: TelemetryPipeline,
        *,
        queue_size: int = 1000,
        idle_timeout_s: float = 0.5,
    ) -> None:
        self._pipeline = pipeline
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._idle_timeout_s = idle_timeout_s

    @property
    def pending(self) -> int:
        """Number of events waiting in the queue."""
        return self._queue.qsize()

    def submit(self, raw: Any) -> bool:
        """Enqueue *raw* without blocking.

        Returns:
            ``True`` if accepted, ``False`` if the queue is full.
        """
        stats = self._pipeline.stats
        try:
            self._queue.put_nowait(raw)
        except asyncio.QueueFull:
            stats.events_dropped += 1
            logger.warning("Event queue full (%d), dropping event", self._queue.maxsize)
            return False
        stats.events_received += 1
        return True

    async def drain(self) -> int:
        """Process every event currently queued.

        Returns:
            Number of events processed.
        """
        processed = 0
        while True:
            try:
                raw = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return processed
            await self._process(raw)
            processed += 1

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Process events until *shutdown_event* is set, then drain the rest."""
        logger.info("Stream consumer started")
        while not shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                raw = await asyncio.wait_for(
                    self._queue.get(),
                    timeout=self._idle_timeout_s,
                )
                await self._process(raw)
        remaining = await self.drain()
        logger.info("Stream consumer stopped (drained %d)", remaining)

    async def _process(self, raw: Any) -> None:
        try:
            await self._pipeline.handle_event(raw)
        except Exception:
            logger.error("Telemetry event processing error", exc_info=True)
        finally:
            self._queue.task_done()
