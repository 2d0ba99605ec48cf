"""
Tests for the telemetry pipeline and the stream consumer.

Raw events go through the real decoder, accumulator, hub and registry;
only storage is mocked.

CHANGELOG:
- 2026-10-06: Add outcome counting and queue overflow tests
- 2026-10-05: Initial creation

TODO:
- None
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from powerpulse.accumulator import SampleAccumulator
from powerpulse.models import IngestOutcome, SourceKind
from powerpulse.realtime import SubscriberRegistry
from powerpulse.services.distribution import DistributionHub
from powerpulse.services.pipeline import PipelineStats, StreamConsumer, TelemetryPipeline

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingSubscriber:
    is_open = True

    def __init__(self) -> None:
        self.messages: list[dict] = []

    async def send_text(self, data: str) -> None:
        self.messages.append(json.loads(data))


def _event(name: str, data: str, server_id: int = 1) -> dict:
    return {"Powerpulse": {"server_id": server_id, "name": name, "data": data}}


GRID_CYCLE = [
    _event("ryb_voltage1", "[230, 231, 229]"),
    _event("ryb_current", "[10, 11, 9]"),
    _event("avg_pf", "[0.95]"),
]


@pytest.fixture()
def store() -> MagicMock:
    store = MagicMock()
    store.append = AsyncMock()
    return store


@pytest.fixture()
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def pipeline(store: MagicMock, subscriber: RecordingSubscriber) -> TelemetryPipeline:
    registry = SubscriberRegistry()
    registry.register(subscriber)
    hub = DistributionHub(registry, store)
    return TelemetryPipeline(SampleAccumulator(), hub)


# ---------------------------------------------------------------------------
# PipelineStats
# ---------------------------------------------------------------------------


def test_stats_as_dict_lists_every_outcome() -> None:
    stats = PipelineStats()
    stats.record(IngestOutcome.ABSORBED)
    stats.record(IngestOutcome.ABSORBED)
    data = stats.as_dict()
    assert data["absorbed"] == 2
    assert data["delivered"] == 0
    assert data["events_received"] == 0
    assert set(data) >= {outcome.value for outcome in IngestOutcome}


# ---------------------------------------------------------------------------
# TelemetryPipeline
# ---------------------------------------------------------------------------


class TestTelemetryPipeline:
    @pytest.mark.asyncio
    async def test_full_cycle(
        self,
        pipeline: TelemetryPipeline,
        store: MagicMock,
        subscriber: RecordingSubscriber,
    ) -> None:
        outcomes = [await pipeline.handle_event(event) for event in GRID_CYCLE]

        assert outcomes == [
            IngestOutcome.ABSORBED,
            IngestOutcome.ABSORBED,
            IngestOutcome.DELIVERED,
        ]
        store.append.assert_awaited_once()
        saved = store.append.await_args.args[0]
        assert saved.source is SourceKind.GRID
        assert saved.avg_voltage == pytest.approx(230.0)
        assert saved.avg_current == pytest.approx(10.0)

        updates = [message["update"] for message in subscriber.messages]
        assert updates == ["partial", "partial", "partial", "complete"]

    @pytest.mark.asyncio
    async def test_unrecognized_field_never_reaches_accumulator(
        self,
        pipeline: TelemetryPipeline,
        store: MagicMock,
        subscriber: RecordingSubscriber,
    ) -> None:
        outcome = await pipeline.handle_event(_event("humidity", "[55]"))

        assert outcome is IngestOutcome.DECODE_REJECTED
        assert subscriber.messages == []
        assert pipeline._accumulator.pending(SourceKind.GRID) is None
        assert pipeline.stats.outcomes[IngestOutcome.DECODE_REJECTED] == 1

    @pytest.mark.asyncio
    async def test_persist_failure_outcome(
        self,
        pipeline: TelemetryPipeline,
        store: MagicMock,
        subscriber: RecordingSubscriber,
    ) -> None:
        store.append.side_effect = RuntimeError("db down")
        outcomes = [await pipeline.handle_event(event) for event in GRID_CYCLE]

        assert outcomes[-1] is IngestOutcome.PERSIST_FAILED
        assert [m["update"] for m in subscriber.messages].count("complete") == 1

    @pytest.mark.asyncio
    async def test_sources_interleaved(
        self,
        pipeline: TelemetryPipeline,
        store: MagicMock,
    ) -> None:
        events = [
            _event("voltage", "[400, 401, 399]", server_id=2),
            GRID_CYCLE[0],
            _event("ryb_current", "[20, 21, 19]", server_id=2),
            GRID_CYCLE[1],
            _event("avg_pf", "[0.8]", server_id=2),
            GRID_CYCLE[2],
        ]
        for event in events:
            await pipeline.handle_event(event)

        saved = [call.args[0] for call in store.append.await_args_list]
        assert [sample.source for sample in saved] == [
            SourceKind.GENERATOR,
            SourceKind.GRID,
        ]
        assert saved[0].voltage.as_tuple() == (400.0, 401.0, 399.0)
        assert saved[1].voltage.as_tuple() == (230.0, 231.0, 229.0)


# ---------------------------------------------------------------------------
# StreamConsumer
# ---------------------------------------------------------------------------


class TestStreamConsumer:
    @pytest.mark.asyncio
    async def test_submit_and_drain_in_order(
        self, pipeline: TelemetryPipeline, store: MagicMock
    ) -> None:
        consumer = StreamConsumer(pipeline)
        for event in GRID_CYCLE:
            assert consumer.submit(event)
        assert consumer.pending == 3

        processed = await consumer.drain()

        assert processed == 3
        assert consumer.pending == 0
        store.append.assert_awaited_once()
        assert pipeline.stats.events_received == 3

    @pytest.mark.asyncio
    async def test_queue_full_drops(self, pipeline: TelemetryPipeline) -> None:
        consumer = StreamConsumer(pipeline, queue_size=1)
        assert consumer.submit(GRID_CYCLE[0])
        assert not consumer.submit(GRID_CYCLE[1])
        assert pipeline.stats.events_received == 1
        assert pipeline.stats.events_dropped == 1

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_stop_processing(
        self, pipeline: TelemetryPipeline, store: MagicMock
    ) -> None:
        original = pipeline.handle_event
        calls = 0

        async def _flaky(raw: object) -> IngestOutcome:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return await original(raw)

        pipeline.handle_event = _flaky
        consumer = StreamConsumer(pipeline)
        consumer.submit({"bad": True})
        for event in GRID_CYCLE:
            consumer.submit(event)

        assert await consumer.drain() == 4
        store.append.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_processes_until_shutdown(
        self, pipeline: TelemetryPipeline, store: MagicMock
    ) -> None:
        consumer = StreamConsumer(pipeline, idle_timeout_s=0.01)
        shutdown = asyncio.Event()
        task = asyncio.create_task(consumer.run(shutdown))

        for event in GRID_CYCLE:
            consumer.submit(event)
        for _ in range(100):
            if store.append.await_count:
                break
            await asyncio.sleep(0.01)

        shutdown.set()
        await asyncio.wait_for(task, timeout=1.0)

        store.append.assert_awaited_once()
        assert consumer.pending == 0

    @pytest.mark.asyncio
    async def test_run_drains_after_shutdown(
        self, pipeline: TelemetryPipeline, store: MagicMock
    ) -> None:
        consumer = StreamConsumer(pipeline, idle_timeout_s=0.01)
        for event in GRID_CYCLE:
            consumer.submit(event)
        shutdown = asyncio.Event()
        shutdown.set()

        await consumer.run(shutdown)

        assert consumer.pending == 0
        store.append.assert_awaited_once()
