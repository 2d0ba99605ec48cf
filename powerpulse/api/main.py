"""
FastAPI application entry point for the PowerPulse API.

Builds the telemetry pipeline at startup and stores its parts on app.state
for route handlers: bearer auth for producers, the subscriber registry, the
sample store, the distribution hub, the accumulator, the pipeline, the
stream consumer and the prediction client. The stream consumer runs as a
single background task for the lifetime of the app.

CHANGELOG:
- 2026-10-12: Pass Settings.redis_url to the distribution hub
- 2026-10-08: Register predict router
- 2026-10-07: Register readings router
- 2026-10-06: Start the stream consumer task in the lifespan
- 2026-10-05: Wire STREAM_TOKENS parsing into startup
- 2026-10-04: Initial creation
"""

import asyncio
import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from powerpulse import __version__
from powerpulse.accumulator import SampleAccumulator
from powerpulse.api.events import router as events_router
from powerpulse.api.health import router as health_router
from powerpulse.api.predict import router as predict_router
from powerpulse.api.readings import router as readings_router
from powerpulse.api.realtime import router as realtime_router
from powerpulse.auth.stream_auth import StreamAuth, parse_stream_tokens
from powerpulse.config import Settings
from powerpulse.db.session import dispose_engine, get_session_factory
from powerpulse.realtime import SubscriberRegistry
from powerpulse.services import (
    DistributionHub,
    PredictionClient,
    SampleStore,
    StreamConsumer,
    TelemetryPipeline,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Origins allowed to call the API from a browser, from CORS_ORIGINS."""
    raw = os.environ.get("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the pipeline and run the stream consumer.

    Startup:
        - Loads and validates Settings.
        - Parses STREAM_TOKENS into StreamAuth.
        - Builds the pipeline and starts the consumer task.

    Shutdown:
        - Stops the consumer after it drains its queue.
        - Disposes the database engine.
    """
    settings = Settings()
    app.state.settings = settings

    credentials = parse_stream_tokens(settings.stream_tokens)
    if not credentials:
        raise RuntimeError(
            "STREAM_TOKENS parsed but contains no valid token:stream entries"
        )
    app.state.auth = StreamAuth(credentials)
    logger.info("Parsed %d stream token(s) from STREAM_TOKENS", len(credentials))

    registry = SubscriberRegistry(settings.ws_send_timeout_s)
    store = SampleStore(get_session_factory(settings.database_url))
    hub = DistributionHub(registry, store, settings.redis_url)
    accumulator = SampleAccumulator(settings.partial_sample_max_age)
    pipeline = TelemetryPipeline(accumulator, hub)
    consumer = StreamConsumer(pipeline, queue_size=settings.queue_size)

    app.state.registry = registry
    app.state.store = store
    app.state.hub = hub
    app.state.accumulator = accumulator
    app.state.pipeline = pipeline
    app.state.consumer = consumer
    app.state.prediction_client = PredictionClient(
        settings.ml_api_url, settings.ml_timeout_s
    )

    shutdown_event = asyncio.Event()
    consumer_task = asyncio.create_task(consumer.run(shutdown_event))

    logger.info("PowerPulse API ready")
    try:
        yield
    finally:
        logger.info("PowerPulse API shutting down")
        shutdown_event.set()
        await consumer_task
        await dispose_engine()


app = FastAPI(
    title="PowerPulse API",
    description="Three-phase power telemetry for grid and generator sources.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(health_router)
app.include_router(events_router)
app.include_router(readings_router)
app.include_router(predict_router)
app.include_router(realtime_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
