"""
Cast Telemetry Main Application
===============================

FastAPI entry point for the streaming telemetry service.

Pipeline:
    event feed (WebSocket) → EventConsumer → EventBuffer → StatsPipeline
    HTTP ingest (POST /events) → StatsPipeline

All engine calls happen on the event loop thread, which owns the engines.

Endpoints:
    GET  /              - Service information
    GET  /health        - Liveness probe
    GET  /ready         - Readiness probe
    GET  /metrics       - Intake and per-kind counters
    GET  /stats         - Statistics snapshot for every media type
    POST /events        - Ingest a batch of events
    POST /reset         - Reset all engines
    PUT  /clock/offset  - Replace or clear the clock offset bounds
    WS   /ws/stats      - Snapshot stream, once per second
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cast_telemetry.config import settings
from cast_telemetry.clock import StaticOffsetProvider
from cast_telemetry.models.input import EventBatch, OffsetUpdate
from cast_telemetry.pipeline import StatsPipeline
from cast_telemetry.stream import EventBuffer, EventConsumer, EventDecoder


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_shutdown_flag: bool = False

# Intake
_event_buffer: Optional[EventBuffer] = None
_event_decoder: Optional[EventDecoder] = None
_event_consumer: Optional[EventConsumer] = None
_consumer_task: Optional[asyncio.Task] = None

# Engines
_offset_provider: Optional[StaticOffsetProvider] = None
_pipeline: Optional[StatsPipeline] = None
_processing_task: Optional[asyncio.Task] = None

_startup_time: float = 0.0
_is_ready: bool = False
_dispatch_error_count: int = 0


# =============================================================================
# Getters
# =============================================================================

def get_pipeline() -> Optional[StatsPipeline]:
    return _pipeline

def get_event_buffer() -> Optional[EventBuffer]:
    return _event_buffer

def get_event_consumer() -> Optional[EventConsumer]:
    return _event_consumer

def get_offset_provider() -> Optional[StaticOffsetProvider]:
    return _offset_provider


# =============================================================================
# Processing Pipeline
# =============================================================================

def create_offset_provider() -> StaticOffsetProvider:
    """Offset provider seeded from config, if bounds are configured."""
    clock = settings.clock
    if clock.offset_lower_ms is None:
        logger.info("No static clock offset configured; cross-clock stats wait for PUT /clock/offset")
        return StaticOffsetProvider()
    return StaticOffsetProvider(
        (clock.offset_lower_ms / 1000.0, clock.offset_upper_ms / 1000.0)
    )


def create_pipeline(offset_provider: StaticOffsetProvider) -> StatsPipeline:
    engine = settings.engine
    return StatsPipeline(
        media_types=engine.media_types,
        offset_provider=offset_provider,
        max_frame_cache=engine.max_frame_cache,
        max_packet_cache=engine.max_packet_cache,
        histogram_max_ms=engine.histogram_max_ms,
        histogram_bucket_ms=engine.histogram_bucket_ms,
    )


async def process_events() -> None:
    """Drain the event buffer into the pipeline."""
    global _dispatch_error_count

    if _event_buffer is None or _pipeline is None:
        logger.error("Processing pipeline not initialized")
        return

    logger.info("Event processing pipeline started")

    while not _shutdown_flag:
        try:
            event = await _event_buffer.get(timeout=1.0)
            if event is None:
                continue
            _pipeline.dispatch(event)

        except asyncio.CancelledError:
            logger.info("Event processing pipeline cancelled")
            break
        except Exception as e:
            _dispatch_error_count += 1
            logger.error(f"Pipeline error: {e}")
            await asyncio.sleep(0.1)

    logger.info("Event processing pipeline stopped")


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _event_buffer, _event_decoder, _event_consumer, _consumer_task
    global _offset_provider, _pipeline, _processing_task
    global _startup_time, _is_ready, _shutdown_flag

    _startup_time = time.time()
    _shutdown_flag = False
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    # Engines are built here so they are owned by the event loop thread
    _offset_provider = create_offset_provider()
    _pipeline = create_pipeline(_offset_provider)

    # Intake
    _event_buffer = EventBuffer(maxsize=settings.stream.max_queue_size)
    _event_decoder = EventDecoder()

    if settings.stream.enabled:
        logger.info(f"Event feed URL: {settings.stream.url}")
        _event_consumer = EventConsumer(
            url=settings.stream.url,
            buffer=_event_buffer,
            decoder=_event_decoder,
            reconnect_backoff_ms=settings.stream.reconnect_backoff_ms,
            max_reconnect_attempts=settings.stream.max_reconnect_attempts,
            max_reconnect_backoff_ms=settings.stream.max_reconnect_backoff_ms,
        )
        _consumer_task = asyncio.create_task(_event_consumer.run(), name="event_consumer")
    else:
        logger.info("Event feed disabled; accepting events over HTTP only")

    _processing_task = asyncio.create_task(process_events(), name="event_processing")
    _is_ready = True

    logger.info("All components started")

    yield

    logger.info("Shutting down gracefully...")
    _shutdown_flag = True
    _is_ready = False

    if _processing_task:
        _processing_task.cancel()
        try:
            await _processing_task
        except asyncio.CancelledError:
            pass

    if _event_consumer:
        await _event_consumer.stop()

    if _consumer_task:
        try:
            await asyncio.wait_for(_consumer_task, timeout=5.0)
        except asyncio.TimeoutError:
            _consumer_task.cancel()
            try:
                await _consumer_task
            except asyncio.CancelledError:
                pass

    _event_consumer = None
    _consumer_task = None
    _processing_task = None
    _pipeline = None

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="CastTelemetry",
    description="Latency and throughput statistics for real-time A/V streaming",
    version=settings.service.version,
    lifespan=lifespan,
)


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "Pipeline not initialized"}, status_code=503)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 without echoing inputs back; NaN/Infinity inputs are not valid JSON."""
    errors = [
        {"loc": list(error["loc"]), "type": error["type"], "msg": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(errors)} error(s)")
    return JSONResponse({"detail": errors}, status_code=422)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "CastTelemetry",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "media_types": [m.value for m in settings.engine.media_types],
        "stream_enabled": settings.stream.enabled,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the service ready to accept events?

    Returns 200 once the engines are built, 503 otherwise.
    """
    consumer = get_event_consumer()
    stream_connected = consumer.connected if consumer else False

    if _is_ready and _pipeline is not None:
        return JSONResponse({
            "status": "ready",
            "stream_connected": stream_connected,
            "events_dispatched": _pipeline.events_dispatched,
        })
    return JSONResponse(
        {"status": "not_ready", "stream_connected": stream_connected},
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Intake counters and raw per-kind engine counters."""
    pipeline = get_pipeline()
    if pipeline is None:
        return _not_ready()

    consumer = get_event_consumer()
    buffer = get_event_buffer()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "dispatch_errors": _dispatch_error_count,
        "buffer": buffer.metrics() if buffer else {},
        "decoder": _event_decoder.metrics() if _event_decoder else {},
        "consumer": consumer.metrics.to_dict() if consumer else {},
        "stream_connected": consumer.connected if consumer else False,
        "clock_offset_available": (
            _offset_provider is not None
            and _offset_provider.get_offset_bounds() is not None
        ),
        **pipeline.get_metrics(),
    })


@app.get("/stats")
async def stats() -> JSONResponse:
    """Statistics snapshot for every media type."""
    pipeline = get_pipeline()
    if pipeline is None:
        return _not_ready()
    return JSONResponse(pipeline.snapshot())


@app.post("/events")
async def ingest_events(batch: EventBatch) -> JSONResponse:
    """
    Ingest a batch of events.

    Events are applied immediately, in order, on the event loop thread.
    """
    pipeline = get_pipeline()
    if pipeline is None or _event_decoder is None:
        return _not_ready()

    for message in batch.events:
        pipeline.dispatch(_event_decoder.decode(message))

    return JSONResponse({"accepted": len(batch.events)})


@app.post("/reset")
async def reset() -> JSONResponse:
    """Clear all engine state and restart the rate window."""
    pipeline = get_pipeline()
    if pipeline is None:
        return _not_ready()

    pipeline.reset()
    cleared = _event_buffer.clear() if _event_buffer else 0
    return JSONResponse({"status": "reset", "buffered_events_cleared": cleared})


@app.put("/clock/offset")
async def set_clock_offset(update: OffsetUpdate) -> JSONResponse:
    """Replace the receiver clock offset bounds, or clear them with nulls."""
    provider = get_offset_provider()
    if provider is None:
        return _not_ready()

    if update.lower_ms is None:
        provider.clear()
    else:
        provider.set_bounds(update.lower_ms / 1000.0, update.upper_ms / 1000.0)

    return JSONResponse({
        "lower_ms": update.lower_ms,
        "upper_ms": update.upper_ms,
    })


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/stats")
async def stats_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint streaming snapshots once per second."""
    await websocket.accept()
    logger.info("Client connected to /ws/stats")

    try:
        while not _shutdown_flag:
            pipeline = get_pipeline()
            if pipeline is not None:
                await websocket.send_json(pipeline.snapshot())
            # Wait out the interval, but wake on a client disconnect
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=1.0)
            except asyncio.TimeoutError:
                pass

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected from /ws/stats")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "cast_telemetry.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
