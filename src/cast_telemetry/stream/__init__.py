"""
Stream Module
=============

Event intake components.

This module provides the ingestion layer in front of the telemetry engines:
    - EventDecoder: Message → event conversion, including 8-bit frame id
      expansion
    - EventBuffer: Async bounded queue (drops oldest on overflow)
    - EventConsumer: WebSocket client with validation and reconnection

Example:
    from cast_telemetry.stream import EventBuffer, EventConsumer

    buffer = EventBuffer(maxsize=4096)
    consumer = EventConsumer(
        url="ws://localhost:9000/ws/events",
        buffer=buffer,
        reconnect_backoff_ms=500,
    )

    task = asyncio.create_task(consumer.run())

    while True:
        event = await buffer.get()
        pipeline.dispatch(event)
"""

from cast_telemetry.stream.decoder import Event, EventDecoder
from cast_telemetry.stream.buffer import EventBuffer
from cast_telemetry.stream.consumer import EventConsumer, EventConsumerMetrics


__all__ = [
    "Event",
    "EventDecoder",
    "EventBuffer",
    "EventConsumer",
    "EventConsumerMetrics",
]
