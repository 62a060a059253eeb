"""
Event Consumer
==============

WebSocket client for an upstream transport event feed.

Each raw message is validated and decoded, checked for per-stream
timestamp ordering, and pushed into an EventBuffer. The engines are never
touched from here; the pipeline task drains the buffer.

Reconnection:
    After a failed or dropped connection the consumer waits

        min(backoff * 2 ** (failures - 1), max_backoff)

    before the next attempt. The failure streak resets as soon as a
    connection is established, so a feed that bounces once reconnects fast.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    WebSocketException,
)

from cast_telemetry.models.events import MediaType, is_receiver_event
from cast_telemetry.stream.buffer import EventBuffer
from cast_telemetry.stream.decoder import Event, EventDecoder


logger = logging.getLogger(__name__)


class EventConsumerMetrics:
    """Counters exposed on /metrics."""

    __slots__ = (
        "events_received",
        "connect_count",
        "reconnect_count",
        "last_timestamp",
        "validation_warnings",
    )

    def __init__(self) -> None:
        self.events_received: int = 0
        self.connect_count: int = 0
        self.reconnect_count: int = 0
        self.last_timestamp: float = 0.0
        self.validation_warnings: int = 0

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__slots__}


class EventConsumer:
    """
    WebSocket consumer for transport events.

    Attributes:
        url: Event feed URL
        buffer: Destination for decoded events
        decoder: Message decoder; shared with HTTP ingest in the service
        metrics: Operational counters

    Example:
        buffer = EventBuffer(maxsize=4096)
        consumer = EventConsumer("ws://localhost:9000/ws/events", buffer)

        task = asyncio.create_task(consumer.run())
        ...
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        buffer: EventBuffer,
        decoder: Optional[EventDecoder] = None,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
        max_reconnect_backoff_ms: int = 10000,
    ) -> None:
        """
        Args:
            url: WebSocket URL of the event feed
            buffer: EventBuffer to push decoded events into
            decoder: Decoder to use; a private one is created if omitted
            reconnect_backoff_ms: Delay before the first reconnect attempt
            max_reconnect_attempts: Consecutive failures tolerated (0 = unlimited)
            max_reconnect_backoff_ms: Upper bound on the reconnect delay
        """
        self.url = url
        self.buffer = buffer
        self.decoder = decoder if decoder is not None else EventDecoder()
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.max_reconnect_backoff_ms = max(max_reconnect_backoff_ms, reconnect_backoff_ms)

        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._failures: int = 0
        self._stop_requested = asyncio.Event()

        self.metrics = EventConsumerMetrics()

        # Sender and receiver clocks are unrelated: order is tracked per side
        self._last_timestamps: Dict[Tuple[MediaType, bool], float] = {}

    @property
    def connected(self) -> bool:
        return self._connected

    def backoff_seconds(self, failures: int) -> float:
        """Delay before the next attempt after `failures` consecutive failures."""
        delay_ms = self.reconnect_backoff_ms * (2 ** max(failures - 1, 0))
        return min(delay_ms, self.max_reconnect_backoff_ms) / 1000.0

    async def run(self) -> None:
        """Consume until stop() is called or the failure limit is reached."""
        self._running = True
        self._stop_requested.clear()
        logger.info(f"EventConsumer starting, feed {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.error(f"Event feed connection failed: {e}")
            finally:
                self._connected = False

            if not self._running:
                break

            self._failures += 1
            if 0 < self.max_reconnect_attempts < self._failures:
                logger.error(
                    f"Giving up on {self.url} after "
                    f"{self.max_reconnect_attempts} consecutive failures"
                )
                break

            delay = self.backoff_seconds(self._failures)
            self.metrics.reconnect_count += 1
            logger.info(f"Reconnecting in {delay:.1f}s (failure streak {self._failures})")

            try:
                await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

        self._running = False
        logger.info("EventConsumer stopped")

    async def stop(self) -> None:
        """Ask run() to exit and close any open connection."""
        logger.info("EventConsumer stopping...")
        self._running = False
        self._stop_requested.set()

        websocket = self._websocket
        if websocket is not None:
            try:
                await websocket.close()
            except ConnectionClosed:
                pass
        self._connected = False

    async def _connect_and_consume(self) -> None:
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        ) as ws:
            self._websocket = ws
            self._connected = True
            self._failures = 0
            self.metrics.connect_count += 1
            logger.info(f"Connected to event feed: {self.url}")

            try:
                async for raw in ws:
                    if not self._running:
                        break
                    event = self.handle_message(raw)
                    if event is not None:
                        await self.buffer.put(event)
            except ConnectionClosedOK:
                logger.info("Event feed closed the connection")
            finally:
                self._websocket = None

    def handle_message(self, raw: str) -> Optional[Event]:
        """
        Decode one raw message and run ordering checks.

        Ordering violations are logged and counted, never rejected: the
        engine tolerates reordering.

        Returns:
            Decoded event, or None if the message was invalid
        """
        # Invalid messages are counted by the decoder
        event = self.decoder.decode_raw(raw)
        if event is None:
            return None

        stream_key = (event.media_type, is_receiver_event(event.kind))
        previous = self._last_timestamps.get(stream_key)
        if previous is not None and event.timestamp < previous:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Timestamp went backwards on {event.media_type.value} "
                f"{'receiver' if stream_key[1] else 'sender'} stream: "
                f"got {event.timestamp:.3f}, previous was {previous:.3f}"
            )
        else:
            self._last_timestamps[stream_key] = event.timestamp

        self.metrics.events_received += 1
        self.metrics.last_timestamp = event.timestamp
        return event
