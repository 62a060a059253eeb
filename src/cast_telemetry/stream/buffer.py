"""
Event Buffer
============

Async bounded queue between event intake and the telemetry pipeline.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - Single event loop: producers (WebSocket consumer, HTTP ingest) and the
      pipeline task all run on the same loop
    - Exposes minimal metrics for observability
    - Does NOT inspect or modify events
"""

import asyncio
import logging
from typing import Optional

from cast_telemetry.stream.decoder import Event


logger = logging.getLogger(__name__)


class EventBuffer:
    """
    Bounded queue of decoded events.

    Uses a drop-oldest policy when full so bursts cannot grow memory;
    stale telemetry is worth less than fresh telemetry.

    Attributes:
        maxsize: Maximum number of events to buffer
        dropped_count: Number of events dropped due to overflow

    Example:
        buffer = EventBuffer(maxsize=4096)

        # Producer
        buffer.put_nowait(event)

        # Consumer
        event = await buffer.get(timeout=1.0)
    """

    def __init__(self, maxsize: int = 4096) -> None:
        """
        Initialize event buffer.

        Args:
            maxsize: Maximum events to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of events in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of events dropped due to overflow."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total events ever put into buffer."""
        return self._total_put

    def put_nowait(self, event: Event) -> bool:
        """
        Add event to buffer, dropping oldest if full.

        Returns:
            True if added without dropping, False if the oldest event was
            dropped to make room.
        """
        self._total_put += 1
        dropped = False

        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                if self._dropped_count % 100 == 1:
                    logger.warning(
                        f"Buffer full, dropped oldest event. "
                        f"Total dropped: {self._dropped_count}"
                    )
            except asyncio.QueueEmpty:
                pass

        self._queue.put_nowait(event)
        return not dropped

    async def put(self, event: Event) -> bool:
        """Async form of put_nowait(); never blocks."""
        return self.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """
        Get next event from buffer.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next event, or None if timeout occurred.
        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(self._queue.get(), timeout=timeout)
            return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> Optional[Event]:
        """
        Get next event without waiting.

        Returns:
            Next event if available, None otherwise.
        """
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def clear(self) -> int:
        """
        Clear all events from buffer.

        Returns:
            Number of events cleared.
        """
        cleared = 0
        while True:
            try:
                self._queue.get_nowait()
                cleared += 1
            except asyncio.QueueEmpty:
                break
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, dropped_count, total_put
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
