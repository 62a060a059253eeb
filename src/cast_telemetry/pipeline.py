"""
Stats Pipeline
==============

Fans decoded events out to one TelemetryEngine per media type.

Every engine sees every event and keeps only its own media type, the same
way independent subscribers of an event log would. All calls must come
from the context that built the pipeline (in the service: the event loop).
"""

import logging
import time
from typing import Callable, Dict, Iterable, Optional

from cast_telemetry.clock.offset import ClockOffsetProvider
from cast_telemetry.models.events import FrameEvent, MediaType
from cast_telemetry.stats.engine import (
    BUCKET_WIDTH_MS,
    MAX_FRAME_CACHE,
    MAX_LATENCY_BUCKET_MS,
    MAX_PACKET_CACHE,
    TelemetryEngine,
)
from cast_telemetry.stream.decoder import Event


logger = logging.getLogger(__name__)


class StatsPipeline:
    """
    Owner of the per-media-type engines.

    Example:
        pipeline = StatsPipeline(
            media_types=[MediaType.AUDIO, MediaType.VIDEO],
            offset_provider=StaticOffsetProvider((0.02, 0.03)),
        )
        pipeline.dispatch(event)
        pipeline.snapshot()  # {"audio": {...}, "video": {...}}
    """

    def __init__(
        self,
        media_types: Iterable[MediaType],
        offset_provider: ClockOffsetProvider,
        clock: Callable[[], float] = time.monotonic,
        max_frame_cache: int = MAX_FRAME_CACHE,
        max_packet_cache: int = MAX_PACKET_CACHE,
        histogram_max_ms: int = MAX_LATENCY_BUCKET_MS,
        histogram_bucket_ms: int = BUCKET_WIDTH_MS,
    ) -> None:
        self._engines: Dict[MediaType, TelemetryEngine] = {}
        for media_type in media_types:
            if media_type in self._engines:
                continue
            self._engines[media_type] = TelemetryEngine(
                media_type,
                offset_provider,
                clock=clock,
                max_frame_cache=max_frame_cache,
                max_packet_cache=max_packet_cache,
                histogram_max_ms=histogram_max_ms,
                histogram_bucket_ms=histogram_bucket_ms,
            )
        if not self._engines:
            raise ValueError("at least one media type is required")

        self._events_dispatched: int = 0
        logger.info(
            f"StatsPipeline initialized: "
            f"media={[m.value for m in self._engines]}"
        )

    @property
    def engines(self) -> Dict[MediaType, TelemetryEngine]:
        return dict(self._engines)

    @property
    def events_dispatched(self) -> int:
        return self._events_dispatched

    def engine(self, media_type: MediaType) -> Optional[TelemetryEngine]:
        return self._engines.get(media_type)

    def dispatch(self, event: Event) -> None:
        """Deliver one event to every engine."""
        self._events_dispatched += 1
        if isinstance(event, FrameEvent):
            for engine in self._engines.values():
                engine.on_frame_event(event)
        else:
            for engine in self._engines.values():
                engine.on_packet_event(event)

    def snapshot(self) -> dict:
        """Merged snapshot of every engine, keyed by media type."""
        merged: dict = {}
        for engine in self._engines.values():
            merged.update(engine.snapshot().to_dict())
        return merged

    def reset(self) -> None:
        for engine in self._engines.values():
            engine.reset()
        self._events_dispatched = 0
        logger.info("StatsPipeline reset")

    def get_metrics(self) -> dict:
        return {
            "events_dispatched": self._events_dispatched,
            "engines": {
                media_type.value: engine.get_metrics()
                for media_type, engine in self._engines.items()
            },
        }
