"""
Telemetry Engine
================

Live statistics for one media type of a streaming session.

The engine consumes frame and packet lifecycle events from both ends of the
transport and maintains:
    - per-kind running counters (count, size sum, delay sum)
    - a bounded per-frame working-state cache (capture/encode times)
    - a bounded per-packet pairing cache (sent/received correlation)
    - five latency histograms
    - first/last event and last receiver response times

Clock Handling:
    Receiver events (ack sent, decoded, playout, packet received) carry
    receiver-clock timestamps. Before they are compared with sender times
    they are shifted by the clock offset: sender_time = t - offset. When the
    offset provider has no estimate yet, every cross-clock computation for
    that event is skipped; raw counters are still updated.

Failure Model:
    Nothing here raises during ingestion. A statistic whose inputs are
    missing is simply not updated, and snapshot() omits statistics whose
    preconditions were never met.

Threading:
    Single owning context. Every public method asserts it is called from
    the context the engine is bound to (see ContextChecker).
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from cast_telemetry.clock.offset import ClockOffsetProvider, offset_midpoint
from cast_telemetry.models.events import (
    CastLoggingEvent,
    FrameEvent,
    MediaType,
    PacketEvent,
    event_label,
    is_receiver_event,
)
from cast_telemetry.models.stats import (
    CastStat,
    HistogramBucket,
    StatsExport,
    stat_label,
)
from cast_telemetry.stats.context import ContextChecker
from cast_telemetry.stats.histogram import SimpleHistogram
from cast_telemetry.stats.ordered_cache import BoundedOrderedCache


logger = logging.getLogger(__name__)


MAX_FRAME_CACHE = 100
MAX_PACKET_CACHE = 1000
MAX_LATENCY_BUCKET_MS = 800
BUCKET_WIDTH_MS = 20

HISTOGRAMS = (
    CastStat.CAPTURE_LATENCY_MS_HISTO,
    CastStat.ENCODE_LATENCY_MS_HISTO,
    CastStat.PACKET_LATENCY_MS_HISTO,
    CastStat.FRAME_LATENCY_MS_HISTO,
    CastStat.PLAYOUT_DELAY_MS_HISTO,
)

PacketKey = Tuple[int, int]


def _duration_ms(seconds: float) -> float:
    """Seconds to milliseconds, rounded to whole microseconds."""
    return round(seconds * 1_000_000) / 1000


@dataclass(slots=True)
class FrameInfo:
    """Working state of one frame, keyed by rtp_timestamp."""

    capture_time: Optional[float] = None
    capture_end_time: Optional[float] = None
    encode_time: Optional[float] = None


@dataclass(slots=True)
class FrameLogStats:
    event_counter: int = 0
    sum_size: int = 0
    sum_delay: float = 0.0


@dataclass(slots=True)
class PacketLogStats:
    event_counter: int = 0
    sum_size: int = 0


class TelemetryEngine:
    """
    Frame/packet event subscriber producing live transport statistics.

    Attributes:
        media_type: Media type this engine accepts; other events are ignored

    Example:
        provider = StaticOffsetProvider((0.010, 0.030))
        engine = TelemetryEngine(MediaType.VIDEO, provider)

        engine.on_frame_event(event)
        engine.on_packet_event(packet_event)

        export = engine.snapshot()
        print(export.to_dict()["video"]["stats"]["CAPTURE_FPS"])
    """

    def __init__(
        self,
        media_type: MediaType,
        offset_provider: ClockOffsetProvider,
        clock: Callable[[], float] = time.monotonic,
        max_frame_cache: int = MAX_FRAME_CACHE,
        max_packet_cache: int = MAX_PACKET_CACHE,
        histogram_max_ms: int = MAX_LATENCY_BUCKET_MS,
        histogram_bucket_ms: int = BUCKET_WIDTH_MS,
        epoch: float = 0.0,
    ) -> None:
        """
        Initialize telemetry engine.

        Args:
            media_type: AUDIO or VIDEO
            offset_provider: Source of receiver clock offset bounds
            clock: Monotonic clock in seconds, same domain as sender events
            max_frame_cache: Frame working-state entries to retain
            max_packet_cache: Pending packet pairings to retain
            histogram_max_ms: Lower bound of the overflow bucket
            histogram_bucket_ms: Width of each interior bucket
            epoch: Clock reading that FIRST/LAST_EVENT_TIME_MS are relative to

        Raises:
            ValueError: On an unsupported media type, or invalid cache or
                histogram parameters
        """
        if media_type not in (MediaType.AUDIO, MediaType.VIDEO):
            raise ValueError(f"media_type must be audio or video, got {media_type}")

        self._context = ContextChecker()
        self._media_type = media_type
        self._offset_provider = offset_provider
        self._clock = clock
        self._epoch = epoch

        self._frame_infos: BoundedOrderedCache[int, FrameInfo] = BoundedOrderedCache(
            max_frame_cache
        )
        self._packet_sent_times: BoundedOrderedCache[
            PacketKey, Tuple[float, CastLoggingEvent]
        ] = BoundedOrderedCache(max_packet_cache)

        self._histograms: Dict[CastStat, SimpleHistogram] = {
            stat: SimpleHistogram(0, histogram_max_ms, histogram_bucket_ms)
            for stat in HISTOGRAMS
        }

        self._frame_stats: Dict[CastLoggingEvent, FrameLogStats] = {}
        self._packet_stats: Dict[CastLoggingEvent, PacketLogStats] = {}
        self._clear_state()

        logger.info(
            f"TelemetryEngine initialized: media={media_type.value}, "
            f"frame_cache={max_frame_cache}, packet_cache={max_packet_cache}, "
            f"histogram=[0, {histogram_max_ms}) / {histogram_bucket_ms}ms"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def media_type(self) -> MediaType:
        return self._media_type

    @property
    def context(self) -> ContextChecker:
        """Owning-context checker, exposed so owners can detach it."""
        return self._context

    @property
    def num_frames_dropped_by_encoder(self) -> int:
        return self._num_frames_dropped_by_encoder

    @property
    def num_frames_late(self) -> int:
        return self._num_frames_late

    @property
    def frame_cache_size(self) -> int:
        return len(self._frame_infos)

    @property
    def packet_cache_size(self) -> int:
        return len(self._packet_sent_times)

    def histogram(self, stat: CastStat) -> SimpleHistogram:
        """Histogram for one of the five histogram stats."""
        return self._histograms[stat]

    # =========================================================================
    # Event intake
    # =========================================================================

    def on_frame_event(self, event: FrameEvent) -> None:
        """Ingest one frame event."""
        self._context.check("on_frame_event")

        if event.media_type != self._media_type:
            return

        kind = event.kind
        stats = self._frame_stats.get(kind)
        if stats is None:
            stats = FrameLogStats()
            self._frame_stats[kind] = stats
        stats.event_counter += 1
        stats.sum_size += event.size
        stats.sum_delay += event.delay_delta

        is_receiver = is_receiver_event(kind)
        self._update_first_last_event_time(event.timestamp, is_receiver)

        if kind == CastLoggingEvent.FRAME_CAPTURE_BEGIN:
            self._record_frame_capture_time(event)
        elif kind == CastLoggingEvent.FRAME_CAPTURE_END:
            self._record_capture_latency(event)
        elif kind == CastLoggingEvent.FRAME_ENCODED:
            self._record_encode_latency(event)
        elif kind == CastLoggingEvent.FRAME_ACK_SENT:
            self._record_frame_tx_latency(event)
        elif kind == CastLoggingEvent.FRAME_PLAYOUT:
            self._record_e2e_latency(event)
            self._histograms[CastStat.PLAYOUT_DELAY_MS_HISTO].add(_duration_ms(event.delay_delta))
            if event.delay_delta <= 0:
                self._num_frames_late += 1

        if is_receiver:
            self._update_last_response_time(event.timestamp)

    def on_packet_event(self, event: PacketEvent) -> None:
        """Ingest one packet event."""
        self._context.check("on_packet_event")

        if event.media_type != self._media_type:
            return

        kind = event.kind
        stats = self._packet_stats.get(kind)
        if stats is None:
            stats = PacketLogStats()
            self._packet_stats[kind] = stats
        stats.event_counter += 1
        stats.sum_size += event.size

        is_receiver = is_receiver_event(kind)
        self._update_first_last_event_time(event.timestamp, is_receiver)

        if kind in (CastLoggingEvent.PACKET_SENT_TO_NETWORK, CastLoggingEvent.PACKET_RECEIVED):
            self._record_network_latency(event)
        elif kind == CastLoggingEvent.PACKET_RETRANSMITTED:
            # A retransmitted packet has no single sent/received pair
            self._packet_sent_times.pop((event.rtp_timestamp, event.packet_id))

        if is_receiver:
            self._update_last_response_time(event.timestamp)

    # =========================================================================
    # Export / lifecycle
    # =========================================================================

    def snapshot(self) -> StatsExport:
        """
        Compute statistics as of now. Does not modify engine state.

        Returns:
            StatsExport for this engine's media type
        """
        self._context.check("snapshot")

        end_time = self._clock()
        stats: Dict[CastStat, float] = {}

        self._populate_fps_stat(end_time, CastLoggingEvent.FRAME_CAPTURE_BEGIN, CastStat.CAPTURE_FPS, stats)
        self._populate_fps_stat(end_time, CastLoggingEvent.FRAME_ENCODED, CastStat.ENCODE_FPS, stats)
        self._populate_fps_stat(end_time, CastLoggingEvent.FRAME_DECODED, CastStat.DECODE_FPS, stats)
        self._populate_playout_delay_stat(stats)
        self._populate_frame_bitrate_stat(end_time, stats)
        self._populate_packet_bitrate_stat(
            end_time, CastLoggingEvent.PACKET_SENT_TO_NETWORK, CastStat.TRANSMISSION_KBPS, stats
        )
        self._populate_packet_bitrate_stat(
            end_time, CastLoggingEvent.PACKET_RETRANSMITTED, CastStat.RETRANSMISSION_KBPS, stats
        )
        self._populate_packet_loss_fraction_stat(stats)
        self._populate_frame_count_stat(CastLoggingEvent.FRAME_CAPTURE_END, CastStat.NUM_FRAMES_CAPTURED, stats)
        self._populate_packet_count_stat(CastLoggingEvent.PACKET_SENT_TO_NETWORK, CastStat.NUM_PACKETS_SENT, stats)
        self._populate_packet_count_stat(
            CastLoggingEvent.PACKET_RETRANSMITTED, CastStat.NUM_PACKETS_RETRANSMITTED, stats
        )
        self._populate_packet_count_stat(
            CastLoggingEvent.PACKET_RTX_REJECTED, CastStat.NUM_PACKETS_RTX_REJECTED, stats
        )

        if self._network_latency_datapoints > 0:
            stats[CastStat.AVG_NETWORK_LATENCY_MS] = (
                self._total_network_latency * 1000 / self._network_latency_datapoints
            )

        if self._e2e_latency_datapoints > 0:
            stats[CastStat.AVG_E2E_LATENCY_MS] = (
                self._total_e2e_latency * 1000 / self._e2e_latency_datapoints
            )

        if self._last_response_received_time is not None:
            stats[CastStat.MS_SINCE_LAST_RECEIVER_RESPONSE] = (
                (end_time - self._last_response_received_time) * 1000
            )

        stats[CastStat.NUM_FRAMES_DROPPED_BY_ENCODER] = self._num_frames_dropped_by_encoder
        stats[CastStat.NUM_FRAMES_LATE] = self._num_frames_late

        if self._first_event_time is not None:
            stats[CastStat.FIRST_EVENT_TIME_MS] = (self._first_event_time - self._epoch) * 1000
        if self._last_event_time is not None:
            stats[CastStat.LAST_EVENT_TIME_MS] = (self._last_event_time - self._epoch) * 1000

        return StatsExport(
            media_type=self._media_type,
            stats={stat_label(stat): float(value) for stat, value in stats.items()},
            histograms={
                stat_label(stat): [HistogramBucket(**bucket) for bucket in histo.export()]
                for stat, histo in self._histograms.items()
            },
        )

    def reset(self) -> None:
        """Clear all running state and restart the rate window at now."""
        self._context.check("reset")
        self._clear_state()
        logger.info(f"TelemetryEngine reset: media={self._media_type.value}")

    def get_metrics(self) -> dict:
        """Raw per-kind counters and cache occupancy, for observability."""
        self._context.check("get_metrics")
        return {
            "media_type": self._media_type.value,
            "frame_events": {
                event_label(kind): {
                    "count": s.event_counter,
                    "sum_size": s.sum_size,
                    "sum_delay_ms": round(s.sum_delay * 1000, 3),
                }
                for kind, s in self._frame_stats.items()
            },
            "packet_events": {
                event_label(kind): {"count": s.event_counter, "sum_size": s.sum_size}
                for kind, s in self._packet_stats.items()
            },
            "frame_cache_size": len(self._frame_infos),
            "packet_cache_size": len(self._packet_sent_times),
            "network_latency_samples": self._network_latency_datapoints,
            "e2e_latency_samples": self._e2e_latency_datapoints,
        }

    # =========================================================================
    # Internals
    # =========================================================================

    def _clear_state(self) -> None:
        self._frame_stats.clear()
        self._packet_stats.clear()
        self._total_network_latency: float = 0.0
        self._network_latency_datapoints: int = 0
        self._total_e2e_latency: float = 0.0
        self._e2e_latency_datapoints: int = 0
        self._num_frames_dropped_by_encoder: int = 0
        self._num_frames_late: int = 0
        self._frame_infos.clear()
        self._packet_sent_times.clear()
        self._start_time: float = self._clock()
        self._last_response_received_time: Optional[float] = None
        self._first_event_time: Optional[float] = None
        self._last_event_time: Optional[float] = None
        for histo in self._histograms.values():
            histo.reset()

    def _get_receiver_offset(self) -> Optional[float]:
        bounds = self._offset_provider.get_offset_bounds()
        if bounds is None:
            return None
        return offset_midpoint(bounds)

    def _update_first_last_event_time(self, timestamp: float, is_receiver: bool) -> None:
        if is_receiver:
            offset = self._get_receiver_offset()
            if offset is None:
                return
            timestamp -= offset

        if self._first_event_time is None or timestamp < self._first_event_time:
            self._first_event_time = timestamp
        if self._last_event_time is None or timestamp > self._last_event_time:
            self._last_event_time = timestamp

    def _update_last_response_time(self, receiver_time: float) -> None:
        offset = self._get_receiver_offset()
        if offset is None:
            return
        self._last_response_received_time = receiver_time - offset

    def _maybe_insert_frame_info(self, rtp_timestamp: int, frame_info: FrameInfo) -> None:
        # A key below every cached key would be evicted straight away
        if (
            self._frame_infos.is_full
            and rtp_timestamp < self._frame_infos.smallest_key()
        ):
            return
        if rtp_timestamp in self._frame_infos:
            return

        self._frame_infos.put(rtp_timestamp, frame_info)

        if self._frame_infos.over_capacity:
            evicted_rtp, evicted = self._frame_infos.pop_smallest()
            if evicted.encode_time is None:
                self._num_frames_dropped_by_encoder += 1
                logger.debug(
                    f"Frame rtp={evicted_rtp} evicted before encode "
                    f"(dropped={self._num_frames_dropped_by_encoder})"
                )

    def _record_frame_capture_time(self, event: FrameEvent) -> None:
        self._maybe_insert_frame_info(
            event.rtp_timestamp, FrameInfo(capture_time=event.timestamp)
        )

    def _record_capture_latency(self, event: FrameEvent) -> None:
        info = self._frame_infos.get(event.rtp_timestamp)
        if info is None:
            return

        if info.capture_time is not None:
            # capture_begin - capture_end; underflows for ordered events
            capture_latency_ms = _duration_ms(info.capture_time - event.timestamp)
            self._histograms[CastStat.CAPTURE_LATENCY_MS_HISTO].add(capture_latency_ms)

        info.capture_end_time = event.timestamp

    def _record_encode_latency(self, event: FrameEvent) -> None:
        info = self._frame_infos.get(event.rtp_timestamp)
        if info is None:
            self._maybe_insert_frame_info(
                event.rtp_timestamp, FrameInfo(encode_time=event.timestamp)
            )
            return

        if info.capture_end_time is not None:
            encode_latency_ms = _duration_ms(event.timestamp - info.capture_end_time)
            self._histograms[CastStat.ENCODE_LATENCY_MS_HISTO].add(encode_latency_ms)

        info.encode_time = event.timestamp

    def _record_frame_tx_latency(self, event: FrameEvent) -> None:
        info = self._frame_infos.get(event.rtp_timestamp)
        if info is None or info.encode_time is None:
            return

        offset = self._get_receiver_offset()
        if offset is None:
            return

        sender_time = event.timestamp - offset
        frame_tx_latency_ms = _duration_ms(sender_time - info.encode_time)
        self._histograms[CastStat.FRAME_LATENCY_MS_HISTO].add(frame_tx_latency_ms)

    def _record_e2e_latency(self, event: FrameEvent) -> None:
        offset = self._get_receiver_offset()
        if offset is None:
            return

        info = self._frame_infos.get(event.rtp_timestamp)
        if info is None or info.capture_time is None:
            return

        # Playout time is event time + playout delay
        playout_time = event.timestamp + event.delay_delta - offset
        self._total_e2e_latency += playout_time - info.capture_time
        self._e2e_latency_datapoints += 1

    def _record_network_latency(self, event: PacketEvent) -> None:
        offset = self._get_receiver_offset()
        if offset is None:
            return

        key = (event.rtp_timestamp, event.packet_id)
        recorded = self._packet_sent_times.get(key)
        if recorded is None:
            self._packet_sent_times.put(key, (event.timestamp, event.kind))
            if self._packet_sent_times.over_capacity:
                self._packet_sent_times.pop_smallest()
            return

        recorded_time, recorded_kind = recorded
        if (
            recorded_kind == CastLoggingEvent.PACKET_SENT_TO_NETWORK
            and event.kind == CastLoggingEvent.PACKET_RECEIVED
        ):
            sent_time, received_time = recorded_time, event.timestamp
        elif (
            recorded_kind == CastLoggingEvent.PACKET_RECEIVED
            and event.kind == CastLoggingEvent.PACKET_SENT_TO_NETWORK
        ):
            sent_time, received_time = event.timestamp, recorded_time
        else:
            return

        latency = (received_time - offset) - sent_time
        self._total_network_latency += latency
        self._network_latency_datapoints += 1
        self._histograms[CastStat.PACKET_LATENCY_MS_HISTO].add(_duration_ms(latency))
        self._packet_sent_times.pop(key)

    def _populate_fps_stat(
        self,
        end_time: float,
        kind: CastLoggingEvent,
        stat: CastStat,
        stats: Dict[CastStat, float],
    ) -> None:
        frame_stats = self._frame_stats.get(kind)
        if frame_stats is None:
            return
        fps = 0.0
        duration = end_time - self._start_time
        if duration > 0:
            fps = frame_stats.event_counter / duration
        stats[stat] = fps

    def _populate_frame_count_stat(
        self, kind: CastLoggingEvent, stat: CastStat, stats: Dict[CastStat, float]
    ) -> None:
        frame_stats = self._frame_stats.get(kind)
        if frame_stats is not None:
            stats[stat] = frame_stats.event_counter

    def _populate_packet_count_stat(
        self, kind: CastLoggingEvent, stat: CastStat, stats: Dict[CastStat, float]
    ) -> None:
        packet_stats = self._packet_stats.get(kind)
        if packet_stats is not None:
            stats[stat] = packet_stats.event_counter

    def _populate_playout_delay_stat(self, stats: Dict[CastStat, float]) -> None:
        frame_stats = self._frame_stats.get(CastLoggingEvent.FRAME_PLAYOUT)
        if frame_stats is None:
            return
        avg_delay_ms = 0.0
        if frame_stats.event_counter != 0:
            avg_delay_ms = frame_stats.sum_delay * 1000 / frame_stats.event_counter
        stats[CastStat.AVG_PLAYOUT_DELAY_MS] = avg_delay_ms

    def _populate_frame_bitrate_stat(self, end_time: float, stats: Dict[CastStat, float]) -> None:
        frame_stats = self._frame_stats.get(CastLoggingEvent.FRAME_ENCODED)
        if frame_stats is None:
            return
        kbps = 0.0
        duration_ms = (end_time - self._start_time) * 1000
        if duration_ms > 0:
            kbps = frame_stats.sum_size / duration_ms * 8
        stats[CastStat.ENCODE_KBPS] = kbps

    def _populate_packet_bitrate_stat(
        self,
        end_time: float,
        kind: CastLoggingEvent,
        stat: CastStat,
        stats: Dict[CastStat, float],
    ) -> None:
        packet_stats = self._packet_stats.get(kind)
        if packet_stats is None:
            return
        kbps = 0.0
        duration_ms = (end_time - self._start_time) * 1000
        if duration_ms > 0:
            kbps = packet_stats.sum_size / duration_ms * 8
        stats[stat] = kbps

    def _populate_packet_loss_fraction_stat(self, stats: Dict[CastStat, float]) -> None:
        # Each retransmission implies the previous transmission was lost:
        # loss = retransmits / (transmits + retransmits)
        sent = self._packet_stats.get(CastLoggingEvent.PACKET_SENT_TO_NETWORK)
        if sent is None:
            return
        retransmitted = self._packet_stats.get(CastLoggingEvent.PACKET_RETRANSMITTED)
        retransmitted_count = retransmitted.event_counter if retransmitted else 0
        stats[CastStat.PACKET_LOSS_FRACTION] = retransmitted_count / (
            sent.event_counter + retransmitted_count
        )

    def __repr__(self) -> str:
        return (
            f"TelemetryEngine(media={self._media_type.value}, "
            f"frames={len(self._frame_infos)}, packets={len(self._packet_sent_times)})"
        )
