"""
CastTelemetry
=============

Latency and throughput statistics for real-time audio/video streaming.

This package consumes frame- and packet-level lifecycle events from both the
sender and the receiver of a streaming session, reconciles the two clocks,
and produces live statistics: frame rates, bitrates, packet loss, and
capture/encode/network/transmission/playout latency distributions.

Components:
    - stats: TelemetryEngine, histograms and bounded correlation caches
    - net: 8-bit wire frame id expansion
    - clock: Sender/receiver clock offset providers
    - stream: Event decoding, buffering and the WebSocket event consumer
    - pipeline: Per-media-type engine fan-out

Example:
    from cast_telemetry.clock import StaticOffsetProvider
    from cast_telemetry.models.events import MediaType
    from cast_telemetry.stats import TelemetryEngine

    engine = TelemetryEngine(MediaType.VIDEO, StaticOffsetProvider((0.02, 0.03)))
    engine.on_frame_event(event)
    print(engine.snapshot().to_dict())

    # The HTTP service is started via main.py
"""

__version__ = "0.1.0"
__author__ = "CastTelemetry Project"

__all__ = [
    "__version__",
]
