"""
Test Configuration
==================

Pytest fixtures and test configuration for CastTelemetry.
"""

import pytest

from cast_telemetry.clock import StaticOffsetProvider
from cast_telemetry.models.events import (
    CastLoggingEvent,
    FrameEvent,
    MediaType,
    PacketEvent,
)
from cast_telemetry.stats import TelemetryEngine


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Provide a clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def offset_provider():
    """Provide an offset provider with a 20 ms midpoint."""
    return StaticOffsetProvider((0.010, 0.030))


@pytest.fixture
def make_engine(fake_clock, offset_provider):
    """Provide a factory for engines sharing the fake clock."""

    def _make(media_type=MediaType.VIDEO, provider=None, **kwargs):
        return TelemetryEngine(
            media_type,
            provider if provider is not None else offset_provider,
            clock=fake_clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def frame_event():
    """Provide a FrameEvent factory defaulting to video."""

    def _make(kind, timestamp, rtp_timestamp, media_type=MediaType.VIDEO, **kwargs):
        return FrameEvent(
            timestamp=timestamp,
            kind=CastLoggingEvent(kind),
            media_type=media_type,
            rtp_timestamp=rtp_timestamp,
            **kwargs,
        )

    return _make


@pytest.fixture
def packet_event():
    """Provide a PacketEvent factory defaulting to video."""

    def _make(kind, timestamp, rtp_timestamp, packet_id, media_type=MediaType.VIDEO, **kwargs):
        return PacketEvent(
            timestamp=timestamp,
            kind=CastLoggingEvent(kind),
            media_type=media_type,
            rtp_timestamp=rtp_timestamp,
            packet_id=packet_id,
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_event_message():
    """Provide a sample frame event message for testing."""
    return {
        "type": "frame",
        "event": "frame_encoded",
        "media_type": "video",
        "timestamp": 12.5,
        "rtp_timestamp": 90000,
        "frame_id": 3,
        "size": 1200,
    }
