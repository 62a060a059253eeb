"""
Stats Pipeline Tests
====================
"""

import pytest

from cast_telemetry.models.events import MediaType
from cast_telemetry.models.stats import CastStat
from cast_telemetry.pipeline import StatsPipeline


@pytest.fixture
def pipeline(offset_provider, fake_clock):
    return StatsPipeline(
        media_types=[MediaType.AUDIO, MediaType.VIDEO],
        offset_provider=offset_provider,
        clock=fake_clock,
    )


class TestStatsPipeline:
    """Tests for StatsPipeline."""

    def test_one_engine_per_media_type(self, offset_provider):
        pipeline = StatsPipeline(
            media_types=[MediaType.VIDEO, MediaType.VIDEO],
            offset_provider=offset_provider,
        )
        assert list(pipeline.engines) == [MediaType.VIDEO]
        assert pipeline.engine(MediaType.AUDIO) is None

    def test_requires_media_type(self, offset_provider):
        with pytest.raises(ValueError):
            StatsPipeline(media_types=[], offset_provider=offset_provider)

    def test_dispatch_routes_by_media(self, pipeline, frame_event, packet_event):
        pipeline.dispatch(frame_event("frame_capture_end", 1.0, 1, media_type=MediaType.AUDIO))
        pipeline.dispatch(frame_event("frame_capture_end", 1.0, 1))
        pipeline.dispatch(frame_event("frame_capture_end", 1.1, 2))
        pipeline.dispatch(packet_event("packet_sent_to_network", 1.0, 1, 0))

        assert pipeline.events_dispatched == 4
        audio = pipeline.engine(MediaType.AUDIO).snapshot()
        video = pipeline.engine(MediaType.VIDEO).snapshot()
        assert audio.get(CastStat.NUM_FRAMES_CAPTURED) == 1
        assert video.get(CastStat.NUM_FRAMES_CAPTURED) == 2
        assert audio.get(CastStat.NUM_PACKETS_SENT) is None
        assert video.get(CastStat.NUM_PACKETS_SENT) == 1

    def test_snapshot_merges_media(self, pipeline):
        snapshot = pipeline.snapshot()
        assert set(snapshot) == {"audio", "video"}
        assert "ENCODE_LATENCY_MS_HISTO" in snapshot["video"]["histograms"]

    def test_reset(self, pipeline, frame_event):
        pipeline.dispatch(frame_event("frame_capture_end", 1.0, 1))
        pipeline.reset()

        assert pipeline.events_dispatched == 0
        assert "NUM_FRAMES_CAPTURED" not in pipeline.snapshot()["video"]["stats"]

    def test_metrics(self, pipeline, frame_event):
        pipeline.dispatch(frame_event("frame_encoded", 1.0, 1, size=100))
        metrics = pipeline.get_metrics()

        assert metrics["events_dispatched"] == 1
        video = metrics["engines"]["video"]
        assert video["frame_events"]["FrameEncoded"] == {
            "count": 1,
            "sum_size": 100,
            "sum_delay_ms": 0.0,
        }
        assert metrics["engines"]["audio"]["frame_events"] == {}
