"""
Statistics Export Models
========================

Named statistics and the point-in-time snapshot produced by the engine.

Export Contract:
    {
        "video": {
            "stats": {
                "CAPTURE_FPS": 29.97,
                "AVG_NETWORK_LATENCY_MS": 41.2,
                "PACKET_LOSS_FRACTION": 0.013,
                ...
            },
            "histograms": {
                "ENCODE_LATENCY_MS_HISTO": [
                    {"bucket": "< 0", "count": 0},
                    {"bucket": "0 - 19", "count": 12},
                    ...
                    {"bucket": ">= 800", "count": 0}
                ],
                ...
            }
        }
    }

Units:
    - rates in frames per second
    - bitrates in kbps
    - latencies and delays in milliseconds
    - packet loss as a fraction in [0, 1]
    - event times in milliseconds relative to the engine epoch
"""

from enum import Enum, auto
from typing import Dict, FrozenSet, List

from pydantic import BaseModel, Field

from cast_telemetry.models.events import MediaType


class CastStat(Enum):
    """Every statistic and histogram the engine can export."""

    CAPTURE_FPS = auto()
    ENCODE_FPS = auto()
    DECODE_FPS = auto()
    AVG_ENCODE_TIME_MS = auto()
    AVG_PLAYOUT_DELAY_MS = auto()
    AVG_NETWORK_LATENCY_MS = auto()
    AVG_E2E_LATENCY_MS = auto()
    ENCODE_KBPS = auto()
    TRANSMISSION_KBPS = auto()
    RETRANSMISSION_KBPS = auto()
    PACKET_LOSS_FRACTION = auto()
    MS_SINCE_LAST_RECEIVER_RESPONSE = auto()
    NUM_FRAMES_CAPTURED = auto()
    NUM_FRAMES_DROPPED_BY_ENCODER = auto()
    NUM_FRAMES_LATE = auto()
    NUM_PACKETS_SENT = auto()
    NUM_PACKETS_RETRANSMITTED = auto()
    NUM_PACKETS_RTX_REJECTED = auto()
    FIRST_EVENT_TIME_MS = auto()
    LAST_EVENT_TIME_MS = auto()

    # Histograms
    CAPTURE_LATENCY_MS_HISTO = auto()
    ENCODE_LATENCY_MS_HISTO = auto()
    PACKET_LATENCY_MS_HISTO = auto()
    FRAME_LATENCY_MS_HISTO = auto()
    PLAYOUT_DELAY_MS_HISTO = auto()


HISTOGRAM_STATS: FrozenSet[CastStat] = frozenset({
    CastStat.CAPTURE_LATENCY_MS_HISTO,
    CastStat.ENCODE_LATENCY_MS_HISTO,
    CastStat.PACKET_LATENCY_MS_HISTO,
    CastStat.FRAME_LATENCY_MS_HISTO,
    CastStat.PLAYOUT_DELAY_MS_HISTO,
})

STAT_LABELS: Dict[CastStat, str] = {
    CastStat.CAPTURE_FPS: "CAPTURE_FPS",
    CastStat.ENCODE_FPS: "ENCODE_FPS",
    CastStat.DECODE_FPS: "DECODE_FPS",
    CastStat.AVG_ENCODE_TIME_MS: "AVG_ENCODE_TIME_MS",
    CastStat.AVG_PLAYOUT_DELAY_MS: "AVG_PLAYOUT_DELAY_MS",
    CastStat.AVG_NETWORK_LATENCY_MS: "AVG_NETWORK_LATENCY_MS",
    CastStat.AVG_E2E_LATENCY_MS: "AVG_E2E_LATENCY_MS",
    CastStat.ENCODE_KBPS: "ENCODE_KBPS",
    CastStat.TRANSMISSION_KBPS: "TRANSMISSION_KBPS",
    CastStat.RETRANSMISSION_KBPS: "RETRANSMISSION_KBPS",
    CastStat.PACKET_LOSS_FRACTION: "PACKET_LOSS_FRACTION",
    CastStat.MS_SINCE_LAST_RECEIVER_RESPONSE: "MS_SINCE_LAST_RECEIVER_RESPONSE",
    CastStat.NUM_FRAMES_CAPTURED: "NUM_FRAMES_CAPTURED",
    CastStat.NUM_FRAMES_DROPPED_BY_ENCODER: "NUM_FRAMES_DROPPED_BY_ENCODER",
    CastStat.NUM_FRAMES_LATE: "NUM_FRAMES_LATE",
    CastStat.NUM_PACKETS_SENT: "NUM_PACKETS_SENT",
    CastStat.NUM_PACKETS_RETRANSMITTED: "NUM_PACKETS_RETRANSMITTED",
    CastStat.NUM_PACKETS_RTX_REJECTED: "NUM_PACKETS_RTX_REJECTED",
    CastStat.FIRST_EVENT_TIME_MS: "FIRST_EVENT_TIME_MS",
    CastStat.LAST_EVENT_TIME_MS: "LAST_EVENT_TIME_MS",
    CastStat.CAPTURE_LATENCY_MS_HISTO: "CAPTURE_LATENCY_MS_HISTO",
    CastStat.ENCODE_LATENCY_MS_HISTO: "ENCODE_LATENCY_MS_HISTO",
    CastStat.PACKET_LATENCY_MS_HISTO: "PACKET_LATENCY_MS_HISTO",
    CastStat.FRAME_LATENCY_MS_HISTO: "FRAME_LATENCY_MS_HISTO",
    CastStat.PLAYOUT_DELAY_MS_HISTO: "PLAYOUT_DELAY_MS_HISTO",
}

if set(STAT_LABELS) != set(CastStat):
    raise RuntimeError("STAT_LABELS must cover every CastStat")


def stat_label(stat: CastStat) -> str:
    """Export name for a statistic. Raises KeyError if unmapped."""
    return STAT_LABELS[stat]


class HistogramBucket(BaseModel):
    """One exported histogram bucket."""

    bucket: str = Field(..., description="Bucket label, e.g. '< 0', '0 - 19', '>= 800'")
    count: int = Field(..., ge=0, description="Samples in this bucket")


class StatsExport(BaseModel):
    """
    Point-in-time statistics for one media type.

    Statistics whose preconditions were never met are absent from
    `stats` rather than reported as zero.

    Attributes:
        media_type: Media type the producing engine is bound to
        stats: Scalar statistics keyed by export name
        histograms: Ordered bucket lists keyed by export name
    """

    media_type: MediaType = Field(..., description="Audio or video")
    stats: Dict[str, float] = Field(default_factory=dict)
    histograms: Dict[str, List[HistogramBucket]] = Field(default_factory=dict)

    def get(self, stat: CastStat):
        """Look up a scalar stat or histogram by enum; None when absent."""
        name = stat_label(stat)
        if stat in HISTOGRAM_STATS:
            return self.histograms.get(name)
        return self.stats.get(name)

    def to_dict(self) -> dict:
        """Export as a dict keyed by media type."""
        return {
            self.media_type.value: {
                "stats": dict(self.stats),
                "histograms": {
                    name: [bucket.model_dump() for bucket in buckets]
                    for name, buckets in self.histograms.items()
                },
            }
        }
