"""
Event Models
============

Frame and packet lifecycle events consumed by the telemetry engine.

Every event is emitted by either the sender or the receiver side of the
transport. Timestamps are seconds on the emitting side's monotonic clock;
receiver timestamps must be shifted by the clock offset before they can be
compared with sender timestamps.

Event Kinds:
    Sender:   frame_capture_begin, frame_capture_end, frame_encoded,
              frame_ack_received, packet_sent_to_network,
              packet_retransmitted, packet_rtx_rejected
    Receiver: frame_ack_sent, frame_decoded, frame_playout, packet_received

Example:
    from cast_telemetry.models.events import (
        CastLoggingEvent, FrameEvent, MediaType,
    )

    event = FrameEvent(
        timestamp=12.5,
        kind=CastLoggingEvent.FRAME_ENCODED,
        media_type=MediaType.VIDEO,
        rtp_timestamp=9000,
        frame_id=3,
        size=1200,
    )
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet


class MediaType(str, Enum):
    """Media type an event belongs to."""

    AUDIO = "audio"
    VIDEO = "video"
    UNKNOWN = "unknown"


class CastLoggingEvent(str, Enum):
    """
    All lifecycle event kinds, frame and packet level.

    Values are the names used on the wire.
    """

    UNKNOWN = "unknown"

    # Frame events
    FRAME_CAPTURE_BEGIN = "frame_capture_begin"
    FRAME_CAPTURE_END = "frame_capture_end"
    FRAME_ENCODED = "frame_encoded"
    FRAME_ACK_RECEIVED = "frame_ack_received"
    FRAME_ACK_SENT = "frame_ack_sent"
    FRAME_DECODED = "frame_decoded"
    FRAME_PLAYOUT = "frame_playout"

    # Packet events
    PACKET_SENT_TO_NETWORK = "packet_sent_to_network"
    PACKET_RETRANSMITTED = "packet_retransmitted"
    PACKET_RTX_REJECTED = "packet_rtx_rejected"
    PACKET_RECEIVED = "packet_received"


FRAME_EVENTS: FrozenSet[CastLoggingEvent] = frozenset({
    CastLoggingEvent.FRAME_CAPTURE_BEGIN,
    CastLoggingEvent.FRAME_CAPTURE_END,
    CastLoggingEvent.FRAME_ENCODED,
    CastLoggingEvent.FRAME_ACK_RECEIVED,
    CastLoggingEvent.FRAME_ACK_SENT,
    CastLoggingEvent.FRAME_DECODED,
    CastLoggingEvent.FRAME_PLAYOUT,
})

PACKET_EVENTS: FrozenSet[CastLoggingEvent] = frozenset({
    CastLoggingEvent.PACKET_SENT_TO_NETWORK,
    CastLoggingEvent.PACKET_RETRANSMITTED,
    CastLoggingEvent.PACKET_RTX_REJECTED,
    CastLoggingEvent.PACKET_RECEIVED,
})

RECEIVER_EVENTS: FrozenSet[CastLoggingEvent] = frozenset({
    CastLoggingEvent.FRAME_DECODED,
    CastLoggingEvent.FRAME_PLAYOUT,
    CastLoggingEvent.FRAME_ACK_SENT,
    CastLoggingEvent.PACKET_RECEIVED,
})

# Display names, one per kind
EVENT_LABELS: Dict[CastLoggingEvent, str] = {
    CastLoggingEvent.UNKNOWN: "Unknown",
    CastLoggingEvent.FRAME_CAPTURE_BEGIN: "FrameCaptureBegin",
    CastLoggingEvent.FRAME_CAPTURE_END: "FrameCaptureEnd",
    CastLoggingEvent.FRAME_ENCODED: "FrameEncoded",
    CastLoggingEvent.FRAME_ACK_RECEIVED: "FrameAckReceived",
    CastLoggingEvent.FRAME_ACK_SENT: "FrameAckSent",
    CastLoggingEvent.FRAME_DECODED: "FrameDecoded",
    CastLoggingEvent.FRAME_PLAYOUT: "FramePlayout",
    CastLoggingEvent.PACKET_SENT_TO_NETWORK: "PacketSentToNetwork",
    CastLoggingEvent.PACKET_RETRANSMITTED: "PacketRetransmitted",
    CastLoggingEvent.PACKET_RTX_REJECTED: "PacketRtxRejected",
    CastLoggingEvent.PACKET_RECEIVED: "PacketReceived",
}

if set(EVENT_LABELS) != set(CastLoggingEvent):
    raise RuntimeError("EVENT_LABELS must cover every CastLoggingEvent")


def event_label(kind: CastLoggingEvent) -> str:
    """Display name for an event kind. Raises KeyError if unmapped."""
    return EVENT_LABELS[kind]


def is_receiver_event(kind: CastLoggingEvent) -> bool:
    """Whether the event is timestamped on the receiver's clock."""
    return kind in RECEIVER_EVENTS


@dataclass(frozen=True, slots=True)
class FrameEvent:
    """
    A single frame lifecycle event.

    Attributes:
        timestamp: Monotonic time of the event in seconds (emitter's clock)
        kind: Frame event kind
        media_type: Audio or video
        rtp_timestamp: 32-bit frame identity, unique within a media type
        frame_id: Sender-assigned frame sequence number (informational)
        size: Encoded size in bytes, only meaningful for frame_encoded
        delay_delta: Signed playout delay in seconds, only meaningful for
            frame_playout
    """

    timestamp: float
    kind: CastLoggingEvent
    media_type: MediaType
    rtp_timestamp: int
    frame_id: int = 0
    size: int = 0
    delay_delta: float = 0.0

    def __repr__(self) -> str:
        return (
            f"FrameEvent({self.kind.value}, {self.media_type.value}, "
            f"rtp={self.rtp_timestamp}, t={self.timestamp:.3f})"
        )


@dataclass(frozen=True, slots=True)
class PacketEvent:
    """
    A single packet lifecycle event.

    Attributes:
        timestamp: Monotonic time of the event in seconds (emitter's clock)
        kind: Packet event kind
        media_type: Audio or video
        rtp_timestamp: Identity of the frame owning this packet
        frame_id: Sender-assigned frame sequence number (informational)
        packet_id: 16-bit packet index, unique within the frame
        max_packet_id: Highest packet index of the frame
        size: Packet size in bytes
    """

    timestamp: float
    kind: CastLoggingEvent
    media_type: MediaType
    rtp_timestamp: int
    packet_id: int
    frame_id: int = 0
    max_packet_id: int = 0
    size: int = 0

    def __repr__(self) -> str:
        return (
            f"PacketEvent({self.kind.value}, {self.media_type.value}, "
            f"rtp={self.rtp_timestamp}, packet={self.packet_id}, "
            f"t={self.timestamp:.3f})"
        )
