"""
Input Message Schema
====================

This module defines the Pydantic model for event messages received from the
transport's event log, over the WebSocket feed or the HTTP ingest endpoint.

Input Contract:
    {
        "type": "packet",
        "event": "packet_received",
        "media_type": "video",
        "timestamp": 1834.251,
        "rtp_timestamp": 900000,
        "wire_frame_id": 17,
        "packet_id": 3,
        "max_packet_id": 7,
        "size": 1180
    }

Notes:
    - timestamp is in seconds on the emitting side's monotonic clock
    - frame events may carry delay_delta_ms (signed, milliseconds)
    - receivers usually only see the 8-bit frame id; send it as
      wire_frame_id and it is expanded to 32 bits on ingest

Example:
    from cast_telemetry.models.input import EventMessage

    raw = await websocket.recv()
    message = EventMessage.model_validate_json(raw)
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cast_telemetry.models.events import (
    FRAME_EVENTS,
    PACKET_EVENTS,
    CastLoggingEvent,
    MediaType,
)


class EventMessage(BaseModel):
    """
    Schema for one frame or packet event message.

    Any message that does not conform to this schema is rejected.

    Attributes:
        type: "frame" or "packet"
        event: Event kind; must be a frame kind for frame messages and a
            packet kind for packet messages
        media_type: "audio" or "video"
        timestamp: Emitter-side monotonic time in seconds
        rtp_timestamp: 32-bit frame identity
        frame_id: Full frame id, if the emitter knows it
        wire_frame_id: 8-bit frame id as seen on the wire
        size: Size in bytes
        delay_delta_ms: Playout delay in milliseconds (frame events)
        packet_id: Packet index within the frame (packet events)
        max_packet_id: Highest packet index of the frame (packet events)
    """

    type: Literal["frame", "packet"] = Field(
        ...,
        description="Message type",
    )

    event: CastLoggingEvent = Field(
        ...,
        description="Event kind",
    )

    media_type: MediaType = Field(
        ...,
        description="Media type of the event",
    )

    timestamp: float = Field(
        ...,
        ge=0,
        description="Monotonic time in seconds on the emitter's clock",
    )

    rtp_timestamp: int = Field(
        ...,
        ge=0,
        le=0xFFFFFFFF,
        description="32-bit frame identity",
    )

    frame_id: Optional[int] = Field(
        default=None,
        ge=0,
        le=0xFFFFFFFF,
        description="Full 32-bit frame id",
    )

    wire_frame_id: Optional[int] = Field(
        default=None,
        ge=0,
        le=0xFF,
        description="8-bit frame id as carried on the wire",
    )

    size: int = Field(
        default=0,
        ge=0,
        description="Size in bytes",
    )

    delay_delta_ms: float = Field(
        default=0.0,
        description="Signed playout delay in milliseconds",
    )

    packet_id: Optional[int] = Field(
        default=None,
        ge=0,
        le=0xFFFF,
        description="Packet index within the frame",
    )

    max_packet_id: int = Field(
        default=0,
        ge=0,
        le=0xFFFF,
        description="Highest packet index of the frame",
    )

    @model_validator(mode="after")
    def _check_kind_matches_type(self) -> "EventMessage":
        if self.type == "frame" and self.event not in FRAME_EVENTS:
            raise ValueError(f"{self.event.value} is not a frame event")
        if self.type == "packet":
            if self.event not in PACKET_EVENTS:
                raise ValueError(f"{self.event.value} is not a packet event")
            if self.packet_id is None:
                raise ValueError("packet events require packet_id")
        return self

    class Config:
        """Pydantic model configuration."""

        # Infinity/NaN would poison running sums for the rest of the session
        allow_inf_nan = False

        json_schema_extra = {
            "example": {
                "type": "frame",
                "event": "frame_encoded",
                "media_type": "video",
                "timestamp": 1834.225,
                "rtp_timestamp": 900000,
                "frame_id": 17,
                "size": 9400,
            }
        }


class EventBatch(BaseModel):
    """Batch of event messages for the HTTP ingest endpoint."""

    events: list[EventMessage] = Field(
        default_factory=list,
        description="Events in emission order",
    )


class OffsetUpdate(BaseModel):
    """Clock offset bounds in milliseconds; null bounds clear the estimate."""

    model_config = ConfigDict(allow_inf_nan=False)

    lower_ms: Optional[float] = Field(default=None, description="Lower offset bound (ms)")
    upper_ms: Optional[float] = Field(default=None, description="Upper offset bound (ms)")

    @model_validator(mode="after")
    def _check_bounds(self) -> "OffsetUpdate":
        if (self.lower_ms is None) != (self.upper_ms is None):
            raise ValueError("lower_ms and upper_ms must be given together")
        if self.lower_ms is not None and self.lower_ms > self.upper_ms:
            raise ValueError("lower_ms must not exceed upper_ms")
        return self
