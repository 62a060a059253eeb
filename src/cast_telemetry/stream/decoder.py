"""
Event Decoder
=============

Turns validated EventMessages into engine events.

The decoder owns one FrameIdResolver per media type, so 8-bit wire frame
ids from the receive path come out as stable 32-bit ids. Messages must be
fed in arrival order for the resolver to track wraps correctly.
"""

import json
import logging
from typing import Dict, Optional, Union

from pydantic import ValidationError

from cast_telemetry.models.events import FrameEvent, MediaType, PacketEvent
from cast_telemetry.models.input import EventMessage
from cast_telemetry.net.frame_id import FrameIdResolver


logger = logging.getLogger(__name__)


Event = Union[FrameEvent, PacketEvent]


class EventDecoder:
    """
    Stateful message → event converter.

    Example:
        decoder = EventDecoder()
        event = decoder.decode_raw('{"type": "frame", ...}')
    """

    def __init__(self) -> None:
        self._resolvers: Dict[MediaType, FrameIdResolver] = {}
        self.decoded_count: int = 0
        self.parse_errors: int = 0

    def decode(self, message: EventMessage) -> Event:
        """Convert one validated message into a FrameEvent or PacketEvent."""
        frame_id = self._resolve_frame_id(message)
        self.decoded_count += 1

        if message.type == "frame":
            return FrameEvent(
                timestamp=message.timestamp,
                kind=message.event,
                media_type=message.media_type,
                rtp_timestamp=message.rtp_timestamp,
                frame_id=frame_id,
                size=message.size,
                delay_delta=message.delay_delta_ms / 1000.0,
            )

        return PacketEvent(
            timestamp=message.timestamp,
            kind=message.event,
            media_type=message.media_type,
            rtp_timestamp=message.rtp_timestamp,
            frame_id=frame_id,
            packet_id=message.packet_id,
            max_packet_id=message.max_packet_id,
            size=message.size,
        )

    def decode_raw(self, raw: Union[str, bytes]) -> Optional[Event]:
        """
        Parse, validate and convert a raw JSON message.

        Returns:
            The decoded event, or None if the message was rejected
        """
        try:
            message = EventMessage.model_validate_json(raw)
        except ValidationError as e:
            self.parse_errors += 1
            logger.error(f"Invalid event message: {e.error_count()} error(s): {_first_error(e)}")
            return None
        return self.decode(message)

    def reset(self) -> None:
        """Forget wire frame id history, e.g. for a new session."""
        self._resolvers.clear()

    def _resolve_frame_id(self, message: EventMessage) -> int:
        if message.wire_frame_id is None:
            return message.frame_id if message.frame_id is not None else 0

        resolver = self._resolvers.get(message.media_type)
        if resolver is None:
            resolver = FrameIdResolver()
            self._resolvers[message.media_type] = resolver
        return resolver.resolve(message.wire_frame_id)

    def metrics(self) -> dict:
        return {
            "decoded_count": self.decoded_count,
            "parse_errors": self.parse_errors,
        }


def _first_error(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return json.dumps({"loc": location, "msg": first.get("msg")})
