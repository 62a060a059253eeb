"""
Frame Identity Resolver
=======================

Expands the 8-bit frame id carried on the wire into a 32-bit id that keeps
increasing across wraps.

The 8-bit space is split into three zones:

    LOW     0 .. 63
    MIDDLE  64 .. 191
    HIGH    192 .. 255

A wrap is only counted on a HIGH → LOW move, and HIGH is only reachable
through MIDDLE. MIDDLE therefore debounces the decision: while in LOW, a
sample from HIGH is a straggler from before the last wrap, and is given the
previous wrap count instead of triggering a new wrap.

Consecutive observations must not skip more than roughly half the wire
space, otherwise the zone tracking loses sync.
"""

from enum import Enum


class _Range(Enum):
    LOW = 0
    MIDDLE = 1
    HIGH = 2


LOW_RANGE_THRESHOLD = 63
HIGH_RANGE_THRESHOLD = 192

# Returned for a leading 0xff, the transport's start-of-stream convention
START_FRAME_ID = 0xFFFFFFFF


class FrameIdResolver:
    """
    Stateful 8-bit → 32-bit frame id decoder.

    Use one instance per independent sequence (per media type and
    direction). Not safe for concurrent use.

    Example:
        resolver = FrameIdResolver()
        resolver.resolve(250)   # 250
        resolver.resolve(10)    # ... after passing through MIDDLE/HIGH: 266
    """

    def __init__(self) -> None:
        self._first = True
        self._wrap_count = 0
        self._range = _Range.LOW

    @property
    def wrap_count(self) -> int:
        """Number of forward wraps counted so far."""
        return self._wrap_count

    def resolve(self, wire_frame_id: int) -> int:
        """
        Map an over-the-wire frame id to its 32-bit value.

        Args:
            wire_frame_id: Frame id as carried on the wire (0..255)

        Returns:
            32-bit frame id

        Raises:
            ValueError: If wire_frame_id is outside 0..255
        """
        if not 0 <= wire_frame_id <= 0xFF:
            raise ValueError(f"wire frame id must be in 0..255, got {wire_frame_id}")

        if self._first:
            self._first = False
            if wire_frame_id == 0xFF:
                return START_FRAME_ID

        wrap_count = self._wrap_count
        if self._range is _Range.LOW:
            if LOW_RANGE_THRESHOLD < wire_frame_id < HIGH_RANGE_THRESHOLD:
                self._range = _Range.MIDDLE
            if wire_frame_id >= HIGH_RANGE_THRESHOLD:
                # Straggler from before the last counted wrap
                wrap_count -= 1
        elif self._range is _Range.MIDDLE:
            if wire_frame_id >= HIGH_RANGE_THRESHOLD:
                self._range = _Range.HIGH
        else:
            if wire_frame_id <= LOW_RANGE_THRESHOLD:
                self._range = _Range.LOW
                self._wrap_count += 1
                wrap_count += 1

        return ((wrap_count << 8) + wire_frame_id) & 0xFFFFFFFF

    def reset(self) -> None:
        self._first = True
        self._wrap_count = 0
        self._range = _Range.LOW
