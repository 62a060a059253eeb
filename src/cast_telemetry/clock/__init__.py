"""
Clock Module
============

Sender/receiver clock offset providers.
"""

from cast_telemetry.clock.offset import (
    ClockOffsetProvider,
    OffsetBounds,
    StaticOffsetProvider,
    offset_midpoint,
)

__all__ = [
    "ClockOffsetProvider",
    "OffsetBounds",
    "StaticOffsetProvider",
    "offset_midpoint",
]
