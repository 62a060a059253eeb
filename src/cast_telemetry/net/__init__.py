"""
Transport Helpers
=================

Receive-path helpers that run before events reach the telemetry engine.
"""

from cast_telemetry.net.frame_id import START_FRAME_ID, FrameIdResolver

__all__ = ["FrameIdResolver", "START_FRAME_ID"]
