"""
Stats Module
============

The telemetry engine and its building blocks.

This module provides:
    - TelemetryEngine: Frame/packet event subscriber with live statistics
    - SimpleHistogram: Fixed-width histogram with under/overflow buckets
    - BoundedOrderedCache: Ordered map with smallest-key eviction
    - ContextChecker: Owning-context assertion for single-context objects

Example:
    from cast_telemetry.clock import StaticOffsetProvider
    from cast_telemetry.models.events import MediaType
    from cast_telemetry.stats import TelemetryEngine

    engine = TelemetryEngine(MediaType.AUDIO, StaticOffsetProvider())
"""

from cast_telemetry.stats.context import ContextChecker, ContextViolationError
from cast_telemetry.stats.histogram import SimpleHistogram
from cast_telemetry.stats.ordered_cache import BoundedOrderedCache
from cast_telemetry.stats.engine import (
    MAX_FRAME_CACHE,
    MAX_PACKET_CACHE,
    TelemetryEngine,
)


__all__ = [
    "ContextChecker",
    "ContextViolationError",
    "SimpleHistogram",
    "BoundedOrderedCache",
    "TelemetryEngine",
    "MAX_FRAME_CACHE",
    "MAX_PACKET_CACHE",
]
