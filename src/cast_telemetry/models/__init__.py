"""
Data Models
===========

Event and statistics models for CastTelemetry.

This module re-exports all data models for convenient access.

Models:
    Events:
        - MediaType: audio / video / unknown
        - CastLoggingEvent: Frame and packet lifecycle event kinds
        - FrameEvent, PacketEvent: Immutable decoded events

    Stats:
        - CastStat: Statistic identifiers
        - HistogramBucket: One labelled histogram bucket
        - StatsExport: Snapshot of one engine

    Input:
        - EventMessage: Wire schema for one event
        - EventBatch: HTTP ingest body
        - OffsetUpdate: Clock offset update body
"""

from cast_telemetry.models.events import (
    CastLoggingEvent,
    FrameEvent,
    MediaType,
    PacketEvent,
    event_label,
    is_receiver_event,
)
from cast_telemetry.models.stats import CastStat, HistogramBucket, StatsExport, stat_label
from cast_telemetry.models.input import EventBatch, EventMessage, OffsetUpdate

__all__ = [
    # Events
    "MediaType",
    "CastLoggingEvent",
    "FrameEvent",
    "PacketEvent",
    "event_label",
    "is_receiver_event",
    # Stats
    "CastStat",
    "HistogramBucket",
    "StatsExport",
    "stat_label",
    # Input
    "EventMessage",
    "EventBatch",
    "OffsetUpdate",
]
