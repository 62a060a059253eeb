"""
Clock Offset Providers
======================

Sender and receiver timestamps come from two unsynchronised monotonic
clocks. A clock offset provider reports a confidence interval for

    offset = receiver_clock - sender_clock

in seconds, or None while it has not gathered enough cross-clock samples.
Callers must treat None as "unavailable", never as zero.

A receiver timestamp t is converted to sender-clock terms as t - offset,
using the midpoint of the interval as the point estimate.
"""

import logging
from typing import Optional, Protocol, Tuple


logger = logging.getLogger(__name__)


OffsetBounds = Tuple[float, float]


class ClockOffsetProvider(Protocol):
    """Source of receiver/sender clock offset bounds."""

    def get_offset_bounds(self) -> Optional[OffsetBounds]:
        ...


def offset_midpoint(bounds: OffsetBounds) -> float:
    """Point estimate of the offset from its bounds."""
    lower, upper = bounds
    return (lower + upper) / 2


class StaticOffsetProvider:
    """
    Offset provider holding explicitly configured bounds.

    Bounds can be replaced at runtime, e.g. when an external estimator
    publishes a new interval.

    Example:
        provider = StaticOffsetProvider((0.040, 0.060))
        provider.get_offset_bounds()  # (0.04, 0.06)
        provider.clear()
        provider.get_offset_bounds()  # None
    """

    def __init__(self, bounds: Optional[OffsetBounds] = None) -> None:
        self._bounds: Optional[OffsetBounds] = None
        if bounds is not None:
            self.set_bounds(*bounds)

    def set_bounds(self, lower: float, upper: float) -> None:
        """
        Replace the current interval.

        Raises:
            ValueError: If lower > upper
        """
        if lower > upper:
            raise ValueError(f"offset lower bound {lower} exceeds upper bound {upper}")
        self._bounds = (float(lower), float(upper))
        logger.info(f"Clock offset bounds set: [{lower * 1000:.1f}, {upper * 1000:.1f}] ms")

    def clear(self) -> None:
        """Drop the interval; the offset becomes unavailable."""
        self._bounds = None
        logger.info("Clock offset bounds cleared")

    def get_offset_bounds(self) -> Optional[OffsetBounds]:
        return self._bounds
