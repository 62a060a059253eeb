"""
Simple Histogram
================

Fixed-width frequency counter over a bounded range.

Layout:
    bucket 0            samples < min          (underflow)
    bucket 1..N         [min + (i-1)*width, min + i*width)
    bucket N+1          samples >= max         (overflow)

    where N = (max - min) / width

Samples are truncated toward zero before bucketing, so -0.5 counts as 0.

The shape is fixed at construction; reset() only zeroes the counts.
"""

from typing import List

import numpy as np


class SimpleHistogram:
    """
    Fixed-bucket-width histogram with explicit under/overflow buckets.

    Example:
        histo = SimpleHistogram(0, 800, 20)
        histo.add(15.0)
        histo.export()[1]  # {"bucket": "0 - 19", "count": 1}
    """

    def __init__(self, min_value: int, max_value: int, width: int) -> None:
        """
        Initialize histogram.

        Args:
            min_value: Lower bound of the first interior bucket
            max_value: Lower bound of the overflow bucket
            width: Width of each interior bucket

        Raises:
            ValueError: If width is not positive, the range is empty, or
                the range is not a multiple of width
        """
        if width <= 0:
            raise ValueError(f"width must be > 0, got {width}")
        if max_value <= min_value:
            raise ValueError(
                f"max must be greater than min, got min={min_value}, max={max_value}"
            )
        if (max_value - min_value) % width != 0:
            raise ValueError(
                f"range [{min_value}, {max_value}) is not a multiple of width {width}"
            )

        self._min = min_value
        self._max = max_value
        self._width = width
        self._buckets = np.zeros((max_value - min_value) // width + 2, dtype=np.int64)

    @property
    def min_value(self) -> int:
        return self._min

    @property
    def max_value(self) -> int:
        return self._max

    @property
    def width(self) -> int:
        return self._width

    @property
    def num_buckets(self) -> int:
        """Bucket count, including underflow and overflow."""
        return len(self._buckets)

    @property
    def counts(self) -> List[int]:
        """Bucket counts in ascending value order."""
        return [int(c) for c in self._buckets]

    @property
    def total(self) -> int:
        """Number of samples added since the last reset."""
        return int(self._buckets.sum())

    def add(self, sample: float) -> None:
        """Count one sample, truncated toward zero to a whole number first."""
        sample = int(sample)
        if sample < self._min:
            self._buckets[0] += 1
        elif sample >= self._max:
            self._buckets[-1] += 1
        else:
            index = 1 + (sample - self._min) // self._width
            self._buckets[index] += 1

    def reset(self) -> None:
        """Zero every bucket, keeping the shape."""
        self._buckets.fill(0)

    def export(self) -> List[dict]:
        """
        Export buckets as an ordered list of label/count pairs.

        Returns:
            [{"bucket": "< min", "count": n}, {"bucket": "lower - upper", ...},
             ..., {"bucket": ">= max", "count": n}]
        """
        histo = [{"bucket": f"< {self._min}", "count": int(self._buckets[0])}]

        for i in range(1, len(self._buckets) - 1):
            lower = self._min + (i - 1) * self._width
            upper = lower + self._width - 1
            histo.append({"bucket": f"{lower} - {upper}", "count": int(self._buckets[i])})

        histo.append({"bucket": f">= {self._max}", "count": int(self._buckets[-1])})
        return histo

    def __repr__(self) -> str:
        return (
            f"SimpleHistogram(min={self._min}, max={self._max}, "
            f"width={self._width}, total={self.total})"
        )
