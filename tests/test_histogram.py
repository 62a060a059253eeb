"""
Histogram Tests
===============

Tests for SimpleHistogram bucketing, labels and reset.
"""

import pytest

from cast_telemetry.stats.histogram import SimpleHistogram


class TestBucketing:
    """Tests for sample placement."""

    def test_default_shape(self):
        """0..800 by 20 gives 40 interior buckets plus under/overflow."""
        histo = SimpleHistogram(0, 800, 20)
        assert histo.num_buckets == 42

    def test_underflow_interior_overflow(self):
        """Verify the edge samples land in the expected buckets."""
        histo = SimpleHistogram(0, 800, 20)

        histo.add(-5)
        histo.add(799)
        histo.add(800)
        histo.add(10000)

        counts = histo.counts
        assert counts[0] == 1
        assert counts[40] == 1  # last interior bucket, 780 - 799
        assert counts[41] == 2
        assert histo.total == 4

    def test_fractional_samples_truncate(self):
        """Verify fractional samples truncate toward zero before bucketing."""
        histo = SimpleHistogram(0, 800, 20)
        histo.add(19.999)
        histo.add(20.0)
        histo.add(-0.5)
        histo.add(-1.0)
        assert histo.counts[:3] == [1, 2, 1]

    def test_nonzero_min(self):
        histo = SimpleHistogram(-100, 100, 50)
        histo.add(-100)
        histo.add(-51)
        histo.add(-50)
        assert histo.counts[:3] == [0, 2, 1]

    def test_reset_keeps_shape(self):
        """Verify reset zeroes counts without changing layout."""
        histo = SimpleHistogram(0, 800, 20)
        for sample in (1, 50, 900):
            histo.add(sample)

        histo.reset()

        assert histo.total == 0
        assert histo.num_buckets == 42


class TestExport:
    """Tests for the exported label/count list."""

    def test_labels(self):
        histo = SimpleHistogram(0, 800, 20)
        exported = histo.export()

        assert exported[0] == {"bucket": "< 0", "count": 0}
        assert exported[1]["bucket"] == "0 - 19"
        assert exported[40]["bucket"] == "780 - 799"
        assert exported[-1] == {"bucket": ">= 800", "count": 0}

    def test_counts_follow_samples(self):
        histo = SimpleHistogram(0, 800, 20)
        histo.add(15)
        histo.add(15)

        exported = histo.export()
        assert exported[1] == {"bucket": "0 - 19", "count": 2}
        assert sum(b["count"] for b in exported) == 2


class TestValidation:
    """Construction-time precondition checks."""

    @pytest.mark.parametrize(
        "min_value,max_value,width",
        [
            (0, 800, 0),
            (0, 800, -20),
            (0, 810, 20),
            (800, 800, 20),
            (800, 0, 20),
        ],
    )
    def test_invalid_shape_rejected(self, min_value, max_value, width):
        with pytest.raises(ValueError):
            SimpleHistogram(min_value, max_value, width)
