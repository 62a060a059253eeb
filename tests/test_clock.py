"""
Clock Offset Tests
==================
"""

import pytest

from cast_telemetry.clock import StaticOffsetProvider, offset_midpoint


class TestStaticOffsetProvider:
    """Tests for StaticOffsetProvider."""

    def test_unavailable_by_default(self):
        assert StaticOffsetProvider().get_offset_bounds() is None

    def test_bounds_and_midpoint(self):
        provider = StaticOffsetProvider((0.010, 0.030))
        bounds = provider.get_offset_bounds()
        assert bounds == (0.010, 0.030)
        assert offset_midpoint(bounds) == pytest.approx(0.020)

    def test_set_and_clear(self):
        provider = StaticOffsetProvider()
        provider.set_bounds(-0.5, -0.25)
        assert offset_midpoint(provider.get_offset_bounds()) == pytest.approx(-0.375)

        provider.clear()
        assert provider.get_offset_bounds() is None

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ValueError):
            StaticOffsetProvider((0.030, 0.010))
