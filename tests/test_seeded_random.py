"""Tests for the shared seeded random source."""

import math

import pytest

from seeded_random import SeededRandom


class TestSequence:
    """Reproducibility of the draw stream."""

    def test_same_seed_same_stream(self):
        """Two sources with one seed yield identical sequences."""
        a, b = SeededRandom(1111111111), SeededRandom(1111111111)
        assert [a.next() for _ in range(50)] == [b.next() for _ in range(50)]

    def test_different_seeds_differ(self):
        a, b = SeededRandom(1), SeededRandom(2)
        assert [a.next() for _ in range(10)] != [b.next() for _ in range(10)]

    def test_negative_seed_accepted(self):
        """Seeds are reduced to 64 bits, so negatives map to a valid seed."""
        rng = SeededRandom(-1)
        assert rng.seed == (1 << 64) - 1
        assert 0.0 <= rng.next() < 1.0

    def test_draw_counter(self):
        rng = SeededRandom(5)
        rng.next()
        rng.range(0, 10)
        rng.point_in_disk(3.0)
        assert rng.draws == 4


class TestRanges:
    """Range helpers stay within their bounds."""

    def test_next_unit_interval(self):
        rng = SeededRandom(9)
        values = [rng.next() for _ in range(1000)]
        assert min(values) >= 0.0
        assert max(values) < 1.0

    def test_range_bounds(self):
        rng = SeededRandom(9)
        for _ in range(500):
            assert -3.0 <= rng.range(-3.0, 7.0) < 7.0

    def test_int_range_inclusive(self):
        """Both endpoints of int_range are reachable."""
        rng = SeededRandom(11)
        values = {rng.int_range(1, 4) for _ in range(500)}
        assert values == {1, 2, 3, 4}

    def test_int_range_reversed_bounds(self):
        with pytest.raises(ValueError):
            SeededRandom(1).int_range(5, 2)

    def test_boolean_extremes(self):
        rng = SeededRandom(3)
        assert not any(rng.boolean(0.0) for _ in range(100))
        assert all(rng.boolean(1.0) for _ in range(100))

    def test_point_in_disk(self):
        rng = SeededRandom(21)
        for _ in range(500):
            x, y = rng.point_in_disk(50.0)
            assert math.hypot(x, y) <= 50.0

    def test_point_in_disk_uniform_area(self):
        """Roughly a quarter of uniform-area points fall inside half the radius."""
        rng = SeededRandom(8)
        points = [rng.point_in_disk(1.0) for _ in range(4000)]
        inner = sum(1 for x, y in points if math.hypot(x, y) < 0.5)
        assert 0.21 < inner / len(points) < 0.29


class TestWeightedChoice:
    """Roulette-wheel selection."""

    def test_frequencies_follow_weights(self):
        rng = SeededRandom(77)
        options = [("a", 0.4), ("b", 0.1), ("c", 0.5)]
        picks = [rng.weighted_choice(options) for _ in range(10000)]
        assert abs(picks.count("a") / 10000 - 0.4) < 0.03
        assert abs(picks.count("b") / 10000 - 0.1) < 0.02

    def test_one_draw_per_choice(self):
        rng = SeededRandom(77)
        rng.weighted_choice([("a", 1.0)])
        assert rng.draws == 1

    def test_fallback_to_first(self):
        """Draws beyond the cumulative weight return the first item."""
        rng = SeededRandom(4)
        assert rng.weighted_choice([("only", 0.0)]) == "only"

    def test_empty_options(self):
        with pytest.raises(ValueError):
            SeededRandom(1).weighted_choice([])
