"""
Unit tests for interval fuzzing
"""

import random
from datetime import datetime, timezone

import pytest

from revise.fsrs.fuzz import apply_fuzz, fuzz_delta, fuzz_rng, fuzz_window


class TestFuzzWindow:

    def test_short_intervals_not_fuzzed(self):
        assert fuzz_delta(2) == 0.0
        rng = random.Random(0)
        assert all(apply_fuzz(2, 1, 100, rng) == 2 for _ in range(50))

    def test_delta_grows_slower_than_interval(self):
        assert fuzz_delta(3) == pytest.approx(1.075)
        assert fuzz_delta(10) == pytest.approx(1 + 0.15 * 4.5 + 0.1 * 3)
        assert fuzz_delta(100) / 100 < fuzz_delta(10) / 10

    def test_window_intersected_with_bounds(self):
        window = fuzz_window(30, 1, 31)
        assert window.high == 31
        assert window.low < 30

        narrow = fuzz_window(10, 10, 10)
        assert (narrow.low, narrow.high) == (10, 10)

    @pytest.mark.parametrize("interval", [3, 8, 25, 400])
    def test_fuzzed_within_window(self, interval):
        rng = random.Random(interval)
        window = fuzz_window(interval, 1, 36500)
        for _ in range(100):
            assert window.low <= apply_fuzz(interval, 1, 36500, rng) <= window.high


class TestFuzzRng:

    def test_seeded_stream_is_reproducible(self):
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        a = fuzz_rng(9, "item", 3, when)
        b = fuzz_rng(9, "item", 3, when)
        assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]

    def test_stream_depends_on_item(self):
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        a = fuzz_rng(9, "item-a", 3, when)
        b = fuzz_rng(9, "item-b", 3, when)
        assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]
