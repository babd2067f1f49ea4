"""
Interval fuzzing

Spreads co-scheduled items apart by drawing the final interval from a window
around the target. Relative spread shrinks as intervals grow. Seeded draws
are reproducible; the window never leaves the configured clamp bounds.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
import random

# Intervals shorter than this are never fuzzed (days)
FUZZ_MIN_INTERVAL = 2.5

# (start, end, factor): the window half-width accumulates factor * days
# spent in each range
FUZZ_RANGES: Tuple[Tuple[float, float, float], ...] = (
    (2.5, 7.0, 0.15),
    (7.0, 20.0, 0.10),
    (20.0, float("inf"), 0.05),
)


@dataclass(frozen=True)
class FuzzWindow:
    low: int
    high: int


def fuzz_delta(interval: float) -> float:
    """Half-width of the fuzz window for an interval"""
    if interval < FUZZ_MIN_INTERVAL:
        return 0.0
    delta = 1.0
    for start, end, factor in FUZZ_RANGES:
        delta += factor * max(min(interval, end) - start, 0.0)
    return delta


def fuzz_window(interval: int, minimum_interval: int, maximum_interval: int) -> FuzzWindow:
    """Integer window of candidate intervals, intersected with the clamp bounds"""
    delta = fuzz_delta(interval)
    low = max(minimum_interval, int(round(interval - delta)))
    high = min(maximum_interval, int(round(interval + delta)))
    low = min(low, high)
    return FuzzWindow(low=low, high=high)


def fuzz_rng(
    seed: Optional[int],
    item_id: str,
    reps: int,
    reviewed_at: datetime,
) -> random.Random:
    """
    RNG for one grading.

    With a seed the stream depends only on (seed, item, review count, review
    time), so identical inputs always fuzz identically. Without one it is
    seeded from the OS.
    """
    if seed is None:
        return random.Random()
    return random.Random(f"{seed}:{item_id}:{reps}:{reviewed_at.isoformat()}")


def apply_fuzz(
    interval: int,
    minimum_interval: int,
    maximum_interval: int,
    rng: random.Random,
) -> int:
    """Draw the fuzzed interval uniformly from the window"""
    if interval < FUZZ_MIN_INTERVAL:
        return interval
    window = fuzz_window(interval, minimum_interval, maximum_interval)
    return rng.randint(window.low, window.high)
