from __future__ import annotations

import math


def wrap_s(s: float, max_s: float) -> float:
    """Wrap a longitudinal position into [0, max_s)."""
    if max_s <= 0.0:
        raise ValueError(f"max_s must be positive, got {max_s}")
    wrapped = float(s) % max_s
    # A tiny negative s can round up to exactly max_s
    if wrapped >= max_s:
        wrapped = 0.0
    return wrapped


def circular_distance(s_a: float, s_b: float, max_s: float) -> float:
    """
    Signed shortest distance s_a - s_b on a loop of length max_s.

    The result lies in [-max_s / 2, max_s / 2), so a point just past the
    start line is ahead of a point just before it.
    """
    if max_s <= 0.0:
        raise ValueError(f"max_s must be positive, got {max_s}")
    diff = (float(s_a) - float(s_b)) % max_s
    if diff >= 0.5 * max_s:
        diff -= max_s
    return diff


def lane_index(d: float, lane_width: float) -> int:
    """Lane number containing lateral offset d (lane 0 is leftmost)."""
    return int(math.floor(float(d) / lane_width))
