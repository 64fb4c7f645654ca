"""
Rolling buffer of previously emitted road-relative waypoints.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Tuple


class WaypointHistory:
    """(s, d) points emitted in earlier ticks that the follower has not consumed yet.

    Oldest points are at the front. The s and d sequences are always
    mutated together so they stay the same length.
    """

    def __init__(self) -> None:
        self._s: Deque[float] = deque()
        self._d: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._s)

    @property
    def s_values(self) -> Deque[float]:
        return self._s

    @property
    def d_values(self) -> Deque[float]:
        return self._d

    def trim(self, consumed_count: int) -> int:
        """Drop the oldest `consumed_count` points. Returns how many were dropped."""
        dropped = 0
        for _ in range(max(0, int(consumed_count))):
            if not self._s:
                break
            self._s.popleft()
            self._d.popleft()
            dropped += 1
        return dropped

    def retain(self, count: int) -> None:
        """Keep at most `count` points, the ones nearest the vehicle."""
        count = max(0, int(count))
        while len(self._s) > count:
            self._s.pop()
            self._d.pop()

    def append(self, s: float, d: float) -> None:
        self._s.append(float(s))
        self._d.append(float(d))

    def front(self) -> Tuple[float, float]:
        return self._s[0], self._d[0]

    def back(self) -> Tuple[float, float]:
        return self._s[-1], self._d[-1]

    def clear(self) -> None:
        self._s.clear()
        self._d.clear()
