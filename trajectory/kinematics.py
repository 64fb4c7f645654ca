"""
Finite-difference velocity and acceleration estimates from the waypoint history.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from data.formats.data_format import RoadState
from trajectory.waypoint_history import WaypointHistory

logger = logging.getLogger(__name__)

DistanceFn = Callable[[float, float], float]


class KinematicEstimator:
    """
    Estimates derivatives of a sampled coordinate.

    Samples are assumed to be `dt` seconds apart. Differences go through
    `distance_fn` so the longitudinal coordinate can wrap at the track length;
    the lateral coordinate never gets near the wrap point, so the same
    function reduces to plain subtraction for it.
    """

    def __init__(self, distance_fn: DistanceFn, dt: float):
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        self.distance_fn = distance_fn
        self.dt = float(dt)

    def estimate_velocity(self, values: Sequence[float], index: int) -> Optional[float]:
        """Backward difference at `index`, or None if there are too few samples."""
        if index < 1 or index >= len(values):
            logger.debug(
                "Cannot estimate velocity: index=%d size=%d", index, len(values)
            )
            return None
        return self.distance_fn(values[index], values[index - 1]) / self.dt

    def estimate_acceleration(self, values: Sequence[float], index: int) -> Optional[float]:
        """Difference of two consecutive velocity estimates, or None."""
        if index < 2 or index >= len(values):
            logger.debug(
                "Cannot estimate acceleration: index=%d size=%d", index, len(values)
            )
            return None
        v1 = self.estimate_velocity(values, index)
        v2 = self.estimate_velocity(values, index - 1)
        return (v1 - v2) / self.dt

    def estimate_state(self, history: WaypointHistory) -> RoadState:
        """
        Road state at the last point of the history.

        Derivatives that cannot be estimated fall back to 0.0.

        Raises:
            ValueError: If the history is empty.
        """
        if len(history) == 0:
            raise ValueError("Cannot estimate state from an empty history")

        s_values = history.s_values
        d_values = history.d_values
        last = len(history) - 1

        estimates = {
            "s_dot": self.estimate_velocity(s_values, last),
            "s_ddot": self.estimate_acceleration(s_values, last),
            "d_dot": self.estimate_velocity(d_values, last),
            "d_ddot": self.estimate_acceleration(d_values, last),
        }
        unknown = [name for name, value in estimates.items() if value is None]
        if unknown:
            logger.warning(
                "History has %d point(s); no estimate for %s, assuming 0.0",
                len(history), ", ".join(unknown),
            )

        def _or_zero(value: Optional[float]) -> float:
            return 0.0 if value is None else float(value)

        return RoadState(
            s=float(s_values[last]),
            s_dot=_or_zero(estimates["s_dot"]),
            s_ddot=_or_zero(estimates["s_ddot"]),
            d=float(d_values[last]),
            d_dot=_or_zero(estimates["d_dot"]),
            d_ddot=_or_zero(estimates["d_ddot"]),
        )
