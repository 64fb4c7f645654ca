"""
Road geometry: conversions between Frenet (s, d) and world (x, y) coordinates
on a closed track.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from scipy.interpolate import CubicSpline

from trajectory.utils import circular_distance, lane_index, wrap_s

logger = logging.getLogger(__name__)


class RoadMap:
    """
    Closed-loop track built from centerline waypoints.

    The centerline is the left edge of the road. d grows to the right of the
    driving direction, so lane i spans [i * lane_width, (i + 1) * lane_width).
    """

    def __init__(self, waypoints_x: np.ndarray, waypoints_y: np.ndarray,
                 waypoints_s: np.ndarray, max_s: float, lane_width: float = 4.0,
                 projection_step: float = 0.5):
        """
        Initialize road map.

        Args:
            waypoints_x: Centerline x of each waypoint (meters)
            waypoints_y: Centerline y of each waypoint (meters)
            waypoints_s: Arc length of each waypoint, strictly increasing, < max_s
            max_s: Track length where s wraps back to zero (meters)
            lane_width: Lane width (meters)
            projection_step: Sample spacing used by world_to_frenet (meters)
        """
        x = np.asarray(waypoints_x, dtype=float)
        y = np.asarray(waypoints_y, dtype=float)
        s = np.asarray(waypoints_s, dtype=float)
        if not (len(x) == len(y) == len(s)):
            raise ValueError("Waypoint arrays must have equal length")
        if len(s) < 3:
            raise ValueError(f"Need at least 3 waypoints, got {len(s)}")
        if np.any(np.diff(s) <= 0.0):
            raise ValueError("Waypoint s values must be strictly increasing")
        if max_s <= s[-1]:
            raise ValueError(f"max_s ({max_s}) must exceed the last waypoint s ({s[-1]})")
        if lane_width <= 0.0:
            raise ValueError(f"lane_width must be positive, got {lane_width}")

        self.max_s = float(max_s)
        self.lane_width = float(lane_width)

        # Close the loop so the spline is periodic in s
        s_closed = np.append(s, self.max_s)
        self._x_spline = CubicSpline(s_closed, np.append(x, x[0]), bc_type="periodic")
        self._y_spline = CubicSpline(s_closed, np.append(y, y[0]), bc_type="periodic")

        # Dense samples for nearest-point search
        self._grid_s = np.arange(0.0, self.max_s, max(0.05, float(projection_step)))
        self._grid_x = self._x_spline(self._grid_s)
        self._grid_y = self._y_spline(self._grid_s)

    @classmethod
    def from_csv(cls, path: Union[str, Path], max_s: float, lane_width: float = 4.0) -> "RoadMap":
        """
        Load waypoints from a whitespace-separated file with columns x y s dx dy.

        The normal columns are ignored; normals are taken from the spline.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Map waypoints file not found: {path}")
        data = np.loadtxt(path, ndmin=2)
        if data.shape[1] < 3:
            raise ValueError(f"Expected at least 3 columns (x y s) in {path}, got {data.shape[1]}")
        logger.info("Loaded %d map waypoints from %s", data.shape[0], path)
        return cls(data[:, 0], data[:, 1], data[:, 2], max_s=max_s, lane_width=lane_width)

    @classmethod
    def ring(cls, radius: float, n_waypoints: int = 180, lane_width: float = 4.0,
             center: Tuple[float, float] = (0.0, 0.0)) -> "RoadMap":
        """Circular track driven counter-clockwise; d grows outward."""
        if radius <= 0.0:
            raise ValueError(f"radius must be positive, got {radius}")
        theta = np.linspace(0.0, 2.0 * np.pi, int(n_waypoints), endpoint=False)
        x = center[0] + radius * np.cos(theta)
        y = center[1] + radius * np.sin(theta)
        return cls(x, y, radius * theta, max_s=2.0 * np.pi * radius, lane_width=lane_width)

    def wrap_s(self, s: float) -> float:
        """Map s into [0, max_s)."""
        return wrap_s(s, self.max_s)

    def circular_distance(self, s_a: float, s_b: float) -> float:
        """Signed shortest distance s_a - s_b along the loop."""
        return circular_distance(s_a, s_b, self.max_s)

    def lane_index(self, d: float) -> int:
        return lane_index(d, self.lane_width)

    def lane_center(self, lane: int) -> float:
        return (lane + 0.5) * self.lane_width

    def _frame(self, s: float) -> Tuple[float, float, float, float]:
        """Centerline point and unit right-hand normal at s."""
        s = self.wrap_s(s)
        cx = float(self._x_spline(s))
        cy = float(self._y_spline(s))
        tx = float(self._x_spline(s, 1))
        ty = float(self._y_spline(s, 1))
        norm = math.hypot(tx, ty)
        if norm < 1e-9:
            raise ValueError(f"Degenerate centerline tangent at s={s:.3f}")
        return cx, cy, ty / norm, -tx / norm

    def frenet_to_world(self, s: float, d: float) -> Tuple[float, float]:
        cx, cy, nx, ny = self._frame(s)
        return cx + d * nx, cy + d * ny

    def heading(self, s: float) -> float:
        """Centerline heading at s (radians)."""
        s = self.wrap_s(s)
        return math.atan2(float(self._y_spline(s, 1)), float(self._x_spline(s, 1)))

    def world_to_frenet(self, x: float, y: float, iterations: int = 3) -> Tuple[float, float]:
        """
        Project a world point onto the centerline.

        Starts from the nearest dense sample and refines along the local
        tangent.
        """
        dist_sq = (self._grid_x - x) ** 2 + (self._grid_y - y) ** 2
        s = float(self._grid_s[int(np.argmin(dist_sq))])
        d = 0.0
        for _ in range(max(1, iterations)):
            cx, cy, nx, ny = self._frame(s)
            # Tangent is the normal rotated back by +90 degrees
            tx, ty = -ny, nx
            dx, dy = x - cx, y - cy
            s = self.wrap_s(s + dx * tx + dy * ty)
            d = dx * nx + dy * ny
        return s, d


def build_road_map(road_cfg: dict, lane_width: float, base_dir: Optional[Path] = None) -> RoadMap:
    """
    Build a RoadMap from the `road` config section.

    Uses `waypoints_file` when given, otherwise a synthetic ring of
    `ring_radius` meters.
    """
    waypoints_file = road_cfg.get("waypoints_file")
    if waypoints_file:
        path = Path(waypoints_file)
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        return RoadMap.from_csv(
            path,
            max_s=float(road_cfg.get("max_s", 6945.554)),
            lane_width=lane_width,
        )
    radius = float(road_cfg.get("ring_radius", 300.0))
    logger.info("No waypoints file configured, using ring road with radius %.1f m", radius)
    return RoadMap.ring(
        radius,
        n_waypoints=int(road_cfg.get("ring_waypoints", 180)),
        lane_width=lane_width,
    )
