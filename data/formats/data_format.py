"""
Data format definitions for the path planner.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


class BehaviorCommand(Enum):
    """Discrete command issued by the behavior layer every tick."""
    GO_STRAIGHT = "go_straight"
    CHANGE_LANE_LEFT = "change_lane_left"
    CHANGE_LANE_RIGHT = "change_lane_right"
    COMPLETE_LANE_CHANGE = "complete_lane_change"


@dataclass
class RoadState:
    """Kinematic state in road-relative (Frenet) coordinates."""
    s: float = 0.0  # longitudinal position along centerline (m), wraps at track length
    s_dot: float = 0.0  # m/s
    s_ddot: float = 0.0  # m/s^2
    d: float = 0.0  # lateral offset from track left edge (m)
    d_dot: float = 0.0
    d_ddot: float = 0.0


@dataclass
class TrafficObservation:
    """One nearby vehicle reported by sensor fusion."""
    id: int
    x: float
    y: float
    vx: float  # m/s
    vy: float  # m/s
    s: float
    d: float

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)


@dataclass
class EgoVehicleState:
    """Ego vehicle localization."""
    x: float
    y: float
    yaw: float  # radians
    speed: float  # m/s
    s: float
    d: float

    def road_state(self) -> RoadState:
        """Road-relative state with no known motion derivatives."""
        return RoadState(s=self.s, d=self.d)


@dataclass
class TrajectoryOutput:
    """Planner output for one tick, as recorded."""
    timestamp: float
    command: BehaviorCommand
    x: np.ndarray  # [N] world x of every emitted point
    y: np.ndarray  # [N] world y of every emitted point
    n_reused_points: int
    start_state: Optional[RoadState] = None  # state the new segment continues from
    target_state: Optional[RoadState] = None
    planning_time_s: float = 0.0
