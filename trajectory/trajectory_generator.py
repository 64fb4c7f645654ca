"""
Trajectory generator.
Continues the previously emitted path with a jerk-minimizing segment that
reaches the state requested by the behavior layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from data.formats.data_format import (
    BehaviorCommand, EgoVehicleState, RoadState, TrafficObservation
)
from trajectory.jmt import solve_jerk_minimizing, solve_velocity_keeping
from trajectory.kinematics import KinematicEstimator
from trajectory.planner_state import PlannerState
from trajectory.target_state import TargetStateResolver
from trajectory.utils import wrap_s

logger = logging.getLogger(__name__)


class RoadMapLike(Protocol):
    def lane_index(self, d: float) -> int: ...

    def frenet_to_world(self, s: float, d: float) -> Tuple[float, float]: ...

    def circular_distance(self, s_a: float, s_b: float) -> float: ...


@dataclass
class TrajectoryGeneratorConfig:
    """Configuration for the trajectory generator."""

    n_trajectory_points: int = 50  # points emitted every tick
    n_previous_path_points: int = 10  # pending points re-emitted unchanged
    simulation_time_step: float = 0.02  # s between consecutive points
    lane_width: float = 4.0  # m
    max_acceleration: float = 5.0  # m/s^2
    target_tracking_min_gap: float = 15.0  # m
    target_tracking_max_gap: float = 30.0  # m
    lead_vehicle_speed_margin: float = 0.9
    lane_speed_limits: List[float] = field(default_factory=lambda: [21.5, 21.5, 21.5])  # m/s
    max_s: float = 6945.554  # m, track length

    def __post_init__(self):
        if self.n_trajectory_points <= 0:
            raise ValueError(f"n_trajectory_points must be positive, got {self.n_trajectory_points}")
        if not 0 <= self.n_previous_path_points < self.n_trajectory_points:
            raise ValueError(
                "n_previous_path_points must be in [0, n_trajectory_points), got "
                f"{self.n_previous_path_points} with n_trajectory_points={self.n_trajectory_points}"
            )
        if self.simulation_time_step <= 0.0:
            raise ValueError(f"simulation_time_step must be positive, got {self.simulation_time_step}")
        if self.lane_width <= 0.0:
            raise ValueError(f"lane_width must be positive, got {self.lane_width}")
        if not self.lane_speed_limits:
            raise ValueError("lane_speed_limits must list one speed limit per lane")
        if self.max_s <= 0.0:
            raise ValueError(f"max_s must be positive, got {self.max_s}")

    @property
    def n_lanes(self) -> int:
        return len(self.lane_speed_limits)


class TrajectoryGenerator:
    """
    Generates the fixed-length path sent to the vehicle every tick.

    Keeps the (s, d) of every point it emitted so the next segment starts
    where the still-pending part of the old one ends.
    """

    def __init__(self, config: TrajectoryGeneratorConfig,
                 state: Optional[PlannerState] = None) -> None:
        self.config = config
        self.state = state if state is not None else PlannerState()
        self.resolver = TargetStateResolver(
            lane_width=config.lane_width,
            lane_speed_limits=config.lane_speed_limits,
            tracking_min_gap=config.target_tracking_min_gap,
            tracking_max_gap=config.target_tracking_max_gap,
            lead_speed_margin=config.lead_vehicle_speed_margin,
        )

        # Diagnostics of the last call
        self.last_start_state: Optional[RoadState] = None
        self.last_target_state: Optional[RoadState] = None
        self.last_n_reused_points: int = 0

    def reset(self) -> None:
        """Forget the emitted path and any pending lane change."""
        self.state.reset()
        self.last_start_state = None
        self.last_target_state = None
        self.last_n_reused_points = 0

    def generate_trajectory(
        self,
        command: BehaviorCommand,
        ego: EgoVehicleState,
        traffic: Iterable[TrafficObservation],
        road_map: RoadMapLike,
        previous_x: Sequence[float],
        previous_y: Sequence[float],
    ) -> Tuple[List[float], List[float]]:
        """Plan one tick.

        Args:
            command: Behavior command for this tick.
            ego: Ego localization.
            traffic: Sensor fusion snapshot.
            road_map: Lane lookup, Frenet to world conversion and wrap-aware distance.
            previous_x: World x of the previous output still pending.
            previous_y: World y of the previous output still pending.

        Returns:
            (out_x, out_y), each with n_trajectory_points values.
        """
        if len(previous_x) != len(previous_y):
            raise ValueError(
                f"previous_x and previous_y differ in length: {len(previous_x)} != {len(previous_y)}"
            )
        cfg = self.config
        history = self.state.history
        n_pending = len(previous_x)

        # Drop what the follower consumed since the last tick
        n_consumed = max(0, cfg.n_trajectory_points - n_pending)
        history.trim(n_consumed)

        n_keep = min(n_pending, cfg.n_previous_path_points)
        if len(history) < n_keep:
            logger.warning(
                "History holds %d point(s) but %d pending point(s) should be reused; "
                "reusing %d",
                len(history), n_keep, len(history),
            )
            n_keep = len(history)
        history.retain(n_keep)

        out_x = [float(v) for v in previous_x[:n_keep]]
        out_y = [float(v) for v in previous_y[:n_keep]]

        if n_pending < 2 or len(history) == 0:
            start = ego.road_state()
        else:
            estimator = KinematicEstimator(road_map.circular_distance, cfg.simulation_time_step)
            start = estimator.estimate_state(history)

        target = self.resolver.resolve(command, start, traffic, road_map, self.state)

        n_new = cfg.n_trajectory_points - n_keep
        self._append_segment(start, target, road_map, n_new, out_x, out_y)

        self.last_start_state = start
        self.last_target_state = target
        self.last_n_reused_points = n_keep
        return out_x, out_y

    def _append_segment(self, start: RoadState, target: RoadState, road_map: RoadMapLike,
                        n_new: int, out_x: List[float], out_y: List[float]) -> None:
        """Solve both profiles and sample n_new points after the reused ones."""
        if n_new <= 0:
            raise ValueError(f"Number of new points must be positive, got {n_new}")
        cfg = self.config
        history = self.state.history
        dt = cfg.simulation_time_step

        if len(history) == 0:
            s0, d0 = start.s, start.d
        else:
            s0, d0 = history.back()

        duration = n_new * dt

        # Longitudinal: reach a speed, position left free
        v_max = start.s_dot + cfg.max_acceleration * duration
        v_target = min(v_max, target.s_dot)
        s_profile = solve_velocity_keeping(s0, start.s_dot, v_target, duration)

        # Lateral: settle on the target offset
        d_profile = solve_jerk_minimizing(
            (d0, start.d_dot, start.d_ddot),
            (target.d, target.d_dot, target.d_ddot),
            duration,
        )

        for i in range(n_new):
            t = (i + 1) * dt
            s = wrap_s(s_profile(t), cfg.max_s)
            d = d_profile(t)

            history.append(s, d)

            x, y = road_map.frenet_to_world(s, d)
            out_x.append(float(x))
            out_y.append(float(y))

        logger.debug(
            "Segment: %d new points over %.2fs, s_dot %.2f -> %.2f, d %.2f -> %.2f",
            n_new, duration, start.s_dot, v_target, d0, target.d,
        )


def build_trajectory_generator(trajectory_cfg: dict, max_s: float) -> TrajectoryGenerator:
    """Build a TrajectoryGenerator from the `trajectory` config section."""
    defaults = TrajectoryGeneratorConfig()
    n_lanes = int(trajectory_cfg.get("n_lanes", defaults.n_lanes))
    speed_limits = trajectory_cfg.get("lane_speed_limits")
    if speed_limits is None:
        speed_limits = [float(trajectory_cfg.get("speed_limit", defaults.lane_speed_limits[0]))] * n_lanes
    if len(speed_limits) != n_lanes:
        raise ValueError(
            f"lane_speed_limits has {len(speed_limits)} entries but n_lanes is {n_lanes}"
        )

    config = TrajectoryGeneratorConfig(
        n_trajectory_points=int(trajectory_cfg.get("n_trajectory_points", defaults.n_trajectory_points)),
        n_previous_path_points=int(
            trajectory_cfg.get("n_previous_path_points", defaults.n_previous_path_points)
        ),
        simulation_time_step=float(
            trajectory_cfg.get("simulation_time_step", defaults.simulation_time_step)
        ),
        lane_width=float(trajectory_cfg.get("lane_width", defaults.lane_width)),
        max_acceleration=float(trajectory_cfg.get("max_acceleration", defaults.max_acceleration)),
        target_tracking_min_gap=float(
            trajectory_cfg.get("target_tracking_min_gap", defaults.target_tracking_min_gap)
        ),
        target_tracking_max_gap=float(
            trajectory_cfg.get("target_tracking_max_gap", defaults.target_tracking_max_gap)
        ),
        lead_vehicle_speed_margin=float(
            trajectory_cfg.get("lead_vehicle_speed_margin", defaults.lead_vehicle_speed_margin)
        ),
        lane_speed_limits=[float(v) for v in speed_limits],
        max_s=float(max_s),
    )
    return TrajectoryGenerator(config)
