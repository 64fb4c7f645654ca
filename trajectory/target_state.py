"""
Resolve a behavior command into the road state the next segment should reach.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol, Sequence, Tuple

from data.formats.data_format import BehaviorCommand, RoadState, TrafficObservation
from trajectory.planner_state import PlannerState

logger = logging.getLogger(__name__)


class LaneGeometry(Protocol):
    def lane_index(self, d: float) -> int: ...

    def circular_distance(self, s_a: float, s_b: float) -> float: ...


class LaneIndexError(ValueError):
    """Lane index outside the configured speed limit table."""


class TargetStateResolver:
    """
    Turns a behavior command into a target lateral offset and speed.

    Only `d` and `s_dot` of the returned state are meaningful. Lateral
    velocity and acceleration targets are always zero.
    """

    def __init__(self, lane_width: float, lane_speed_limits: Sequence[float],
                 tracking_min_gap: float, tracking_max_gap: float,
                 lead_speed_margin: float = 0.9):
        """
        Args:
            lane_width: Lane width (meters)
            lane_speed_limits: Speed limit per lane index, left to right (m/s)
            tracking_min_gap: Below this gap the lead vehicle speed is scaled
                by `lead_speed_margin` (meters)
            tracking_max_gap: Vehicles farther ahead are ignored (meters)
            lead_speed_margin: Fraction of lead speed used when too close
        """
        if not lane_speed_limits:
            raise ValueError("lane_speed_limits must contain at least one lane")
        self.lane_width = float(lane_width)
        self.lane_speed_limits = tuple(float(v) for v in lane_speed_limits)
        self.tracking_min_gap = float(tracking_min_gap)
        self.tracking_max_gap = float(tracking_max_gap)
        self.lead_speed_margin = float(lead_speed_margin)

    @property
    def n_lanes(self) -> int:
        return len(self.lane_speed_limits)

    def lane_center(self, lane: int) -> float:
        return (lane + 0.5) * self.lane_width

    def speed_limit(self, lane: int) -> float:
        if lane < 0 or lane >= self.n_lanes:
            raise LaneIndexError(
                f"Lane index {lane} outside speed limit table of {self.n_lanes} lanes"
            )
        return self.lane_speed_limits[lane]

    def resolve(self, command: BehaviorCommand, start: RoadState,
                traffic: Iterable[TrafficObservation], road_map: LaneGeometry,
                state: PlannerState) -> RoadState:
        """
        Compute the target state for this tick.

        Args:
            command: Behavior command for this tick
            start: State the new segment continues from
            traffic: Sensor fusion snapshot
            road_map: Lane lookup and wrap-aware distance
            state: Planner state; the pending lane change target is updated here

        Returns:
            RoadState with target d and s_dot set
        """
        lane = road_map.lane_index(start.d)
        target = RoadState(s_dot=float("inf"), d_dot=0.0, d_ddot=0.0)

        if command is BehaviorCommand.GO_STRAIGHT:
            target.d = self.lane_center(lane)
            lead = self.find_lead_vehicle(start, lane, traffic, road_map)
            if lead is not None:
                target.s_dot = self.tracking_speed(*lead)
        elif command is BehaviorCommand.CHANGE_LANE_LEFT:
            target.d = max(self.lane_center(0), self.lane_center(lane - 1))
            state.pending_lane_change_d = target.d
            logger.info("Lane change left: lane %d -> d=%.2f", lane, target.d)
        elif command is BehaviorCommand.CHANGE_LANE_RIGHT:
            target.d = min(self.lane_center(self.n_lanes - 1), self.lane_center(lane + 1))
            state.pending_lane_change_d = target.d
            logger.info("Lane change right: lane %d -> d=%.2f", lane, target.d)
        elif command is BehaviorCommand.COMPLETE_LANE_CHANGE:
            if state.pending_lane_change_d is None:
                logger.warning(
                    "Complete lane change requested without a pending target; holding lane %d", lane
                )
                target.d = self.lane_center(lane)
            else:
                target.d = state.pending_lane_change_d
        else:
            raise ValueError(f"Unknown behavior command: {command!r}")

        target_lane = road_map.lane_index(target.d)
        target.s_dot = min(target.s_dot, self.speed_limit(target_lane))
        return target

    def find_lead_vehicle(self, start: RoadState, lane: int,
                          traffic: Iterable[TrafficObservation],
                          road_map: LaneGeometry) -> Optional[Tuple[float, float]]:
        """Closest same-lane vehicle ahead within the tracking window, as (gap, speed)."""
        best: Optional[Tuple[float, float]] = None
        for vehicle in traffic:
            if road_map.lane_index(vehicle.d) != lane:
                continue
            gap = road_map.circular_distance(vehicle.s, start.s)
            if 0.0 < gap < self.tracking_max_gap and (best is None or gap < best[0]):
                best = (gap, vehicle.speed)
                logger.debug("Tracking vehicle %s: gap=%.1f m speed=%.1f m/s",
                             vehicle.id, gap, vehicle.speed)
        return best

    def tracking_speed(self, gap: float, lead_speed: float) -> float:
        if gap < self.tracking_min_gap:
            return self.lead_speed_margin * lead_speed
        return lead_speed
