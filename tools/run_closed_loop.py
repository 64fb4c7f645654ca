#!/usr/bin/env python3
"""
Closed-loop planner run on a synthetic road.

Feeds the planner back the part of its previous output a simulated follower
has not consumed yet, the way the simulator does, and reports how the ego
vehicle moved.

Usage:
    python tools/run_closed_loop.py --ticks 400
    python tools/run_closed_loop.py --commands go_straight:150,change_lane_left:40,complete_lane_change:200
"""

import argparse
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from data.formats.data_format import BehaviorCommand, EgoVehicleState, TrafficObservation
from path_planner import PathPlanner, build_path_planner, load_config, setup_logging
from road.road_map import RoadMap


@dataclass
class ScriptedVehicle:
    """Traffic vehicle holding constant speed and lane."""
    id: int
    s: float
    d: float
    speed: float

    def advance(self, dt: float, road_map: RoadMap) -> None:
        self.s = road_map.wrap_s(self.s + self.speed * dt)

    def observe(self, road_map: RoadMap) -> TrafficObservation:
        x, y = road_map.frenet_to_world(self.s, self.d)
        heading = road_map.heading(self.s)
        return TrafficObservation(
            id=self.id, x=x, y=y,
            vx=self.speed * math.cos(heading), vy=self.speed * math.sin(heading),
            s=self.s, d=self.d,
        )


def parse_command_schedule(text: str) -> List[BehaviorCommand]:
    """Expand 'go_straight:100,change_lane_left:20' into one command per tick."""
    schedule: List[BehaviorCommand] = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, count = item.partition(":")
        try:
            command = BehaviorCommand(name.strip().lower())
        except ValueError:
            valid = ", ".join(c.value for c in BehaviorCommand)
            raise ValueError(f"Unknown command '{name}' (expected one of: {valid})") from None
        schedule.extend([command] * int(count or 1))
    return schedule


def parse_traffic(text: Optional[str], road_map: RoadMap) -> List[ScriptedVehicle]:
    """Parse 'lane:s:speed;lane:s:speed' into scripted vehicles."""
    vehicles: List[ScriptedVehicle] = []
    if not text:
        return vehicles
    for i, item in enumerate(text.split(";")):
        lane, s, speed = (float(v) for v in item.split(":"))
        vehicles.append(ScriptedVehicle(
            id=i, s=road_map.wrap_s(s), d=road_map.lane_center(int(lane)), speed=speed,
        ))
    return vehicles


def _ego_from_consumed(road_map: RoadMap, consumed_x: Sequence[float], consumed_y: Sequence[float],
                       dt: float, fallback: EgoVehicleState) -> EgoVehicleState:
    """Ego state after the follower drove through the consumed points."""
    if not consumed_x:
        return fallback
    x, y = consumed_x[-1], consumed_y[-1]
    if len(consumed_x) >= 2:
        prev_x, prev_y = consumed_x[-2], consumed_y[-2]
    else:
        prev_x, prev_y = fallback.x, fallback.y
    speed = math.hypot(x - prev_x, y - prev_y) / dt
    yaw = math.atan2(y - prev_y, x - prev_x) if speed > 1e-6 else fallback.yaw
    s, d = road_map.world_to_frenet(x, y)
    return EgoVehicleState(x=x, y=y, yaw=yaw, speed=speed, s=s, d=d)


def run_closed_loop(planner: PathPlanner, schedule: Sequence[BehaviorCommand],
                    points_per_tick: int, start_s: float = 0.0, start_lane: int = 1,
                    traffic: Optional[List[ScriptedVehicle]] = None) -> dict:
    """
    Drive the planner through `schedule`, one command per tick.

    Returns:
        Summary of the run
    """
    road_map = planner.road_map
    cfg = planner.generator.config
    dt = cfg.simulation_time_step
    traffic = traffic or []

    start_d = road_map.lane_center(start_lane)
    x0, y0 = road_map.frenet_to_world(start_s, start_d)
    ego = EgoVehicleState(x=x0, y=y0, yaw=road_map.heading(start_s), speed=0.0,
                          s=road_map.wrap_s(start_s), d=start_d)

    pending_x: List[float] = []
    pending_y: List[float] = []
    speeds: List[float] = []
    lanes: List[int] = []
    distance = 0.0

    for tick, command in enumerate(schedule):
        observations = [v.observe(road_map) for v in traffic]
        out_x, out_y = planner.plan(command, ego, observations, pending_x, pending_y,
                                    timestamp=tick * points_per_tick * dt)

        consumed = min(points_per_tick, len(out_x))
        consumed_x, consumed_y = out_x[:consumed], out_y[:consumed]
        prev_x, prev_y = ego.x, ego.y
        for x, y in zip(consumed_x, consumed_y):
            distance += math.hypot(x - prev_x, y - prev_y)
            prev_x, prev_y = x, y
        ego = _ego_from_consumed(road_map, consumed_x, consumed_y, dt, ego)
        pending_x, pending_y = out_x[consumed:], out_y[consumed:]

        for vehicle in traffic:
            vehicle.advance(consumed * dt, road_map)

        speeds.append(ego.speed)
        lanes.append(road_map.lane_index(ego.d))

    return {
        "ticks": len(schedule),
        "distance_m": distance,
        "final_s": ego.s,
        "final_d": ego.d,
        "final_lane": road_map.lane_index(ego.d),
        "max_speed": max(speeds) if speeds else 0.0,
        "final_speed": ego.speed,
        "lanes_visited": sorted(set(lanes)),
        "budget_overruns": planner.budget_overruns,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Run the path planner in a synthetic closed loop')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration YAML file (default: config/planner_config.yaml)')
    parser.add_argument('--ticks', type=int, default=300,
                        help='Ticks of go_straight when --commands is not given')
    parser.add_argument('--commands', type=str, default=None,
                        help='Command schedule, e.g. go_straight:150,change_lane_left:40')
    parser.add_argument('--points-per-tick', type=int, default=3,
                        help='Points the simulated follower consumes every tick')
    parser.add_argument('--start-lane', type=int, default=1)
    parser.add_argument('--traffic', type=str, default=None,
                        help="Scripted vehicles 'lane:s:speed;lane:s:speed'")
    parser.add_argument('--record', action='store_true',
                        help='Record planned trajectories to HDF5')
    parser.add_argument('--recording_dir', type=str, default='data/recordings',
                        help='Directory for recordings')
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.get('logging', {}))

    schedule = (parse_command_schedule(args.commands) if args.commands
                else [BehaviorCommand.GO_STRAIGHT] * args.ticks)
    planner = build_path_planner(config, record_data=args.record,
                                 recording_dir=args.recording_dir)
    traffic = parse_traffic(args.traffic, planner.road_map)

    try:
        summary = run_closed_loop(planner, schedule, args.points_per_tick,
                                  start_lane=args.start_lane, traffic=traffic)
    finally:
        planner.close()

    print("=" * 60)
    print("CLOSED LOOP SUMMARY")
    print("=" * 60)
    for key, value in summary.items():
        if isinstance(value, float):
            print(f"  {key:<16} {value:10.2f}")
        else:
            print(f"  {key:<16} {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
