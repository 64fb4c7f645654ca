"""
Tests for the trajectory generator: continuity across ticks, output size,
speed capping and longitudinal wrap-around.
"""

import logging

import pytest

from data.formats.data_format import BehaviorCommand, EgoVehicleState, TrafficObservation
from trajectory.trajectory_generator import (
    TrajectoryGenerator,
    TrajectoryGeneratorConfig,
    build_trajectory_generator,
)
from trajectory.utils import circular_distance, lane_index

MAX_S = 1000.0


class StraightRoad:
    """Road along the x axis; d grows towards negative y."""

    def __init__(self, max_s: float = MAX_S, lane_width: float = 4.0):
        self.max_s = max_s
        self.lane_width = lane_width

    def lane_index(self, d: float) -> int:
        return lane_index(d, self.lane_width)

    def frenet_to_world(self, s: float, d: float):
        return s, -d

    def circular_distance(self, s_a: float, s_b: float) -> float:
        return circular_distance(s_a, s_b, self.max_s)


class HistorySnapshotRoad(StraightRoad):
    """Records the history length seen while the target is resolved."""

    def __init__(self, history, **kwargs):
        super().__init__(**kwargs)
        self.history = history
        self.lengths = []

    def lane_index(self, d: float) -> int:
        self.lengths.append(len(self.history))
        return super().lane_index(d)


def _generator(**overrides) -> TrajectoryGenerator:
    params = dict(
        n_trajectory_points=50,
        n_previous_path_points=10,
        simulation_time_step=0.02,
        lane_width=4.0,
        max_acceleration=5.0,
        target_tracking_min_gap=15.0,
        target_tracking_max_gap=30.0,
        lane_speed_limits=[21.5, 21.5, 21.5],
        max_s=MAX_S,
    )
    params.update(overrides)
    return TrajectoryGenerator(TrajectoryGeneratorConfig(**params))


def _ego(s: float = 100.0, d: float = 6.0) -> EgoVehicleState:
    return EgoVehicleState(x=s, y=-d, yaw=0.0, speed=0.0, s=s, d=d)


class TestFirstTick:
    def test_output_has_full_length(self):
        gen = _generator()
        out_x, out_y = gen.generate_trajectory(
            BehaviorCommand.GO_STRAIGHT, _ego(), [], StraightRoad(), [], []
        )
        assert len(out_x) == len(out_y) == 50
        assert len(gen.state.history) == 50
        assert gen.last_n_reused_points == 0

    def test_starts_from_ego_state(self):
        gen = _generator()
        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=100.0, d=6.0), [],
                                StraightRoad(), [], [])

        start = gen.last_start_state
        assert start.s == 100.0
        assert start.d == 6.0
        assert start.s_dot == 0.0

    def test_speed_target_capped_by_acceleration(self):
        gen = _generator()
        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], StraightRoad(), [], [])

        s_values = list(gen.state.history.s_values)
        # 50 points over 1.0 s from rest: v_target = min(21.5, 0 + 5.0 * 1.0)
        final_speed = (s_values[-1] - s_values[-2]) / 0.02
        assert final_speed == pytest.approx(5.0, abs=0.05)
        assert all(b > a for a, b in zip(s_values, s_values[1:]))

    def test_world_points_come_from_map(self):
        gen = _generator()
        out_x, out_y = gen.generate_trajectory(
            BehaviorCommand.GO_STRAIGHT, _ego(), [], StraightRoad(), [], []
        )
        for x, y, s, d in zip(out_x, out_y, gen.state.history.s_values, gen.state.history.d_values):
            assert x == s
            assert y == -d


class TestContinuity:
    def test_reuses_pending_points_verbatim(self):
        gen = _generator()
        road = StraightRoad()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], road, [], [])

        pending_x, pending_y = out_x[3:], out_y[3:]
        next_x, next_y = gen.generate_trajectory(
            BehaviorCommand.GO_STRAIGHT, _ego(s=out_x[2]), [], road, pending_x, pending_y
        )

        assert len(next_x) == len(next_y) == 50
        assert next_x[:10] == pending_x[:10]
        assert next_y[:10] == pending_y[:10]
        assert gen.last_n_reused_points == 10
        assert len(gen.state.history) == 50

    def test_continues_from_estimated_state(self):
        gen = _generator()
        road = StraightRoad()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], road, [], [])
        first_s = list(gen.state.history.s_values)

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=out_x[2]), [], road,
                                out_x[3:], out_y[3:])

        # 3 points consumed, 10 reused: the new segment continues from index 12
        start = gen.last_start_state
        assert start.s == first_s[12]
        assert start.s_dot == pytest.approx((first_s[12] - first_s[11]) / 0.02)
        expected_accel = ((first_s[12] - first_s[11]) - (first_s[11] - first_s[10])) / 0.02 ** 2
        assert start.s_ddot == pytest.approx(expected_accel)

        s_values = list(gen.state.history.s_values)
        assert s_values[:10] == first_s[3:13]
        assert s_values[10] > s_values[9]

    def test_history_holds_one_full_segment_after_each_tick(self):
        gen = _generator()
        road = StraightRoad()
        pending_x, pending_y = [], []
        ego = _ego()
        for _ in range(20):
            out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, ego, [], road,
                                                   pending_x, pending_y)
            assert len(out_x) == 50
            assert len(gen.state.history) == 50
            pending_x, pending_y = out_x[4:], out_y[4:]
            ego = _ego(s=out_x[3])

    def test_retained_history_capped_at_reused_points(self):
        gen = _generator()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [],
                                               StraightRoad(), [], [])
        road = HistorySnapshotRoad(gen.state.history)

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=out_x[2]), [], road,
                                out_x[3:], out_y[3:])

        # Before new points are appended the history is cut to the reused ones
        assert road.lengths
        assert set(road.lengths) == {gen.last_n_reused_points}
        assert max(road.lengths) <= gen.config.n_previous_path_points
        assert len(gen.state.history) == gen.config.n_trajectory_points

    def test_retained_history_with_few_pending_points(self):
        gen = _generator()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [],
                                               StraightRoad(), [], [])
        road = HistorySnapshotRoad(gen.state.history)

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=out_x[43]), [], road,
                                out_x[44:], out_y[44:])

        assert set(road.lengths) == {6}
        assert gen.last_n_reused_points == 6

    def test_short_pending_path_uses_ego_state(self):
        gen = _generator()
        road = StraightRoad()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], road, [], [])

        ego = EgoVehicleState(x=out_x[48], y=out_y[48], yaw=0.0, speed=5.0,
                              s=out_x[48], d=-out_y[48])
        next_x, _ = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, ego, [], road,
                                            out_x[49:], out_y[49:])

        assert len(next_x) == 50
        assert gen.last_n_reused_points == 1
        assert gen.last_start_state.s == ego.s
        assert gen.last_start_state.s_dot == 0.0

    def test_lost_history_is_not_reused(self, caplog):
        gen = _generator()
        road = StraightRoad()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], road, [], [])
        gen.reset()

        with caplog.at_level(logging.WARNING, logger="trajectory.trajectory_generator"):
            next_x, _ = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=out_x[2]), [],
                                                road, out_x[3:], out_y[3:])

        assert len(next_x) == 50
        assert gen.last_n_reused_points == 0
        assert "reusing 0" in caplog.text


class TestTargets:
    def test_lane_change_reaches_target_offset(self):
        gen = _generator()
        gen.generate_trajectory(BehaviorCommand.CHANGE_LANE_LEFT, _ego(d=6.0), [],
                                StraightRoad(), [], [])

        _, last_d = gen.state.history.back()
        assert last_d == pytest.approx(2.0, abs=1e-6)
        assert gen.state.pending_lane_change_d == 2.0
        assert gen.last_target_state.d == 2.0

    def test_complete_lane_change_uses_pending_target(self):
        gen = _generator()
        road = StraightRoad()
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.CHANGE_LANE_RIGHT, _ego(d=6.0), [],
                                               road, [], [])
        traffic = [TrafficObservation(id=7, x=0.0, y=0.0, vx=1.0, vy=0.0, s=120.0, d=10.0)]

        gen.generate_trajectory(BehaviorCommand.COMPLETE_LANE_CHANGE, _ego(s=out_x[2]), traffic,
                                road, out_x[3:], out_y[3:])

        assert gen.last_target_state.d == 10.0

    def test_lead_vehicle_limits_target_speed(self):
        gen = _generator()
        lead = TrafficObservation(id=1, x=0.0, y=0.0, vx=10.0, vy=0.0, s=105.0, d=6.0)

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(s=100.0), [lead],
                                StraightRoad(), [], [])

        assert gen.last_target_state.s_dot == pytest.approx(9.0)


class TestWrapAround:
    def test_longitudinal_positions_wrap(self):
        gen = _generator()
        ego = EgoVehicleState(x=0.0, y=0.0, yaw=0.0, speed=0.0, s=MAX_S - 1.0, d=6.0)

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, ego, [], StraightRoad(), [], [])

        s_values = list(gen.state.history.s_values)
        assert all(0.0 <= s < MAX_S for s in s_values)
        # 5 m/s reached within one second from rest covers more than 1 m
        assert s_values[-1] < 5.0
        assert s_values[0] > MAX_S - 1.0

    def test_wrap_continues_on_next_tick(self):
        gen = _generator()
        road = StraightRoad()
        ego = EgoVehicleState(x=0.0, y=0.0, yaw=0.0, speed=0.0, s=MAX_S - 1.0, d=6.0)
        out_x, out_y = gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, ego, [], road, [], [])

        gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, ego, [], road, out_x[3:], out_y[3:])

        assert gen.last_start_state.s_dot > 0.0
        assert gen.last_start_state.s_dot < 6.0


class TestConfig:
    def test_mismatched_previous_path_rejected(self):
        gen = _generator()
        with pytest.raises(ValueError):
            gen.generate_trajectory(BehaviorCommand.GO_STRAIGHT, _ego(), [], StraightRoad(),
                                    [1.0, 2.0], [1.0])

    def test_reuse_must_leave_room_for_new_points(self):
        with pytest.raises(ValueError):
            _generator(n_previous_path_points=50)

    def test_time_step_must_be_positive(self):
        with pytest.raises(ValueError):
            _generator(simulation_time_step=0.0)

    def test_build_from_config_dict(self):
        gen = build_trajectory_generator(
            {"n_trajectory_points": 40, "n_previous_path_points": 5, "n_lanes": 2,
             "lane_speed_limits": [20, 18]},
            max_s=500.0,
        )
        assert gen.config.n_trajectory_points == 40
        assert gen.config.n_previous_path_points == 5
        assert gen.config.lane_speed_limits == [20.0, 18.0]
        assert gen.config.max_s == 500.0

    def test_build_expands_single_speed_limit(self):
        gen = build_trajectory_generator({"n_lanes": 4, "speed_limit": 19.0}, max_s=500.0)
        assert gen.config.lane_speed_limits == [19.0] * 4

    def test_build_rejects_speed_limit_count_mismatch(self):
        with pytest.raises(ValueError):
            build_trajectory_generator({"n_lanes": 3, "lane_speed_limits": [20.0]}, max_s=500.0)
