"""
Config alignment tests. No path_planner import; uses yaml directly.
Ensures the shipped planner config is internally consistent.
"""

import pytest
import yaml
from pathlib import Path

project_root = Path(__file__).parent.parent
CONFIG_PATH = project_root / 'config' / 'planner_config.yaml'


def _load_config() -> dict:
    if not CONFIG_PATH.exists():
        return {}
    with open(CONFIG_PATH, 'r') as f:
        return yaml.safe_load(f) or {}


class TestTrajectoryConfigAlignment:
    """Ensure trajectory parameters agree with each other."""

    def test_reused_points_leave_room_for_new_segment(self):
        """n_previous_path_points must be smaller than n_trajectory_points."""
        config = _load_config()
        if not config:
            pytest.skip('planner_config.yaml not found')
        traj_cfg = config.get('trajectory', {})
        n_points = int(traj_cfg.get('n_trajectory_points', 50))
        n_reused = int(traj_cfg.get('n_previous_path_points', 10))
        assert 0 <= n_reused < n_points, (
            f'n_previous_path_points {n_reused} leaves no new points out of {n_points}'
        )

    def test_one_speed_limit_per_lane(self):
        config = _load_config()
        if not config:
            pytest.skip('planner_config.yaml not found')
        traj_cfg = config.get('trajectory', {})
        limits = traj_cfg.get('lane_speed_limits')
        if limits is None:
            pytest.skip('lane_speed_limits not set')
        assert len(limits) == int(traj_cfg.get('n_lanes', 3))

    def test_tracking_window_ordered(self):
        """Slow-down gap must lie inside the tracking window."""
        config = _load_config()
        if not config:
            pytest.skip('planner_config.yaml not found')
        traj_cfg = config.get('trajectory', {})
        min_gap = float(traj_cfg.get('target_tracking_min_gap', 15.0))
        max_gap = float(traj_cfg.get('target_tracking_max_gap', 30.0))
        assert 0.0 < min_gap < max_gap, f'min_gap {min_gap} not inside (0, {max_gap})'

    def test_budget_matches_time_step(self):
        """One tick of planning should fit in one simulator step."""
        config = _load_config()
        if not config:
            pytest.skip('planner_config.yaml not found')
        traj_cfg = config.get('trajectory', {})
        budget = float(traj_cfg.get('planning_budget_s', 0.02))
        dt = float(traj_cfg.get('simulation_time_step', 0.02))
        assert budget <= dt + 1e-9, f'planning_budget_s {budget} exceeds time step {dt}'
