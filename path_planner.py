"""
Path planner integration.
Connects the road map, the trajectory generator and the recorder.
"""

import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import yaml

from data.formats.data_format import (
    BehaviorCommand, EgoVehicleState, TrafficObservation, TrajectoryOutput
)
from data.recorder import TrajectoryRecorder
from road.road_map import RoadMap, build_road_map
from trajectory.trajectory_generator import TrajectoryGenerator, build_trajectory_generator

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "planner_config.yaml"


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file or use defaults."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", config_path)
        return config
    else:
        logger.warning("Config file not found at %s, using defaults", config_path)
        return {}


def setup_logging(logging_cfg: Optional[dict] = None) -> None:
    """Configure root logging from the `logging` config section."""
    logging_cfg = logging_cfg or {}
    level_name = str(logging_cfg.get("level", "WARNING")).upper()
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file = logging_cfg.get("log_file")
    if log_file:
        log_path = Path(log_file)
        if not log_path.is_absolute():
            log_path = PROJECT_ROOT / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path)))

    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


class PathPlanner:
    """Plans the path for one vehicle, once per simulator tick."""

    def __init__(self, road_map: RoadMap, generator: TrajectoryGenerator,
                 recorder: Optional[TrajectoryRecorder] = None,
                 planning_budget_s: float = 0.02):
        """
        Initialize path planner.

        Args:
            road_map: Track geometry
            generator: Trajectory generator owning the cross-tick state
            recorder: Optional recorder for planned trajectories
            planning_budget_s: Wall-clock time one tick may take before a warning
        """
        self.road_map = road_map
        self.generator = generator
        self.recorder = recorder
        self.planning_budget_s = float(planning_budget_s)
        self.tick_count = 0
        self.budget_overruns = 0

    def plan(self, command: BehaviorCommand, ego: EgoVehicleState,
             traffic: Iterable[TrafficObservation],
             previous_x: Sequence[float], previous_y: Sequence[float],
             timestamp: Optional[float] = None) -> Tuple[List[float], List[float]]:
        """
        Plan the path for this tick.

        Returns:
            (x, y) world coordinates of every point to send to the simulator
        """
        start = time.perf_counter()
        out_x, out_y = self.generator.generate_trajectory(
            command, ego, list(traffic), self.road_map, previous_x, previous_y
        )
        elapsed = time.perf_counter() - start

        self.tick_count += 1
        if elapsed > self.planning_budget_s:
            self.budget_overruns += 1
            logger.warning(
                "Planning tick %d took %.1f ms (budget %.1f ms)",
                self.tick_count, elapsed * 1000.0, self.planning_budget_s * 1000.0,
            )

        if self.recorder is not None:
            self.recorder.record(TrajectoryOutput(
                timestamp=float(timestamp) if timestamp is not None else time.time(),
                command=command,
                x=np.asarray(out_x),
                y=np.asarray(out_y),
                n_reused_points=self.generator.last_n_reused_points,
                start_state=self.generator.last_start_state,
                target_state=self.generator.last_target_state,
                planning_time_s=elapsed,
            ))
        return out_x, out_y

    def reset(self) -> None:
        self.generator.reset()
        self.tick_count = 0
        self.budget_overruns = 0

    def close(self) -> None:
        if self.recorder is not None:
            self.recorder.close()


def build_path_planner(config: dict, record_data: bool = False,
                       recording_dir: Optional[str] = None,
                       recording_name: Optional[str] = None) -> PathPlanner:
    """Build a PathPlanner from a loaded configuration."""
    trajectory_cfg = config.get('trajectory', {}) or {}
    road_cfg = config.get('road', {}) or {}
    recording_cfg = config.get('recording', {}) or {}

    lane_width = float(trajectory_cfg.get('lane_width', 4.0))
    road_map = build_road_map(road_cfg, lane_width=lane_width, base_dir=PROJECT_ROOT)
    generator = build_trajectory_generator(trajectory_cfg, max_s=road_map.max_s)

    recorder = None
    if record_data or bool(recording_cfg.get('enabled', False)):
        recorder = TrajectoryRecorder(
            output_dir=recording_dir or recording_cfg.get('output_dir', 'data/recordings'),
            n_points=generator.config.n_trajectory_points,
            recording_name=recording_name,
            flush_every=int(recording_cfg.get('flush_every', 50)),
        )

    return PathPlanner(
        road_map,
        generator,
        recorder=recorder,
        planning_budget_s=float(trajectory_cfg.get('planning_budget_s', 0.02)),
    )
