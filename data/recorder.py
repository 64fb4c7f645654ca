"""
Data recorder for the path planner.
Records every planned trajectory with the states it was planned from.
"""

import json
import logging
from dataclasses import astuple
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import h5py
import numpy as np

from .formats.data_format import RoadState, TrajectoryOutput

logger = logging.getLogger(__name__)

ROAD_STATE_FIELDS = ("s", "s_dot", "s_ddot", "d", "d_dot", "d_ddot")


def _road_state_row(state: Optional[RoadState]) -> np.ndarray:
    if state is None:
        return np.full(len(ROAD_STATE_FIELDS), np.nan)
    return np.asarray(astuple(state), dtype=np.float64)


class TrajectoryRecorder:
    """Records planner outputs to HDF5 format."""

    def __init__(self, output_dir: str, n_points: int, recording_name: Optional[str] = None,
                 flush_every: int = 50):
        """
        Initialize trajectory recorder.

        Args:
            output_dir: Directory to save recordings
            n_points: Number of points in every planned trajectory
            recording_name: Name for this recording (default: timestamp)
            flush_every: Number of ticks buffered before writing to disk
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if recording_name is None:
            recording_name = f"recording_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        self.recording_name = recording_name
        self.output_file = self.output_dir / f"{recording_name}.h5"
        self.n_points = int(n_points)
        self.flush_every = max(1, int(flush_every))

        self.h5_file = h5py.File(self.output_file, 'w')
        self._create_datasets()

        self.buffer: List[TrajectoryOutput] = []
        self.frame_count = 0
        self.closed = False

        self.metadata = {
            "recording_start_time": datetime.now().isoformat(),
            "recording_name": recording_name,
            "n_points": self.n_points,
            "road_state_fields": list(ROAD_STATE_FIELDS),
        }

    def _create_datasets(self):
        """Create extensible HDF5 datasets."""
        n = self.n_points
        n_fields = len(ROAD_STATE_FIELDS)
        self.h5_file.create_dataset("trajectory/timestamps", shape=(0,), maxshape=(None,),
                                    dtype=np.float64)
        self.h5_file.create_dataset("trajectory/command", shape=(0,), maxshape=(None,),
                                    dtype=h5py.string_dtype())
        self.h5_file.create_dataset("trajectory/x", shape=(0, n), maxshape=(None, n),
                                    dtype=np.float64, chunks=(64, n))
        self.h5_file.create_dataset("trajectory/y", shape=(0, n), maxshape=(None, n),
                                    dtype=np.float64, chunks=(64, n))
        self.h5_file.create_dataset("trajectory/n_reused_points", shape=(0,), maxshape=(None,),
                                    dtype=np.int32)
        self.h5_file.create_dataset("trajectory/start_state", shape=(0, n_fields),
                                    maxshape=(None, n_fields), dtype=np.float64)
        self.h5_file.create_dataset("trajectory/target_state", shape=(0, n_fields),
                                    maxshape=(None, n_fields), dtype=np.float64)
        self.h5_file.create_dataset("trajectory/planning_time_s", shape=(0,), maxshape=(None,),
                                    dtype=np.float64)

    def record(self, output: TrajectoryOutput):
        """Buffer one planned trajectory."""
        if self.closed:
            raise RuntimeError(f"Recorder for {self.output_file} is closed")
        if len(output.x) != self.n_points or len(output.y) != self.n_points:
            raise ValueError(
                f"Expected {self.n_points} points, got x={len(output.x)} y={len(output.y)}"
            )
        self.buffer.append(output)
        self.frame_count += 1
        if len(self.buffer) >= self.flush_every:
            self.flush()

    def flush(self):
        """Write buffered trajectories to disk."""
        if not self.buffer:
            return
        outputs = self.buffer
        self.buffer = []

        columns = {
            "trajectory/timestamps": np.array([o.timestamp for o in outputs], dtype=np.float64),
            "trajectory/command": np.array([o.command.value for o in outputs], dtype=object),
            "trajectory/x": np.stack([np.asarray(o.x, dtype=np.float64) for o in outputs]),
            "trajectory/y": np.stack([np.asarray(o.y, dtype=np.float64) for o in outputs]),
            "trajectory/n_reused_points": np.array([o.n_reused_points for o in outputs],
                                                   dtype=np.int32),
            "trajectory/start_state": np.stack([_road_state_row(o.start_state) for o in outputs]),
            "trajectory/target_state": np.stack([_road_state_row(o.target_state) for o in outputs]),
            "trajectory/planning_time_s": np.array([o.planning_time_s for o in outputs],
                                                   dtype=np.float64),
        }
        for name, values in columns.items():
            dataset = self.h5_file[name]
            current_size = dataset.shape[0]
            new_size = current_size + len(outputs)
            dataset.resize(new_size, axis=0)
            dataset[current_size:new_size] = values
        self.h5_file.flush()

    def close(self):
        """Close the recording file."""
        if self.closed:
            return
        try:
            self.flush()
        except Exception as e:
            logger.error("Error during final flush: %s", e, exc_info=True)
            # Continue to close the file even if flush fails

        self.metadata["recording_end_time"] = datetime.now().isoformat()
        self.metadata["total_frames"] = self.frame_count
        self.h5_file.attrs["metadata"] = json.dumps(self.metadata, indent=2)

        self.h5_file.close()
        self.closed = True
        logger.info("Recording saved to: %s", self.output_file)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
