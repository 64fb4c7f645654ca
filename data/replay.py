"""
Replay utility for path planner recordings.
"""

import json
from pathlib import Path
from typing import Iterator

import h5py
import numpy as np

from .recorder import ROAD_STATE_FIELDS


class TrajectoryReplay:
    """Replay recorded planner outputs."""

    def __init__(self, recording_file: str):
        """
        Initialize trajectory replay.

        Args:
            recording_file: Path to HDF5 recording file
        """
        self.recording_file = Path(recording_file)
        if not self.recording_file.exists():
            raise FileNotFoundError(f"Recording file not found: {recording_file}")

        self.h5_file = h5py.File(self.recording_file, 'r')
        self._load_metadata()

    def _load_metadata(self):
        if "metadata" in self.h5_file.attrs:
            self.metadata = json.loads(self.h5_file.attrs["metadata"])
        else:
            self.metadata = {}

    def __len__(self) -> int:
        if "trajectory/timestamps" not in self.h5_file:
            return 0
        return int(self.h5_file["trajectory/timestamps"].shape[0])

    def get_trajectories(self) -> Iterator[dict]:
        """
        Get planned trajectories iterator.

        Yields:
            Dictionary with one tick of planner output
        """
        if len(self) == 0:
            return

        group = self.h5_file["trajectory"]
        for i in range(len(self)):
            command = group["command"][i]
            if isinstance(command, bytes):
                command = command.decode("utf-8")
            yield {
                "timestamp": float(group["timestamps"][i]),
                "command": command,
                "x": np.asarray(group["x"][i]),
                "y": np.asarray(group["y"][i]),
                "n_reused_points": int(group["n_reused_points"][i]),
                "start_state": dict(zip(ROAD_STATE_FIELDS, group["start_state"][i].tolist())),
                "target_state": dict(zip(ROAD_STATE_FIELDS, group["target_state"][i].tolist())),
                "planning_time_s": float(group["planning_time_s"][i]),
            }

    def close(self):
        self.h5_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
