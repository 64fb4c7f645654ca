#!/usr/bin/env python3
"""
Plot a path planner recording.

Usage:
    python tools/plot_recording.py data/recordings/recording_20260101_120000.h5
"""

import argparse
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from data.replay import TrajectoryReplay


def plot_recording(recording_file: str, output_dir: Path, every: int = 25) -> Path:
    """Plot every `every`-th planned path plus the start/target speed and lateral offset."""
    output_dir.mkdir(parents=True, exist_ok=True)

    with TrajectoryReplay(recording_file) as replay:
        ticks = list(replay.get_trajectories())
    if not ticks:
        raise ValueError(f"No planned trajectories in {recording_file}")

    fig, (ax_path, ax_speed, ax_d) = plt.subplots(1, 3, figsize=(18, 5))

    for tick in ticks[::max(1, every)]:
        ax_path.plot(tick["x"], tick["y"], linewidth=0.8, alpha=0.7)
    ax_path.set_title("Planned paths")
    ax_path.set_xlabel("x (m)")
    ax_path.set_ylabel("y (m)")
    ax_path.axis("equal")

    index = np.arange(len(ticks))
    start_speed = np.array([t["start_state"]["s_dot"] for t in ticks])
    target_speed = np.array([t["target_state"]["s_dot"] for t in ticks])
    ax_speed.plot(index, start_speed, label="start s_dot")
    ax_speed.plot(index, np.where(np.isfinite(target_speed), target_speed, np.nan),
                  label="target s_dot", linestyle="--")
    ax_speed.set_title("Longitudinal speed")
    ax_speed.set_xlabel("tick")
    ax_speed.set_ylabel("m/s")
    ax_speed.legend()

    ax_d.plot(index, [t["start_state"]["d"] for t in ticks], label="start d")
    ax_d.plot(index, [t["target_state"]["d"] for t in ticks], label="target d", linestyle="--")
    ax_d.set_title("Lateral offset")
    ax_d.set_xlabel("tick")
    ax_d.set_ylabel("m")
    ax_d.invert_yaxis()
    ax_d.legend()

    plt.tight_layout()
    output_file = output_dir / f"{Path(recording_file).stem}_planner.png"
    plt.savefig(output_file, dpi=150)
    plt.close(fig)
    return output_file


def main():
    parser = argparse.ArgumentParser(description='Plot a path planner recording')
    parser.add_argument('recording', type=str, help='Path to HDF5 recording')
    parser.add_argument('--output_dir', type=str, default='tmp/plots',
                        help='Directory for the generated figure')
    parser.add_argument('--every', type=int, default=25,
                        help='Plot every N-th planned path')
    args = parser.parse_args()

    output_file = plot_recording(args.recording, Path(args.output_dir), every=args.every)
    print(f"Saved plot to {output_file}")


if __name__ == "__main__":
    main()
