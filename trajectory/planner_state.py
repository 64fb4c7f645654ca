"""
State the trajectory generator carries from one planning tick to the next.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from trajectory.waypoint_history import WaypointHistory


@dataclass
class PlannerState:
    """Cross-tick state owned by a single TrajectoryGenerator."""
    history: WaypointHistory = field(default_factory=WaypointHistory)
    # Lateral target remembered when a lane change starts
    pending_lane_change_d: Optional[float] = None

    def reset(self) -> None:
        self.history.clear()
        self.pending_lane_change_d = None
