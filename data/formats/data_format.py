"""
Data format definitions for the highway planner.
Per-tick inputs, the persistent vehicle state, and recorded planning frames.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Waypoint:
    """Reference waypoint on the road centerline."""
    s: float  # longitudinal coordinate along the track
    x: float
    y: float
    normal_x: float = 0.0  # lateral unit normal (optional in map files)
    normal_y: float = 0.0


@dataclass
class VehicleState:
    """Planner memory carried from tick to tick (one per vehicle)."""
    lane: int = 1  # 0 = left, 1 = center, 2 = right
    speed: float = 0.0  # target speed [mph]


@dataclass(frozen=True)
class PerceivedVehicle:
    """Other vehicle as reported by sensor fusion for one tick."""
    lateral_offset_d: float
    velocity_x: float
    velocity_y: float
    longitudinal_s: float

    @classmethod
    def from_sensor_fusion(cls, record: Sequence[float]) -> "PerceivedVehicle":
        """Build from a simulator row ``[id, x, y, vx, vy, s, d]``."""
        return cls(
            lateral_offset_d=float(record[6]),
            velocity_x=float(record[3]),
            velocity_y=float(record[4]),
            longitudinal_s=float(record[5]),
        )

    @property
    def speed(self) -> float:
        return float(np.hypot(self.velocity_x, self.velocity_y))


@dataclass(frozen=True)
class LaneSafetyFlags:
    """Which lanes around the ego vehicle are unsafe this tick."""
    blocked_ahead: bool = False
    unsafe_left: bool = False
    unsafe_right: bool = False


@dataclass(frozen=True)
class TrajectoryPoint:
    """Single trajectory point in the global frame."""
    x: float
    y: float


@dataclass(frozen=True)
class ReferenceFrame:
    """Local frame used for curve fitting (origin + heading in radians)."""
    origin_x: float
    origin_y: float
    heading: float


@dataclass
class EgoPose:
    """Ego localization as reported by the simulator."""
    x: float
    y: float
    s: float
    d: float
    yaw: float  # degrees
    speed: float  # mph


@dataclass
class Telemetry:
    """One inbound tick, already decoded into primitive fields."""
    pose: EgoPose
    previous_path_x: List[float] = field(default_factory=list)
    previous_path_y: List[float] = field(default_factory=list)
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    sensor_fusion: List[List[float]] = field(default_factory=list)

    @property
    def prediction_length(self) -> int:
        return min(len(self.previous_path_x), len(self.previous_path_y))


@dataclass
class PlanResult:
    """Outcome of one planning tick."""
    next_x: List[float]
    next_y: List[float]
    flags: LaneSafetyFlags
    lane: int
    speed: float
    reference_frame: ReferenceFrame
    prediction_length: int = 0

    @property
    def points(self) -> List[TrajectoryPoint]:
        return [TrajectoryPoint(x, y) for x, y in zip(self.next_x, self.next_y)]


@dataclass
class RecordingFrame:
    """Complete planning frame for recording."""
    timestamp: float
    frame_id: int
    telemetry: Telemetry
    result: PlanResult
    vehicle_id: Optional[str] = None
