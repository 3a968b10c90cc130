"""
Data replay utility for planner recordings.
Allows replaying recorded ticks for debugging and regression checks.
"""

import json
from pathlib import Path
from typing import Iterator, List, Optional

import h5py
import numpy as np

from control.behavior_planner import BehaviorPlanner
from data.formats.data_format import (
    EgoPose, LaneSafetyFlags, Telemetry, VehicleState
)


class DataReplay:
    """Replay recorded planner ticks."""

    def __init__(self, recording_file: str):
        """
        Initialize data replay.

        Args:
            recording_file: Path to HDF5 recording file
        """
        self.recording_file = Path(recording_file)
        if not self.recording_file.exists():
            raise FileNotFoundError(f"Recording file not found: {recording_file}")

        self.h5_file = h5py.File(self.recording_file, "r")
        self._load_metadata()

    def _load_metadata(self):
        if "metadata" in self.h5_file.attrs:
            self.metadata = json.loads(self.h5_file.attrs["metadata"])
        else:
            self.metadata = {}

    def __len__(self) -> int:
        if "ego/timestamps" not in self.h5_file:
            return 0
        return int(self.h5_file["ego/timestamps"].shape[0])

    def get_ticks(self) -> Iterator[dict]:
        """
        Iterate recorded ticks.

        Yields:
            Dictionary with ego pose, decision, trajectory and sensor fusion rows
        """
        f = self.h5_file
        n_ticks = len(self)
        if n_ticks == 0:
            return

        counts = f["sensor_fusion/counts"][:]
        offsets = np.concatenate(([0], np.cumsum(counts)))
        fusion_rows = f["sensor_fusion/rows"]
        next_x = f["trajectory/next_x"]
        next_y = f["trajectory/next_y"]
        if "ego/vehicle_ids" in f:
            vehicle_ids = f["ego/vehicle_ids"].asstr()[:]
        else:
            vehicle_ids = [""] * n_ticks

        for i in range(n_ticks):
            traj_x = next_x[i]
            traj_y = next_y[i]
            valid = ~np.isnan(traj_x)
            yield {
                "timestamp": float(f["ego/timestamps"][i]),
                "frame_id": int(f["ego/frame_ids"][i]),
                "vehicle_id": str(vehicle_ids[i]) or None,
                "pose": EgoPose(
                    x=float(f["ego/x"][i]),
                    y=float(f["ego/y"][i]),
                    s=float(f["ego/s"][i]),
                    d=float(f["ego/d"][i]),
                    yaw=float(f["ego/yaw"][i]),
                    speed=float(f["ego/speed"][i]),
                ),
                "end_path_s": float(f["ego/end_path_s"][i]),
                "end_path_d": float(f["ego/end_path_d"][i]),
                "flags": LaneSafetyFlags(
                    blocked_ahead=bool(f["decision/blocked_ahead"][i]),
                    unsafe_left=bool(f["decision/unsafe_left"][i]),
                    unsafe_right=bool(f["decision/unsafe_right"][i]),
                ),
                "lane": int(f["decision/lane"][i]),
                "speed": float(f["decision/speed"][i]),
                "prediction_length": int(f["trajectory/prediction_length"][i]),
                "next_x": traj_x[valid].tolist(),
                "next_y": traj_y[valid].tolist(),
                "sensor_fusion": fusion_rows[offsets[i]:offsets[i + 1]].tolist(),
            }

    def get_telemetry(self) -> Iterator[Telemetry]:
        """
        Rebuild inbound telemetry for every tick.

        The previous path of tick i is not stored, so it is left empty.
        """
        for tick in self.get_ticks():
            yield Telemetry(
                pose=tick["pose"],
                end_path_s=tick["end_path_s"],
                end_path_d=tick["end_path_d"],
                sensor_fusion=tick["sensor_fusion"],
            )

    def close(self):
        self.h5_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def replay_decisions(
    replay: DataReplay,
    behavior: BehaviorPlanner,
    initial_state: Optional[VehicleState] = None,
    vehicle_id: Optional[str] = None,
) -> List[VehicleState]:
    """
    Re-run the behavior decision on recorded lane flags.

    Returns the sequence of states after each tick; with the recorder's
    behavior config it reproduces the recorded lane/speed columns.
    Sessions with several vehicles interleave their ticks; pass ``vehicle_id``
    to replay one of them.
    """
    state = initial_state or VehicleState()
    states: List[VehicleState] = []
    for tick in replay.get_ticks():
        if vehicle_id is not None and tick["vehicle_id"] != vehicle_id:
            continue
        behavior.step(state, tick["flags"])
        states.append(VehicleState(lane=state.lane, speed=state.speed))
    return states
