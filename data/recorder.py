"""
Tick recorder for the highway planner.
Records ego pose, decisions and emitted trajectories to HDF5.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import h5py
import numpy as np

from .formats.data_format import RecordingFrame

logger = logging.getLogger(__name__)

# Fixed trajectory width per tick (shorter trajectories are NaN padded).
DEFAULT_TRAJECTORY_WIDTH = 50

_SCALAR_DATASETS = {
    "ego/timestamps": np.float64,
    "ego/frame_ids": np.int64,
    "ego/x": np.float64,
    "ego/y": np.float64,
    "ego/s": np.float64,
    "ego/d": np.float64,
    "ego/yaw": np.float64,
    "ego/speed": np.float64,
    "ego/end_path_s": np.float64,
    "ego/end_path_d": np.float64,
    "decision/blocked_ahead": np.int8,
    "decision/unsafe_left": np.int8,
    "decision/unsafe_right": np.int8,
    "decision/lane": np.int32,
    "decision/speed": np.float64,
    "trajectory/prediction_length": np.int32,
    "trajectory/ref_x": np.float64,
    "trajectory/ref_y": np.float64,
    "trajectory/ref_heading": np.float64,
    "sensor_fusion/counts": np.int32,
}


class TickRecorder:
    """Records planning ticks to an HDF5 file."""

    def __init__(self, output_dir: str, recording_name: Optional[str] = None,
                 trajectory_width: int = DEFAULT_TRAJECTORY_WIDTH, flush_every: int = 50):
        """
        Initialize tick recorder.

        Args:
            output_dir: Directory to save recordings
            recording_name: Name for this recording (default: timestamp)
            trajectory_width: Number of trajectory points stored per tick
            flush_every: Buffered ticks before writing to disk
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if recording_name is None:
            recording_name = f"recording_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        self.recording_name = recording_name
        self.output_file = self.output_dir / f"{recording_name}.h5"
        self.trajectory_width = int(trajectory_width)
        self.flush_every = max(1, int(flush_every))

        self.h5_file = h5py.File(self.output_file, "w")
        self._create_datasets()

        self.frame_buffer: List[RecordingFrame] = []
        self.frame_count = 0
        self.metadata = {
            "recording_start_time": datetime.now().isoformat(),
            "recording_name": recording_name,
            "trajectory_width": self.trajectory_width,
        }

    def _create_datasets(self):
        """Create extensible HDF5 datasets."""
        for name, dtype in _SCALAR_DATASETS.items():
            self.h5_file.create_dataset(name, shape=(0,), maxshape=(None,), dtype=dtype)
        for name in ("trajectory/next_x", "trajectory/next_y"):
            self.h5_file.create_dataset(
                name,
                shape=(0, self.trajectory_width),
                maxshape=(None, self.trajectory_width),
                dtype=np.float64,
            )
        self.h5_file.create_dataset(
            "ego/vehicle_ids", shape=(0,), maxshape=(None,), dtype=h5py.string_dtype()
        )
        # Flattened sensor fusion rows [id, x, y, vx, vy, s, d]; counts index them.
        self.h5_file.create_dataset(
            "sensor_fusion/rows", shape=(0, 7), maxshape=(None, 7), dtype=np.float64
        )

    def record_frame(self, frame: RecordingFrame):
        """Buffer one tick; flushed every ``flush_every`` ticks."""
        self.frame_buffer.append(frame)
        self.frame_count += 1
        if len(self.frame_buffer) >= self.flush_every:
            self.flush()

    def _append(self, name: str, values: np.ndarray):
        dataset = self.h5_file[name]
        start = dataset.shape[0]
        dataset.resize(start + len(values), axis=0)
        dataset[start:] = values

    def _padded(self, values: List[float]) -> np.ndarray:
        row = np.full(self.trajectory_width, np.nan)
        count = min(len(values), self.trajectory_width)
        row[:count] = values[:count]
        return row

    def flush(self):
        """Write buffered ticks to disk."""
        if not self.frame_buffer:
            return
        frames = self.frame_buffer
        self.frame_buffer = []

        columns: Dict[str, list] = {name: [] for name in _SCALAR_DATASETS}
        vehicle_ids = []
        next_x_rows = []
        next_y_rows = []
        fusion_rows = []
        for frame in frames:
            pose = frame.telemetry.pose
            result = frame.result
            columns["ego/timestamps"].append(frame.timestamp)
            columns["ego/frame_ids"].append(frame.frame_id)
            vehicle_ids.append(frame.vehicle_id or "")
            columns["ego/x"].append(pose.x)
            columns["ego/y"].append(pose.y)
            columns["ego/s"].append(pose.s)
            columns["ego/d"].append(pose.d)
            columns["ego/yaw"].append(pose.yaw)
            columns["ego/speed"].append(pose.speed)
            columns["ego/end_path_s"].append(frame.telemetry.end_path_s)
            columns["ego/end_path_d"].append(frame.telemetry.end_path_d)
            columns["decision/blocked_ahead"].append(int(result.flags.blocked_ahead))
            columns["decision/unsafe_left"].append(int(result.flags.unsafe_left))
            columns["decision/unsafe_right"].append(int(result.flags.unsafe_right))
            columns["decision/lane"].append(result.lane)
            columns["decision/speed"].append(result.speed)
            columns["trajectory/prediction_length"].append(result.prediction_length)
            columns["trajectory/ref_x"].append(result.reference_frame.origin_x)
            columns["trajectory/ref_y"].append(result.reference_frame.origin_y)
            columns["trajectory/ref_heading"].append(result.reference_frame.heading)
            columns["sensor_fusion/counts"].append(len(frame.telemetry.sensor_fusion))
            next_x_rows.append(self._padded(result.next_x))
            next_y_rows.append(self._padded(result.next_y))
            fusion_rows.extend(list(row)[:7] for row in frame.telemetry.sensor_fusion)

        for name, dtype in _SCALAR_DATASETS.items():
            self._append(name, np.asarray(columns[name], dtype=dtype))
        self._append("ego/vehicle_ids", np.asarray(vehicle_ids, dtype=h5py.string_dtype()))
        self._append("trajectory/next_x", np.vstack(next_x_rows))
        self._append("trajectory/next_y", np.vstack(next_y_rows))
        if fusion_rows:
            self._append("sensor_fusion/rows", np.asarray(fusion_rows, dtype=np.float64))
        self.h5_file.flush()

    def close(self):
        """Flush remaining ticks and close the file."""
        if self.h5_file is None:
            return
        self.flush()
        self.metadata["recording_end_time"] = datetime.now().isoformat()
        self.metadata["frame_count"] = self.frame_count
        self.h5_file.attrs["metadata"] = json.dumps(self.metadata)
        self.h5_file.close()
        self.h5_file = None
        logger.info("Recording saved: %s (%d ticks)", self.output_file, self.frame_count)
