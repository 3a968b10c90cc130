"""
Analyze a planner recording.

Reports:
1. Lane changes and time spent in each lane
2. Target speed range and largest per-tick speed step
3. Speed/acceleration implied by the emitted trajectories
"""

import sys
from pathlib import Path

import h5py
import numpy as np

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def trajectory_kinematics(next_x: np.ndarray, next_y: np.ndarray, dt: float):
    """Point-to-point speed and acceleration of one trajectory row (NaN padded)."""
    valid = ~np.isnan(next_x)
    xs = next_x[valid]
    ys = next_y[valid]
    if len(xs) < 3:
        return np.empty(0), np.empty(0)
    speeds = np.hypot(np.diff(xs), np.diff(ys)) / dt
    accels = np.diff(speeds) / dt
    return speeds, accels


def summarize_recording(recording_file: str, dt: float = 0.02) -> dict:
    """Compute summary metrics for a recording."""
    with h5py.File(recording_file, 'r') as f:
        lanes = f['decision/lane'][:]
        speeds = f['decision/speed'][:]
        blocked = f['decision/blocked_ahead'][:]
        next_x = f['trajectory/next_x'][:]
        next_y = f['trajectory/next_y'][:]

    summary = {
        "ticks": int(len(lanes)),
        "lane_changes": int(np.count_nonzero(np.diff(lanes))) if len(lanes) > 1 else 0,
        "lane_share": {int(lane): float(np.mean(lanes == lane)) for lane in np.unique(lanes)},
        "blocked_ticks": int(np.count_nonzero(blocked)),
        "speed_min": float(np.min(speeds)) if len(speeds) else 0.0,
        "speed_max": float(np.max(speeds)) if len(speeds) else 0.0,
        "max_speed_step": float(np.max(np.abs(np.diff(speeds)))) if len(speeds) > 1 else 0.0,
    }

    max_point_speed = 0.0
    max_point_accel = 0.0
    for row_x, row_y in zip(next_x, next_y):
        point_speeds, point_accels = trajectory_kinematics(row_x, row_y, dt)
        if len(point_speeds):
            max_point_speed = max(max_point_speed, float(np.max(point_speeds)))
        if len(point_accels):
            max_point_accel = max(max_point_accel, float(np.max(np.abs(point_accels))))
    summary["max_point_speed_mps"] = max_point_speed
    summary["max_point_accel_mps2"] = max_point_accel
    return summary


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Analyze a highway planner recording")
    parser.add_argument("recording", help="Path to recording file")
    parser.add_argument("--dt", type=float, default=0.02, help="Trajectory point period [s]")
    args = parser.parse_args()

    summary = summarize_recording(args.recording, dt=args.dt)
    print("=" * 60)
    print("PLANNER RECORDING SUMMARY")
    print("=" * 60)
    print(f"Recording: {args.recording}")
    print(f"Ticks: {summary['ticks']}")
    print(f"Lane changes: {summary['lane_changes']}")
    for lane, share in sorted(summary["lane_share"].items()):
        print(f"   lane {lane}: {share * 100:.1f}%")
    print(f"Blocked ticks: {summary['blocked_ticks']}")
    print(f"Target speed: [{summary['speed_min']:.2f}, {summary['speed_max']:.2f}] mph")
    print(f"Max speed step per tick: {summary['max_speed_step']:.3f} mph")
    print(f"Max trajectory point speed: {summary['max_point_speed_mps']:.2f} m/s")
    print(f"Max trajectory point accel: {summary['max_point_accel_mps2']:.2f} m/s^2")


if __name__ == "__main__":
    main()
