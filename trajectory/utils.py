from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np


def deg2rad(angle_deg: float) -> float:
    return angle_deg * math.pi / 180.0


def rad2deg(angle_rad: float) -> float:
    return angle_rad * 180.0 / math.pi


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def angle_difference(a: float, b: float) -> float:
    """Absolute angular difference folded into [0, pi] (handles the +/-pi wrap)."""
    diff = abs(a - b) % (2.0 * math.pi)
    return min(2.0 * math.pi - diff, diff)


def wrap_gap(gap: float, track_length: float | None) -> float:
    """
    Fold a longitudinal gap into [-L/2, L/2) on a circular track.

    With no track length the gap is returned unchanged.
    """
    if not track_length or track_length <= 0.0:
        return float(gap)
    half = 0.5 * track_length
    return float((gap + half) % track_length - half)


def to_local_frame(
    xs: Iterable[float],
    ys: Iterable[float],
    origin_x: float,
    origin_y: float,
    heading: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Translate by -origin and rotate by -heading."""
    shift_x = np.asarray(list(xs), dtype=float) - origin_x
    shift_y = np.asarray(list(ys), dtype=float) - origin_y
    cos_h = math.cos(-heading)
    sin_h = math.sin(-heading)
    local_x = shift_x * cos_h - shift_y * sin_h
    local_y = shift_x * sin_h + shift_y * cos_h
    return local_x, local_y


def to_global_frame(
    xs: Sequence[float] | np.ndarray,
    ys: Sequence[float] | np.ndarray,
    origin_x: float,
    origin_y: float,
    heading: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Rotate by +heading and translate by +origin (inverse of to_local_frame)."""
    local_x = np.asarray(xs, dtype=float)
    local_y = np.asarray(ys, dtype=float)
    cos_h = math.cos(heading)
    sin_h = math.sin(heading)
    global_x = local_x * cos_h - local_y * sin_h + origin_x
    global_y = local_x * sin_h + local_y * cos_h + origin_y
    return global_x, global_y


def lane_center_d(lane: int, lane_width: float) -> float:
    """Lateral offset of a lane's centerline."""
    return (lane + 0.5) * lane_width


def lane_from_d(d: float, lane_width: float, n_lanes: int = 3) -> int:
    """
    Classify a lateral offset into a lane index.

    Lanes are half-open ``[k*w, (k+1)*w)`` except the outermost one, which
    includes its outer edge. Returns -1 outside the modeled road.
    """
    if not math.isfinite(d) or d < 0.0 or d > n_lanes * lane_width:
        return -1
    return min(int(d // lane_width), n_lanes - 1)
