"""
Trajectory synthesis module.
Fits a spline through anchor points ahead of the vehicle and samples it at a
fixed time step, continuing the trajectory still queued from the previous tick.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from data.formats.data_format import ReferenceFrame, VehicleState
from trajectory.frenet import FrameConverter
from trajectory.utils import deg2rad, distance, lane_center_d, to_global_frame, to_local_frame

logger = logging.getLogger(__name__)

# Minimum spacing between the last two tail points for a usable heading.
MIN_TANGENT_LENGTH = 1e-6


@dataclass(frozen=True)
class TrajectoryPlannerConfig:
    """Configuration for spline trajectory synthesis."""

    prediction_base_step: float = 30.0  # spacing of far anchors along s
    n_anchor_points: int = 3
    n_prediction_points: int = 50
    update_rate: float = 0.02  # seconds between trajectory points
    lane_width: float = 4.0
    mph_per_mps: float = 2.24  # speed unit conversion


@dataclass
class AnchorSet:
    """Spline anchors for one tick, in both frames."""
    global_x: List[float]
    global_y: List[float]
    local_x: np.ndarray
    local_y: np.ndarray
    frame: ReferenceFrame


class SplineTrajectoryPlanner:
    """
    Spline-based trajectory planner.

    Anchors start with two points tangent to the queued trajectory (or to the
    current pose when fewer than two points are queued) and continue with
    points on the target lane centerline. The spline is fitted in the frame of
    the last queued point so it is a function of local x.
    """

    def __init__(self, converter: FrameConverter, config: TrajectoryPlannerConfig):
        self.converter = converter
        self.config = config

    def reference_frame(
        self,
        car_x: float,
        car_y: float,
        car_yaw_deg: float,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float],
    ) -> Tuple[ReferenceFrame, Tuple[float, float]]:
        """
        Frame origin/heading and the point preceding the origin.

        Returns:
            (frame, (prev_x, prev_y))
        """
        car_yaw = deg2rad(car_yaw_deg)
        prev_size = min(len(previous_path_x), len(previous_path_y))

        if prev_size < 2:
            # One unit behind the pose gives the spline a tangent.
            prev_point = (car_x - math.cos(car_yaw), car_y - math.sin(car_yaw))
            return ReferenceFrame(float(car_x), float(car_y), car_yaw), prev_point

        ref_x = float(previous_path_x[prev_size - 1])
        ref_y = float(previous_path_y[prev_size - 1])
        ref_x_prev = float(previous_path_x[prev_size - 2])
        ref_y_prev = float(previous_path_y[prev_size - 2])

        if distance(ref_x_prev, ref_y_prev, ref_x, ref_y) < MIN_TANGENT_LENGTH:
            # Coincident tail points (vehicle standing still): keep the pose heading.
            logger.warning(
                "Degenerate trajectory tail at (%.3f, %.3f); using pose heading %.3f rad",
                ref_x, ref_y, car_yaw,
            )
            ref_yaw = car_yaw
            ref_x_prev = ref_x - math.cos(ref_yaw)
            ref_y_prev = ref_y - math.sin(ref_yaw)
        else:
            ref_yaw = math.atan2(ref_y - ref_y_prev, ref_x - ref_x_prev)

        return ReferenceFrame(ref_x, ref_y, ref_yaw), (ref_x_prev, ref_y_prev)

    def build_anchor_points(
        self,
        state: VehicleState,
        car_x: float,
        car_y: float,
        car_yaw_deg: float,
        car_s: float,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float],
    ) -> AnchorSet:
        """Tangent pair plus far anchors on the target lane, in global and local frames."""
        cfg = self.config
        frame, prev_point = self.reference_frame(
            car_x, car_y, car_yaw_deg, previous_path_x, previous_path_y
        )

        global_x = [prev_point[0], frame.origin_x]
        global_y = [prev_point[1], frame.origin_y]

        target_d = lane_center_d(state.lane, cfg.lane_width)
        for k in range(1, cfg.n_anchor_points + 1):
            wp_x, wp_y = self.converter.to_cartesian(car_s + k * cfg.prediction_base_step, target_d)
            global_x.append(wp_x)
            global_y.append(wp_y)

        local_x, local_y = to_local_frame(
            global_x, global_y, frame.origin_x, frame.origin_y, frame.heading
        )
        return AnchorSet(global_x, global_y, local_x, local_y, frame)

    def _monotonic_anchors(self, local_x: np.ndarray, local_y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Keep anchors whose local x strictly increases, as the spline requires."""
        keep_x: List[float] = []
        keep_y: List[float] = []
        for x_val, y_val in zip(local_x, local_y):
            if not (math.isfinite(x_val) and math.isfinite(y_val)):
                continue
            if keep_x and x_val <= keep_x[-1]:
                logger.warning("Dropping non-monotonic anchor at local x=%.3f", x_val)
                continue
            keep_x.append(float(x_val))
            keep_y.append(float(y_val))

        if len(keep_x) < 2:
            # Nothing usable ahead: continue straight along the frame heading.
            last_x = keep_x[-1] if keep_x else 0.0
            last_y = keep_y[-1] if keep_y else 0.0
            if not keep_x:
                keep_x.append(last_x)
                keep_y.append(last_y)
            keep_x.append(last_x + self.config.prediction_base_step)
            keep_y.append(last_y)
        return np.array(keep_x), np.array(keep_y)

    def fit_spline(self, anchors: AnchorSet) -> CubicSpline:
        """Natural cubic spline y(x) through the local anchors."""
        xs, ys = self._monotonic_anchors(anchors.local_x, anchors.local_y)
        return CubicSpline(xs, ys, bc_type="natural")

    def sample_spline(
        self,
        spline: CubicSpline,
        frame: ReferenceFrame,
        speed: float,
        n_points: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Sample ``n_points`` along the spline, one per tick at ``speed``.

        The local x step is chosen so that over the first base step the arc
        (approximated by its chord) is covered in equal time intervals.
        """
        cfg = self.config
        if n_points <= 0:
            return np.empty(0), np.empty(0)

        base_step_x = cfg.prediction_base_step
        base_step_y = float(spline(base_step_x))
        base_step_dist = distance(0.0, 0.0, base_step_x, base_step_y)

        tick_distance = cfg.update_rate * max(speed, 0.0) / cfg.mph_per_mps
        if base_step_dist > 0.0 and math.isfinite(base_step_dist):
            step_x = base_step_x * tick_distance / base_step_dist
        else:
            step_x = tick_distance

        local_x = step_x * np.arange(1, n_points + 1, dtype=float)
        local_y = spline(local_x)
        return to_global_frame(local_x, local_y, frame.origin_x, frame.origin_y, frame.heading)

    def plan(
        self,
        state: VehicleState,
        car_x: float,
        car_y: float,
        car_yaw_deg: float,
        car_s: float,
        previous_path_x: Sequence[float],
        previous_path_y: Sequence[float],
    ) -> Tuple[List[float], List[float], ReferenceFrame]:
        """
        Build the next trajectory.

        Args:
            state: Target lane/speed after the behavior decision
            car_x, car_y, car_yaw_deg: Current pose (yaw in degrees)
            car_s: Ego s, already advanced to the end of the queued trajectory
            previous_path_x, previous_path_y: Unconsumed tail of the last trajectory

        Returns:
            (next_x, next_y, frame) with exactly ``n_prediction_points`` points;
            the queued tail is copied unchanged at the front.
        """
        cfg = self.config
        prev_size = min(len(previous_path_x), len(previous_path_y), cfg.n_prediction_points)
        tail_x = [float(v) for v in previous_path_x[:prev_size]]
        tail_y = [float(v) for v in previous_path_y[:prev_size]]

        anchors = self.build_anchor_points(
            state, car_x, car_y, car_yaw_deg, car_s, tail_x, tail_y
        )
        spline = self.fit_spline(anchors)
        new_x, new_y = self.sample_spline(
            spline, anchors.frame, state.speed, cfg.n_prediction_points - prev_size
        )

        next_x = tail_x + new_x.tolist()
        next_y = tail_y + new_y.tolist()
        return next_x, next_y, anchors.frame
