"""
Traffic gap analysis.

Classifies the lanes around the ego vehicle as safe/unsafe from one sensor
fusion snapshot, using a constant-velocity prediction of every other vehicle
to the end of the ego vehicle's queued trajectory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from data.formats.data_format import LaneSafetyFlags, PerceivedVehicle
from trajectory.utils import lane_from_d, wrap_gap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrafficAnalyzerConfig:
    """Configuration for lane safety classification."""

    safe_gap: float = 30.0  # distance units, both directions for adjacent lanes
    lane_width: float = 4.0
    n_lanes: int = 3
    update_rate: float = 0.02  # seconds per trajectory point
    track_length: Optional[float] = None  # enables gap folding across the wrap


class TrafficAnalyzer:
    """Produces LaneSafetyFlags for the ego lane from perceived vehicles."""

    def __init__(self, config: TrafficAnalyzerConfig) -> None:
        self.config = config

    def predict_s(self, vehicle: PerceivedVehicle, prediction_length: int) -> float:
        """Vehicle s after ``prediction_length`` ticks at constant speed."""
        return vehicle.longitudinal_s + prediction_length * self.config.update_rate * vehicle.speed

    def check_lanes(
        self,
        ego_lane: int,
        ego_s: float,
        vehicles: Iterable[PerceivedVehicle],
        prediction_length: int,
    ) -> LaneSafetyFlags:
        """
        Classify lanes around the ego vehicle.

        Args:
            ego_lane: Current target lane of the ego vehicle
            ego_s: Ego s at the end of its queued trajectory
            vehicles: Sensor fusion snapshot for this tick
            prediction_length: Number of queued trajectory points (h)

        Returns:
            LaneSafetyFlags, OR-accumulated over all vehicles.
        """
        cfg = self.config
        blocked_ahead = False
        unsafe_left = False
        unsafe_right = False

        for vehicle in vehicles:
            car_lane = lane_from_d(vehicle.lateral_offset_d, cfg.lane_width, cfg.n_lanes)
            if car_lane < 0:
                continue

            car_s = self.predict_s(vehicle, prediction_length)
            gap = wrap_gap(car_s - ego_s, cfg.track_length)

            lane_delta = ego_lane - car_lane
            if lane_delta == 0:
                blocked_ahead |= 0.0 < gap < cfg.safe_gap
            elif lane_delta == 1:
                unsafe_left |= -cfg.safe_gap < gap < cfg.safe_gap
            elif lane_delta == -1:
                unsafe_right |= -cfg.safe_gap < gap < cfg.safe_gap

        flags = LaneSafetyFlags(
            blocked_ahead=blocked_ahead,
            unsafe_left=unsafe_left,
            unsafe_right=unsafe_right,
        )
        logger.debug("Lane flags lane=%d s=%.2f h=%d -> %s", ego_lane, ego_s, prediction_length, flags)
        return flags


def check_lanes(
    ego_lane: int,
    ego_s: float,
    vehicles: Iterable[PerceivedVehicle],
    prediction_length: int,
    config: Optional[TrafficAnalyzerConfig] = None,
) -> LaneSafetyFlags:
    """Functional shortcut around TrafficAnalyzer.check_lanes."""
    analyzer = TrafficAnalyzer(config or TrafficAnalyzerConfig())
    return analyzer.check_lanes(ego_lane, ego_s, vehicles, prediction_length)
