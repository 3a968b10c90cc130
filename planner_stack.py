"""
Main highway planner integration script.
Connects the map, traffic analysis, behavior decision and trajectory synthesis
into one planning tick, and starts the simulator bridge.
"""

import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import yaml

# Add paths
sys.path.insert(0, str(Path(__file__).parent))

from control.behavior_planner import BehaviorConfig, BehaviorPlanner
from control.traffic_analyzer import TrafficAnalyzer, TrafficAnalyzerConfig
from data.formats.data_format import (
    PerceivedVehicle, PlanResult, RecordingFrame, Telemetry, VehicleState
)
from data.recorder import TickRecorder
from trajectory.frenet import DEFAULT_SIGN_REFERENCE, FrameConverter
from trajectory.map_model import MapModel
from trajectory.models.trajectory_planner import SplineTrajectoryPlanner, TrajectoryPlannerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannerConfig:
    """Tunable constants of the planner (shared read-only)."""
    safe_gap: float = 30.0
    max_speed: float = 49.5  # mph
    max_acc: float = 0.224  # speed step per tick
    min_speed: float = 0.0
    lane_width: float = 4.0
    n_lanes: int = 3
    prediction_base_step: float = 30.0
    n_anchor_points: int = 3
    n_prediction_points: int = 50
    update_rate: float = 0.02  # seconds per trajectory point
    mph_per_mps: float = 2.24
    max_s: float = 6945.554  # track length where s wraps to 0
    sign_reference: Tuple[float, float] = DEFAULT_SIGN_REFERENCE

    def traffic_config(self) -> TrafficAnalyzerConfig:
        return TrafficAnalyzerConfig(
            safe_gap=self.safe_gap,
            lane_width=self.lane_width,
            n_lanes=self.n_lanes,
            update_rate=self.update_rate,
            track_length=self.max_s,
        )

    def behavior_config(self) -> BehaviorConfig:
        return BehaviorConfig(
            max_speed=self.max_speed,
            max_acc=self.max_acc,
            min_speed=self.min_speed,
        )

    def trajectory_config(self) -> TrajectoryPlannerConfig:
        return TrajectoryPlannerConfig(
            prediction_base_step=self.prediction_base_step,
            n_anchor_points=self.n_anchor_points,
            n_prediction_points=self.n_prediction_points,
            update_rate=self.update_rate,
            lane_width=self.lane_width,
            mph_per_mps=self.mph_per_mps,
        )


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file or use defaults."""
    if config_path is None:
        config_path = Path(__file__).parent / "config" / "planner_config.yaml"
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        return config
    else:
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return {}


def build_planner_config(config: dict) -> PlannerConfig:
    """Build a PlannerConfig from the ``planner`` and ``map`` config sections."""
    planner_cfg = config.get("planner", {}) or {}
    map_cfg = config.get("map", {}) or {}
    defaults = PlannerConfig()

    sign_reference = planner_cfg.get("sign_reference", defaults.sign_reference)
    return PlannerConfig(
        safe_gap=float(planner_cfg.get("safe_gap", defaults.safe_gap)),
        max_speed=float(planner_cfg.get("max_speed", defaults.max_speed)),
        max_acc=float(planner_cfg.get("max_acc", defaults.max_acc)),
        min_speed=float(planner_cfg.get("min_speed", defaults.min_speed)),
        lane_width=float(planner_cfg.get("lane_width", defaults.lane_width)),
        n_lanes=int(planner_cfg.get("n_lanes", defaults.n_lanes)),
        prediction_base_step=float(
            planner_cfg.get("prediction_base_step", defaults.prediction_base_step)
        ),
        n_anchor_points=int(planner_cfg.get("n_anchor_points", defaults.n_anchor_points)),
        n_prediction_points=int(
            planner_cfg.get("n_prediction_points", defaults.n_prediction_points)
        ),
        update_rate=float(planner_cfg.get("update_rate", defaults.update_rate)),
        mph_per_mps=float(planner_cfg.get("mph_per_mps", defaults.mph_per_mps)),
        max_s=float(map_cfg.get("max_s", defaults.max_s)),
        sign_reference=(float(sign_reference[0]), float(sign_reference[1])),
    )


class HighwayPlanner:
    """
    Per-tick planning pipeline for one map.

    The planner itself is stateless between ticks; the caller owns one
    VehicleState per vehicle and passes it to every plan() call.
    """

    def __init__(self, map_model: MapModel, config: Optional[PlannerConfig] = None,
                 recorder: Optional[TickRecorder] = None):
        self.config = config or PlannerConfig(max_s=map_model.track_length)
        self.map = map_model
        self.converter = FrameConverter(map_model, self.config.sign_reference)
        self.traffic = TrafficAnalyzer(self.config.traffic_config())
        self.behavior = BehaviorPlanner(self.config.behavior_config())
        self.trajectory = SplineTrajectoryPlanner(self.converter, self.config.trajectory_config())
        self.recorder = recorder
        self.frame_count = 0

    @staticmethod
    def perceive(sensor_fusion: Iterable[List[float]]) -> List[PerceivedVehicle]:
        """Convert sensor fusion rows into PerceivedVehicle records."""
        return [PerceivedVehicle.from_sensor_fusion(row) for row in sensor_fusion]

    def plan(self, telemetry: Telemetry, state: VehicleState,
             vehicle_id: Optional[str] = None) -> PlanResult:
        """
        Run one planning tick.

        Args:
            telemetry: Decoded inbound message
            state: Vehicle state, updated in place by the behavior decision
            vehicle_id: Recorded with the tick so multi-vehicle sessions can be split

        Returns:
            PlanResult with ``n_prediction_points`` global points
        """
        pose = telemetry.pose
        prediction_length = telemetry.prediction_length
        car_s = telemetry.end_path_s if prediction_length > 0 else pose.s

        flags = self.traffic.check_lanes(
            state.lane, car_s, self.perceive(telemetry.sensor_fusion), prediction_length
        )
        self.behavior.step(state, flags)

        next_x, next_y, frame = self.trajectory.plan(
            state,
            pose.x,
            pose.y,
            pose.yaw,
            car_s,
            telemetry.previous_path_x,
            telemetry.previous_path_y,
        )
        result = PlanResult(
            next_x=next_x,
            next_y=next_y,
            flags=flags,
            lane=state.lane,
            speed=state.speed,
            reference_frame=frame,
            prediction_length=prediction_length,
        )
        logger.debug(
            "Tick %d: h=%d s=%.2f flags=%s lane=%d speed=%.2f",
            self.frame_count, prediction_length, car_s, flags, state.lane, state.speed,
        )

        if self.recorder is not None:
            self.recorder.record_frame(RecordingFrame(
                timestamp=time.time(),
                frame_id=self.frame_count,
                telemetry=telemetry,
                result=result,
                vehicle_id=vehicle_id,
            ))
        self.frame_count += 1
        return result


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Run highway planner bridge')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration YAML file (default: config/planner_config.yaml)')
    parser.add_argument('--map', type=str, default=None,
                        help='Path to waypoint map file (overrides config map.path)')
    parser.add_argument('--host', type=str, default=None,
                        help='Bridge host (overrides config bridge.host)')
    parser.add_argument('--port', type=int, default=None,
                        help='Bridge port (overrides config bridge.port)')
    parser.add_argument('--record', action='store_true', default=False,
                        help='Record planning ticks to HDF5')
    parser.add_argument('--recording_dir', type=str, default=None,
                        help='Directory for recordings')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    args = parser.parse_args()

    log_dir = Path(__file__).parent / 'tmp' / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(str(log_dir / 'planner_stack.log'))
        ]
    )

    from bridge.server import configure, run_server
    from data.map_loader import load_map

    config = load_config(args.config)
    planner_config = build_planner_config(config)
    map_cfg = config.get("map", {}) or {}
    bridge_cfg = config.get("bridge", {}) or {}
    recording_cfg = config.get("recording", {}) or {}

    map_path = args.map or map_cfg.get("path", "data/highway_map.csv")
    map_model = load_map(map_path, max_s=planner_config.max_s)

    recorder = None
    if args.record or recording_cfg.get("enabled", False):
        recording_dir = args.recording_dir or recording_cfg.get("dir", "data/recordings")
        recorder = TickRecorder(recording_dir, trajectory_width=planner_config.n_prediction_points)

    planner = HighwayPlanner(map_model, planner_config, recorder=recorder)
    configure(planner)
    try:
        run_server(
            host=args.host or bridge_cfg.get("host", "0.0.0.0"),
            port=args.port or int(bridge_cfg.get("port", 4567)),
        )
    finally:
        if recorder is not None:
            recorder.close()


if __name__ == "__main__":
    main()
