"""
Record planner ticks to HDF5 and replay them.
"""

import json

import h5py
import numpy as np
import pytest

from bridge import server
from control.behavior_planner import BehaviorConfig, BehaviorPlanner
from data.formats.data_format import EgoPose, Telemetry, VehicleState, Waypoint
from data.recorder import TickRecorder
from data.replay import DataReplay, replay_decisions
from planner_stack import HighwayPlanner
from tools.analyze_recording import summarize_recording, trajectory_kinematics
from trajectory.map_model import MapModel

N_TICKS = 30
CONSUMED_PER_TICK = 3


def _straight_map() -> MapModel:
    waypoints = [Waypoint(s=i * 30.0, x=i * 30.0, y=0.0) for i in range(100)]
    return MapModel(waypoints, track_length=6000.0)


def _record_drive(output_dir, flush_every: int = 7):
    """Drive along a straight road behind a slow car and record every tick."""
    recorder = TickRecorder(str(output_dir), recording_name="drive", flush_every=flush_every)
    planner = HighwayPlanner(_straight_map(), recorder=recorder)
    state = VehicleState()
    pose = EgoPose(x=100.0, y=-6.0, s=100.0, d=6.0, yaw=0.0, speed=0.0)
    prev_x, prev_y = [], []
    results = []

    for tick in range(N_TICKS):
        sensor_fusion = [[1, 0.0, 0.0, 2.0, 0.0, 125.0 + 0.04 * tick, 6.0]]
        if tick % 2:
            sensor_fusion.append([2, 0.0, 0.0, 0.0, 0.0, 400.0, 10.0])
        telemetry = Telemetry(
            pose=pose,
            previous_path_x=prev_x,
            previous_path_y=prev_y,
            end_path_s=prev_x[-1] if prev_x else 0.0,
            end_path_d=-prev_y[-1] if prev_y else 0.0,
            sensor_fusion=sensor_fusion,
        )
        result = planner.plan(telemetry, state)
        results.append(result)

        x, y = result.next_x[CONSUMED_PER_TICK - 1], result.next_y[CONSUMED_PER_TICK - 1]
        pose = EgoPose(x=x, y=y, s=x, d=-y, yaw=0.0, speed=state.speed)
        prev_x = result.next_x[CONSUMED_PER_TICK:]
        prev_y = result.next_y[CONSUMED_PER_TICK:]

    recorder.close()
    return recorder.output_file, results


class TestRecorder:
    def test_file_layout(self, tmp_path):
        output_file, results = _record_drive(tmp_path)
        assert output_file == tmp_path / "drive.h5"

        with h5py.File(output_file, "r") as f:
            assert f["ego/timestamps"].shape == (N_TICKS,)
            assert f["trajectory/next_x"].shape == (N_TICKS, 50)
            assert f["sensor_fusion/counts"][:].tolist() == [1 + (i % 2) for i in range(N_TICKS)]
            assert f["sensor_fusion/rows"].shape == (N_TICKS + N_TICKS // 2, 7)
            np.testing.assert_allclose(f["trajectory/next_x"][4], results[4].next_x)
            assert f["decision/lane"][:].tolist() == [r.lane for r in results]
            metadata = json.loads(f.attrs["metadata"])

        assert metadata["frame_count"] == N_TICKS
        assert metadata["recording_name"] == "drive"
        assert metadata["trajectory_width"] == 50

    def test_close_is_idempotent(self, tmp_path):
        recorder = TickRecorder(str(tmp_path), recording_name="empty")
        recorder.close()
        recorder.close()
        with h5py.File(tmp_path / "empty.h5", "r") as f:
            assert f["ego/x"].shape == (0,)


class TestReplay:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DataReplay(str(tmp_path / "missing.h5"))

    def test_ticks_match_recorded_results(self, tmp_path):
        output_file, results = _record_drive(tmp_path)

        with DataReplay(str(output_file)) as replay:
            assert len(replay) == N_TICKS
            ticks = list(replay.get_ticks())
            telemetry = list(replay.get_telemetry())

        for tick, result in zip(ticks, results):
            assert tick["lane"] == result.lane
            assert tick["speed"] == result.speed
            assert tick["flags"] == result.flags
            assert tick["prediction_length"] == result.prediction_length
            assert tick["next_x"] == pytest.approx(result.next_x)
        assert ticks[0]["frame_id"] == 0
        assert ticks[0]["vehicle_id"] is None
        assert ticks[0]["sensor_fusion"][0][5] == pytest.approx(125.0)
        assert len(ticks[1]["sensor_fusion"]) == 2
        assert telemetry[3].pose.s == ticks[3]["pose"].s
        assert telemetry[3].prediction_length == 0

    def test_replay_decisions_reproduces_lane_and_speed(self, tmp_path):
        output_file, results = _record_drive(tmp_path)

        with DataReplay(str(output_file)) as replay:
            states = replay_decisions(replay, BehaviorPlanner(BehaviorConfig()))

        assert [s.lane for s in states] == [r.lane for r in results]
        assert [s.speed for s in states] == pytest.approx([r.speed for r in results])
        # The slow car ahead forces at least one lane change.
        assert any(s.lane != 1 for s in states)


class TestAnalyzeRecording:
    def test_summary(self, tmp_path):
        output_file, results = _record_drive(tmp_path)
        summary = summarize_recording(str(output_file))

        lanes = [r.lane for r in results]
        assert summary["ticks"] == N_TICKS
        assert summary["lane_changes"] == sum(1 for a, b in zip(lanes, lanes[1:]) if a != b)
        assert sum(summary["lane_share"].values()) == pytest.approx(1.0)
        assert summary["max_speed_step"] <= 0.224 + 1e-9
        assert summary["speed_max"] <= 49.5 + 0.224
        assert summary["max_point_speed_mps"] < 49.5 / 2.24 * 1.1

    def test_trajectory_kinematics_ignores_padding(self):
        xs = np.array([0.0, 1.0, 2.0, 3.0, np.nan])
        ys = np.zeros(5)
        speeds, accels = trajectory_kinematics(xs, ys, dt=0.5)
        np.testing.assert_allclose(speeds, [2.0, 2.0, 2.0])
        np.testing.assert_allclose(accels, [0.0, 0.0])


def _bridge_frame(sensor_fusion) -> str:
    data = {
        "x": 100.0, "y": -6.0, "s": 100.0, "d": 6.0, "yaw": 0.0, "speed": 0.0,
        "previous_path_x": [], "previous_path_y": [],
        "end_path_s": 0.0, "end_path_d": 0.0,
        "sensor_fusion": sensor_fusion,
    }
    return f"42{json.dumps(['telemetry', data])}"


class TestMultiVehicleRecording:
    def test_ticks_are_tagged_and_replayed_per_vehicle(self, tmp_path):
        recorder = TickRecorder(str(tmp_path), recording_name="two_cars", flush_every=4)
        server.configure(HighwayPlanner(_straight_map(), recorder=recorder))
        try:
            for _ in range(5):
                # "a" is stuck behind a slow car, "b" has a free road.
                server.handle_frame(_bridge_frame([[1, 0.0, 0.0, 0.0, 0.0, 115.0, 6.0]]), "a")
                server.handle_frame(_bridge_frame([]), "b")
            final_a = VehicleState(server.get_vehicle_state("a").lane, server.get_vehicle_state("a").speed)
            final_b = VehicleState(server.get_vehicle_state("b").lane, server.get_vehicle_state("b").speed)
        finally:
            server.configure(None)
            recorder.close()

        with DataReplay(str(recorder.output_file)) as replay:
            assert [tick["vehicle_id"] for tick in replay.get_ticks()] == ["a", "b"] * 5
            states_a = replay_decisions(replay, BehaviorPlanner(BehaviorConfig()), vehicle_id="a")
            states_b = replay_decisions(replay, BehaviorPlanner(BehaviorConfig()), vehicle_id="b")

        assert len(states_a) == 5
        assert len(states_b) == 5
        assert states_a[-1] == final_a
        assert states_b[-1] == final_b
        assert final_a.lane == 0
        assert final_b.lane == 1
        assert final_b.speed == pytest.approx(5 * 0.224)
