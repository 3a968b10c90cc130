"""
Unit tests for control/behavior_planner.py.
"""

import itertools
import random

import pytest

from control.behavior_planner import BehaviorConfig, BehaviorPlanner, choose_behaviour
from data.formats.data_format import LaneSafetyFlags, VehicleState


def _planner(**overrides) -> BehaviorPlanner:
    return BehaviorPlanner(BehaviorConfig(**overrides))


BLOCKED = LaneSafetyFlags(blocked_ahead=True)
CLEAR = LaneSafetyFlags()


class TestBlockedAhead:
    def test_prefers_left(self):
        state = VehicleState(lane=1, speed=40.0)
        _planner().step(state, BLOCKED)
        assert state.lane == 0
        assert state.speed == 40.0

    def test_right_when_left_unsafe(self):
        state = VehicleState(lane=1, speed=40.0)
        _planner().step(state, LaneSafetyFlags(blocked_ahead=True, unsafe_left=True))
        assert state.lane == 2
        assert state.speed == 40.0

    def test_right_from_leftmost_lane(self):
        state = VehicleState(lane=0, speed=40.0)
        _planner().step(state, BLOCKED)
        assert state.lane == 1

    def test_slows_down_when_boxed_in(self):
        state = VehicleState(lane=1, speed=40.0)
        flags = LaneSafetyFlags(blocked_ahead=True, unsafe_left=True, unsafe_right=True)
        _planner().step(state, flags)
        assert state.lane == 1
        assert state.speed == pytest.approx(40.0 - 0.224)

    def test_slows_down_in_rightmost_lane_with_left_unsafe(self):
        state = VehicleState(lane=2, speed=40.0)
        _planner().step(state, LaneSafetyFlags(blocked_ahead=True, unsafe_left=True))
        assert state.lane == 2
        assert state.speed == pytest.approx(40.0 - 0.224)

    def test_speed_never_below_floor(self):
        state = VehicleState(lane=1, speed=0.1)
        flags = LaneSafetyFlags(blocked_ahead=True, unsafe_left=True, unsafe_right=True)
        planner = _planner()
        for _ in range(5):
            planner.step(state, flags)
        assert state.speed == 0.0


class TestClearAhead:
    def test_accelerates_by_one_step(self):
        state = VehicleState(lane=1, speed=10.0)
        _planner().step(state, CLEAR)
        assert state.lane == 1
        assert state.speed == pytest.approx(10.224)

    def test_no_acceleration_at_limit(self):
        state = VehicleState(lane=1, speed=49.5)
        _planner().step(state, CLEAR)
        assert state.speed == 49.5

    @pytest.mark.parametrize("lane", [0, 2])
    def test_recenters_when_center_free(self, lane):
        state = VehicleState(lane=lane, speed=30.0)
        _planner().step(state, CLEAR)
        assert state.lane == 1

    def test_stays_right_when_center_occupied(self):
        state = VehicleState(lane=2, speed=30.0)
        _planner().step(state, LaneSafetyFlags(unsafe_left=True))
        assert state.lane == 2

    def test_stays_left_when_center_occupied(self):
        state = VehicleState(lane=0, speed=30.0)
        _planner().step(state, LaneSafetyFlags(unsafe_right=True))
        assert state.lane == 0

    def test_reaches_speed_limit_from_standstill(self):
        state = VehicleState(lane=1, speed=0.0)
        planner = _planner()
        for _ in range(300):
            planner.step(state, CLEAR)
        assert 49.5 <= state.speed < 49.5 + 0.224


def test_lane_always_in_bounds():
    rng = random.Random(1234)
    planner = _planner()
    all_flags = [
        LaneSafetyFlags(*combo) for combo in itertools.product([False, True], repeat=3)
    ]
    for start_lane in (0, 1, 2):
        state = VehicleState(lane=start_lane, speed=25.0)
        for _ in range(500):
            planner.step(state, rng.choice(all_flags))
            assert state.lane in (0, 1, 2)
            assert state.speed >= 0.0


def test_speed_changes_by_at_most_one_step():
    rng = random.Random(99)
    planner = _planner()
    state = VehicleState()
    for _ in range(500):
        before = state.speed
        planner.step(state, LaneSafetyFlags(*(rng.random() < 0.5 for _ in range(3))))
        assert abs(state.speed - before) <= 0.224 + 1e-9


def test_choose_behaviour_returns_updated_state():
    state = VehicleState(lane=1, speed=0.0)
    result = choose_behaviour(state, BLOCKED)
    assert result is state
    assert state.lane == 0
