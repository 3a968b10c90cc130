"""
Lane/speed behavior decision.

One deterministic transition per tick over the persistent VehicleState:
  1. Blocked ahead: change left, else change right, else slow down.
  2. Clear ahead: drift back to the center lane when it is free, and speed up
     towards the speed limit.
Lane and speed move by at most one step per tick, which bounds acceleration
and jerk without modeling them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from data.formats.data_format import LaneSafetyFlags, VehicleState

logger = logging.getLogger(__name__)

LEFT_LANE = 0
CENTER_LANE = 1
RIGHT_LANE = 2


@dataclass(frozen=True)
class BehaviorConfig:
    """Configuration for the behavior decision."""

    max_speed: float = 49.5  # mph
    max_acc: float = 0.224  # speed step per tick
    min_speed: float = 0.0  # floor for repeated slow-downs


class BehaviorPlanner:
    """Updates VehicleState from lane safety flags."""

    def __init__(self, config: BehaviorConfig) -> None:
        self.config = config

    def step(self, state: VehicleState, flags: LaneSafetyFlags) -> VehicleState:
        """Apply one transition to ``state`` in place and return it."""
        cfg = self.config
        previous_lane = state.lane

        if flags.blocked_ahead:
            # Passing on the left is preferred over the right.
            if not flags.unsafe_left and state.lane > LEFT_LANE:
                state.lane -= 1
            elif not flags.unsafe_right and state.lane < RIGHT_LANE:
                state.lane += 1
            else:
                state.speed = max(cfg.min_speed, state.speed - cfg.max_acc)
        else:
            # Center lane keeps both lane change options open.
            if (state.lane == RIGHT_LANE and not flags.unsafe_left) or \
               (state.lane == LEFT_LANE and not flags.unsafe_right):
                state.lane = CENTER_LANE

            if state.speed < cfg.max_speed:
                state.speed += cfg.max_acc

        if state.lane != previous_lane:
            logger.info("Lane change %d -> %d (speed=%.2f)", previous_lane, state.lane, state.speed)
        return state


def choose_behaviour(
    state: VehicleState,
    flags: LaneSafetyFlags,
    config: Optional[BehaviorConfig] = None,
) -> VehicleState:
    """Functional shortcut around BehaviorPlanner.step."""
    return BehaviorPlanner(config or BehaviorConfig()).step(state, flags)
