"""
Simulator message framing and payload models.

The simulator speaks socket.io-style text frames: ``42["event", {...}]``
where ``4`` marks a message and ``2`` an event.
"""

import json
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, conlist

from data.formats.data_format import EgoPose, Telemetry

EVENT_PREFIX = "42"


def has_data(raw: str) -> str:
    """
    Extract the JSON payload of an event frame.

    Returns:
        The ``[...]`` payload, or "" when the frame carries ``null`` or no payload
    """
    if "null" in raw:
        return ""
    b1 = raw.find("[")
    b2 = raw.find("}")
    if b1 != -1 and b2 != -1:
        return raw[b1:b2 + 2]
    return ""


def is_event_frame(raw: str) -> bool:
    return len(raw) > 2 and raw.startswith(EVENT_PREFIX)


def parse_event(payload: str) -> Tuple[str, Optional[dict]]:
    """Split a ``["event", {...}]`` payload into (event, data)."""
    message = json.loads(payload)
    if not isinstance(message, list) or not message:
        raise ValueError(f"Unexpected event payload: {payload[:80]!r}")
    event = str(message[0])
    data = message[1] if len(message) > 1 else None
    return event, data


class TelemetryMessage(BaseModel):
    """Telemetry event data sent by the simulator every tick."""
    x: float
    y: float
    s: float
    d: float
    yaw: float  # degrees
    speed: float  # mph
    previous_path_x: List[float] = Field(default_factory=list)
    previous_path_y: List[float] = Field(default_factory=list)
    end_path_s: float = 0.0
    end_path_d: float = 0.0
    # Rows are [id, x, y, vx, vy, s, d].
    sensor_fusion: List[conlist(float, min_length=7)] = Field(default_factory=list)

    def to_telemetry(self) -> Telemetry:
        return Telemetry(
            pose=EgoPose(x=self.x, y=self.y, s=self.s, d=self.d, yaw=self.yaw, speed=self.speed),
            previous_path_x=list(self.previous_path_x),
            previous_path_y=list(self.previous_path_y),
            end_path_s=self.end_path_s,
            end_path_d=self.end_path_d,
            sensor_fusion=[list(row) for row in self.sensor_fusion],
        )


def encode_control(next_x: Sequence[float], next_y: Sequence[float]) -> str:
    """Control event carrying the trajectory for the simulator."""
    body = json.dumps({"next_x": list(next_x), "next_y": list(next_y)})
    return f'{EVENT_PREFIX}["control",{body}]'


def encode_manual() -> str:
    """Acknowledgment for frames without telemetry (manual driving)."""
    return f'{EVENT_PREFIX}["manual",{{}}]'
