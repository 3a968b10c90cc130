"""
Road centerline map.
Ordered, circular list of waypoints with nearest/next lookup and (s, d) interpolation.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from data.formats.data_format import Waypoint
from trajectory.utils import angle_difference

logger = logging.getLogger(__name__)


class MapModel:
    """
    Read-only highway map.

    Waypoints are ordered by increasing ``s`` and the list wraps: the segment
    after the last waypoint leads back to the first one. Safe to share between
    planners since nothing here is mutated after construction.
    """

    def __init__(self, waypoints: Sequence[Waypoint], track_length: Optional[float] = None):
        if len(waypoints) == 0:
            raise ValueError("MapModel requires at least one waypoint")
        self.waypoints: List[Waypoint] = list(waypoints)
        self.x = np.array([wp.x for wp in self.waypoints], dtype=float)
        self.y = np.array([wp.y for wp in self.waypoints], dtype=float)
        self.s = np.array([wp.s for wp in self.waypoints], dtype=float)

        # Chord length from waypoint i to i + 1 (the last one closes the loop).
        self.segment_lengths = np.hypot(
            np.roll(self.x, -1) - self.x,
            np.roll(self.y, -1) - self.y,
        )
        # Distance travelled along chords up to each waypoint.
        self.cumulative_chord = np.concatenate(([0.0], np.cumsum(self.segment_lengths[:-1])))

        if track_length is None or track_length <= 0.0:
            track_length = float(self.s[-1] + self.segment_lengths[-1])
        self.track_length = float(track_length)

    def __len__(self) -> int:
        return len(self.waypoints)

    def wrap_s(self, s: float) -> float:
        """Map a longitudinal coordinate into [0, track_length)."""
        if self.track_length <= 0.0:
            return float(s)
        return float(s % self.track_length)

    def next_index(self, index: int) -> int:
        return (index + 1) % len(self.waypoints)

    def prev_index(self, index: int) -> int:
        return (index - 1) % len(self.waypoints)

    def closest_waypoint(self, x: float, y: float) -> int:
        """Index of the waypoint nearest to (x, y); ties go to the lower index."""
        dist = np.hypot(self.x - x, self.y - y)
        return int(np.argmin(dist))

    def next_waypoint(self, x: float, y: float, heading: float) -> int:
        """
        Closest waypoint that lies ahead of a pose.

        Args:
            x, y: Position in the global frame
            heading: Vehicle heading in radians

        Returns:
            Closest waypoint index, advanced by one when it is more than 45
            degrees off the vehicle heading (i.e. behind the vehicle).
        """
        closest = self.closest_waypoint(x, y)
        bearing = math.atan2(self.y[closest] - y, self.x[closest] - x)
        if angle_difference(heading, bearing) > math.pi / 4.0:
            closest = self.next_index(closest)
        return closest

    def segment_for_s(self, s: float) -> Tuple[int, float]:
        """
        Find the segment containing ``s``.

        Returns:
            (index of the segment start waypoint, distance of ``s`` past it)
        """
        s = self.wrap_s(s)
        prev_wp = int(np.searchsorted(self.s, s, side="right")) - 1
        if prev_wp < 0:
            # s precedes the first waypoint: it sits on the closing segment.
            prev_wp = len(self.waypoints) - 1
            return prev_wp, s + self.track_length - self.s[prev_wp]
        return prev_wp, s - self.s[prev_wp]

    def interpolate(self, s: float, d: float) -> Tuple[float, float]:
        """Cartesian position at longitudinal ``s`` and lateral offset ``d``."""
        prev_wp, seg_s = self.segment_for_s(s)
        wp2 = self.next_index(prev_wp)

        heading = math.atan2(self.y[wp2] - self.y[prev_wp], self.x[wp2] - self.x[prev_wp])
        seg_x = self.x[prev_wp] + seg_s * math.cos(heading)
        seg_y = self.y[prev_wp] + seg_s * math.sin(heading)

        perp_heading = heading - math.pi / 2.0
        return (
            float(seg_x + d * math.cos(perp_heading)),
            float(seg_y + d * math.sin(perp_heading)),
        )
