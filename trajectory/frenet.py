"""
Conversion between the global Cartesian frame and the road (Frenet) frame.
"""

import logging
import math
from typing import Tuple

from trajectory.map_model import MapModel
from trajectory.utils import distance

logger = logging.getLogger(__name__)

# Off-track point used to decide which side of the road a position is on.
DEFAULT_SIGN_REFERENCE = (1000.0, 2000.0)


class FrameConverter:
    """
    Bidirectional (x, y) <-> (s, d) conversion on a MapModel.

    Pure functions of the map; one converter can be shared by any number of
    planners.
    """

    def __init__(self, map_model: MapModel, sign_reference: Tuple[float, float] = DEFAULT_SIGN_REFERENCE):
        self.map = map_model
        self.sign_reference = (float(sign_reference[0]), float(sign_reference[1]))

    def to_frenet(self, x: float, y: float, heading: float) -> Tuple[float, float]:
        """
        Project a pose onto the centerline.

        Args:
            x, y: Position in the global frame
            heading: Heading in radians (selects the waypoint ahead)

        Returns:
            (s, d). ``d`` is negative when the position is closer to the sign
            reference point than its projection on the centerline.
        """
        wp_map = self.map
        next_wp = wp_map.next_waypoint(x, y, heading)
        prev_wp = wp_map.prev_index(next_wp)

        n_x = wp_map.x[next_wp] - wp_map.x[prev_wp]
        n_y = wp_map.y[next_wp] - wp_map.y[prev_wp]
        x_x = x - wp_map.x[prev_wp]
        x_y = y - wp_map.y[prev_wp]

        norm_sq = n_x * n_x + n_y * n_y
        if norm_sq <= 0.0:
            # Coincident waypoints: no direction to project on.
            logger.warning("Degenerate map segment %d -> %d", prev_wp, next_wp)
            proj_norm = 0.0
        else:
            proj_norm = (x_x * n_x + x_y * n_y) / norm_sq
        proj_x = proj_norm * n_x
        proj_y = proj_norm * n_y

        frenet_d = distance(x_x, x_y, proj_x, proj_y)

        center_x = self.sign_reference[0] - wp_map.x[prev_wp]
        center_y = self.sign_reference[1] - wp_map.y[prev_wp]
        center_to_pos = distance(center_x, center_y, x_x, x_y)
        center_to_ref = distance(center_x, center_y, proj_x, proj_y)
        if center_to_pos <= center_to_ref:
            frenet_d *= -1.0

        frenet_s = float(wp_map.cumulative_chord[prev_wp]) + distance(0.0, 0.0, proj_x, proj_y)
        return float(frenet_s), float(frenet_d)

    def to_cartesian(self, s: float, d: float) -> Tuple[float, float]:
        """Global position for road coordinates (s, d)."""
        return self.map.interpolate(s, d)
