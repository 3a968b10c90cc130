"""
Highway map loader.
Reads ``x y s dx dy`` waypoint lines into a MapModel.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from data.formats.data_format import Waypoint
from trajectory.map_model import MapModel

logger = logging.getLogger(__name__)


def parse_waypoint(line: str) -> Optional[Waypoint]:
    """Parse one map line; returns None when the line is malformed."""
    fields = line.split()
    if len(fields) < 3:
        return None
    try:
        x, y, s = (float(v) for v in fields[:3])
        normal_x = float(fields[3]) if len(fields) > 3 else 0.0
        normal_y = float(fields[4]) if len(fields) > 4 else 0.0
    except ValueError:
        return None
    return Waypoint(s=s, x=x, y=y, normal_x=normal_x, normal_y=normal_y)


def load_map(map_path: Union[str, Path], max_s: Optional[float] = None) -> MapModel:
    """
    Load waypoints from a whitespace-separated text file.

    Args:
        map_path: Path to the map file
        max_s: Track length where s wraps back to 0 (default: derived from the map)

    Returns:
        MapModel with waypoints sorted by s
    """
    map_path = Path(map_path)
    if not map_path.exists():
        raise FileNotFoundError(f"Map file not found: {map_path}")

    waypoints: List[Waypoint] = []
    skipped = 0
    with open(map_path, "r") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            waypoint = parse_waypoint(line)
            if waypoint is None:
                skipped += 1
                logger.debug("Skipping malformed map line %d: %r", line_no, line.rstrip())
                continue
            waypoints.append(waypoint)

    if not waypoints:
        raise ValueError(f"No valid waypoints in map file: {map_path}")

    waypoints.sort(key=lambda wp: wp.s)
    map_model = MapModel(waypoints, track_length=max_s)
    logger.info(
        "Loaded %d waypoints from %s (skipped %d, track length %.3f)",
        len(map_model), map_path, skipped, map_model.track_length,
    )
    return map_model
