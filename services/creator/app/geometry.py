"""Route geometry derived from the ordered scene list.

Every function here is pure. Points are anything exposing ``lat`` and ``lng``
attributes (scenes, coordinates) or a ``(lat, lng)`` pair.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

EARTH_RADIUS_KM = 6371.0
WALKING_SPEED_KMH = 4.5
MAX_CLIMAX_MARKERS = 3

_TURNING_POINT = re.compile(r"turning[\s_-]*point|climax|転換|山場", re.IGNORECASE)


@dataclass(frozen=True)
class RouteMetrics:
    total_km: float = 0.0
    total_minutes: int = 0
    segment_minutes: list[int] = field(default_factory=list)


def _lat_lng(point: Any) -> tuple[float, float]:
    if isinstance(point, (tuple, list)):
        return float(point[0]), float(point[1])
    return float(point.lat), float(point.lng)


def distance(a: Any, b: Any) -> float:
    """Great-circle distance in kilometres (haversine)."""

    lat1, lng1 = _lat_lng(a)
    lat2, lng2 = _lat_lng(b)
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def walking_minutes(km: float) -> int:
    """Minutes needed to walk ``km`` at 4.5 km/h, never less than one."""

    return max(1, round(km / WALKING_SPEED_KMH * 60))


def route_metrics(scenes: Sequence[Any]) -> RouteMetrics:
    """Totals over consecutive legs.

    Minutes are summed per leg rather than derived from the total distance so the
    total always agrees with the per-leg estimates shown to the user.
    """

    if len(scenes) < 2:
        return RouteMetrics()
    legs = [distance(scenes[i], scenes[i + 1]) for i in range(len(scenes) - 1)]
    segment_minutes = [walking_minutes(km) for km in legs]
    return RouteMetrics(
        total_km=sum(legs),
        total_minutes=sum(segment_minutes),
        segment_minutes=segment_minutes,
    )


def is_turning_point(role: str | None) -> bool:
    return bool(role) and _TURNING_POINT.search(role) is not None


def climax_indices(scenes: Iterable[Any]) -> list[int]:
    """1-based positions of the first three turning-point scenes."""

    indices: list[int] = []
    for position, scene in enumerate(scenes, start=1):
        if is_turning_point(getattr(scene, "scene_role", None)):
            indices.append(position)
            if len(indices) == MAX_CLIMAX_MARKERS:
                break
    return indices
