"""Route polyline over scheduled waypoints, using Shapely linear referencing."""

import datetime
import logging

from shapely.geometry import LineString

from app.core.geo import haversine_m
from app.core.journey import Waypoint
from app.core.timeutils import ensure_utc

logger = logging.getLogger(__name__)


class RouteGeometry:
    """Estimated traveler position and distances along the waypoint sequence."""

    def __init__(self, waypoints: list[Waypoint]) -> None:
        self.waypoints = waypoints
        # Shapely uses (x, y) = (lon, lat)
        points = [(wp.coordinates[1], wp.coordinates[0]) for wp in waypoints]
        self._line: LineString | None = LineString(points) if len(points) >= 2 else None
        # Per-segment lengths in degrees (line units) and meters
        self._seg_deg: list[float] = []
        self._seg_m: list[float] = []
        for a, b in zip(waypoints, waypoints[1:]):
            self._seg_deg.append(LineString([
                (a.coordinates[1], a.coordinates[0]), (b.coordinates[1], b.coordinates[0]),
            ]).length)
            self._seg_m.append(haversine_m(*a.coordinates, *b.coordinates))

    def _locate(self, now: datetime.datetime) -> tuple[int, float]:
        """(segment index, fraction within segment) for `now`."""
        last = len(self.waypoints) - 2
        if now <= self.waypoints[0].scheduled_time:
            return 0, 0.0
        if now >= self.waypoints[-1].scheduled_time:
            return last, 1.0
        for i in range(last + 1):
            start = self.waypoints[i].scheduled_time
            end = self.waypoints[i + 1].scheduled_time
            if start <= now <= end:
                span = (end - start).total_seconds()
                frac = (now - start).total_seconds() / span if span > 0 else 1.0
                return i, max(0.0, min(1.0, frac))
        return last, 1.0

    def position_at(self, now: datetime.datetime) -> tuple[float, float] | None:
        """Return estimated (lat, lon) at `now`."""
        if not self.waypoints:
            return None
        if self._line is None:
            return self.waypoints[0].coordinates
        seg, frac = self._locate(ensure_utc(now))
        along = sum(self._seg_deg[:seg]) + self._seg_deg[seg] * frac
        pt = self._line.interpolate(max(0.0, min(self._line.length, along)))
        return (pt.y, pt.x)  # (lat, lon)

    def total_length_km(self) -> float:
        return sum(self._seg_m) / 1000.0

    def remaining_km(self, now: datetime.datetime) -> float:
        if self._line is None:
            return 0.0
        seg, frac = self._locate(ensure_utc(now))
        remaining_m = self._seg_m[seg] * (1.0 - frac) + sum(self._seg_m[seg + 1:])
        return remaining_m / 1000.0
