"""Time-based journey progress, waypoint schedule and waypoint status.

Everything here is a pure function of the journey timing, the resolved
waypoints and the evaluation time. Progress is linear in elapsed time and
every hop between consecutive waypoints is given the same duration.
"""

import datetime
import logging
import math
from collections.abc import Sequence

from app.core.journey import Journey, ProgressSnapshot, ResolvedWaypoint, Waypoint, WaypointStatus
from app.core.timeutils import ensure_utc, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

# Percentage at which the trip may be marked completed
READY_THRESHOLD = 90


def _coerce_now(now) -> datetime.datetime:
    if isinstance(now, datetime.datetime):
        return ensure_utc(now)
    parsed = parse_timestamp(now) if now is not None else None
    if parsed is None:
        if now is not None:
            logger.debug("Unusable evaluation time %r, using wall clock", now)
        return utcnow()
    return parsed


class ProgressEngine:
    """Computes ProgressSnapshots for journeys at a given time."""

    def __init__(self, ready_threshold: int = READY_THRESHOLD) -> None:
        self.ready_threshold = ready_threshold

    @staticmethod
    def percentage(
        departure: datetime.datetime,
        arrival: datetime.datetime,
        now=None,
    ) -> int:
        """Completion percentage 0..100.

        100 is only reported once `now` is past arrival, so a 100% journey
        always has every waypoint completed.
        """
        departure, arrival, now = ensure_utc(departure), ensure_utc(arrival), _coerce_now(now)
        duration = (arrival - departure).total_seconds()
        if duration <= 0:
            return 100
        if now < departure:
            return 0
        if now > arrival:
            return 100
        fraction = (now - departure).total_seconds() / duration
        pct = math.floor(100 * fraction + 0.5)
        return max(0, min(99, pct))

    @staticmethod
    def schedule_waypoints(
        waypoints: Sequence[ResolvedWaypoint],
        departure: datetime.datetime,
        arrival: datetime.datetime,
    ) -> list[Waypoint]:
        """Assign evenly spaced scheduled times from departure to arrival."""
        departure, arrival = ensure_utc(departure), ensure_utc(arrival)
        n = len(waypoints)
        if n == 0:
            return []
        if n == 1:
            wp = waypoints[0]
            return [Waypoint(city=wp.city, coordinates=wp.coordinates, scheduled_time=departure)]

        duration = arrival - departure
        if duration <= datetime.timedelta(0):
            logger.warning("Non-positive journey duration %s, collapsing schedule", duration)
            return [
                Waypoint(city=wp.city, coordinates=wp.coordinates, scheduled_time=departure)
                for wp in waypoints
            ]

        segment = duration / (n - 1)
        scheduled = []
        for i, wp in enumerate(waypoints):
            at = arrival if i == n - 1 else departure + segment * i
            scheduled.append(Waypoint(city=wp.city, coordinates=wp.coordinates, scheduled_time=at))
        return scheduled

    @staticmethod
    def status_of(waypoints: list[Waypoint], now=None) -> list[Waypoint]:
        """Assign completed/current/upcoming in place and return the list."""
        if not waypoints:
            return waypoints
        now = _coerce_now(now)

        if now < waypoints[0].scheduled_time:
            for wp in waypoints:
                wp.status = WaypointStatus.UPCOMING
            return waypoints

        current_seen = False
        for wp in waypoints:
            if current_seen:
                wp.status = WaypointStatus.UPCOMING
            elif now > wp.scheduled_time:
                wp.status = WaypointStatus.COMPLETED
            else:
                wp.status = WaypointStatus.CURRENT
                current_seen = True
        return waypoints

    def snapshot(
        self,
        journey: Journey,
        resolved: Sequence[ResolvedWaypoint],
        now=None,
    ) -> ProgressSnapshot:
        """Percentage, schedule and statuses for `journey` at `now`."""
        now = _coerce_now(now)
        pct = self.percentage(journey.departure_time, journey.arrival_time, now)
        waypoints = self.schedule_waypoints(resolved, journey.departure_time, journey.arrival_time)
        self.status_of(waypoints, now)
        remaining = max(0, int((journey.arrival_time - now).total_seconds()))
        return ProgressSnapshot(
            journey_id=journey.id,
            evaluated_at=now,
            percentage=pct,
            waypoints=waypoints,
            ready_to_complete=pct >= self.ready_threshold,
            remaining_seconds=remaining,
        )
