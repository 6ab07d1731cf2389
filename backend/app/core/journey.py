"""Journey and waypoint value types."""

import datetime
import enum
from dataclasses import dataclass, field

from app.core.geo import default_route
from app.core.timeutils import ensure_utc


class InvalidJourneyError(ValueError):
    """Journey metadata violates one of its invariants."""


class WaypointStatus(str, enum.Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    UPCOMING = "upcoming"


@dataclass(frozen=True)
class Journey:
    id: str
    source: str
    destination: str
    departure_time: datetime.datetime
    arrival_time: datetime.datetime
    route: tuple[str, ...] = ()
    host: str | None = None
    transport_provider: str | None = None
    transport_type: str | None = None

    def __post_init__(self) -> None:
        if not str(self.id).strip():
            raise InvalidJourneyError("journey id must not be empty")
        if not self.source.strip() or not self.destination.strip():
            raise InvalidJourneyError("source and destination must not be empty")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "departure_time", ensure_utc(self.departure_time))
        object.__setattr__(self, "arrival_time", ensure_utc(self.arrival_time))
        if self.arrival_time <= self.departure_time:
            raise InvalidJourneyError(
                f"arrival {self.arrival_time.isoformat()} is not after "
                f"departure {self.departure_time.isoformat()}"
            )

        route = tuple(self.route) or tuple(default_route(self.source, self.destination))
        object.__setattr__(self, "route", route)
        if len(route) < 2:
            raise InvalidJourneyError("route needs at least two cities")
        if route[0] != self.source or route[-1] != self.destination:
            raise InvalidJourneyError(
                f"route must run from {self.source!r} to {self.destination!r}, "
                f"got {route[0]!r} .. {route[-1]!r}"
            )
        for prev, city in zip(route, route[1:]):
            if prev == city:
                raise InvalidJourneyError(f"duplicate adjacent city {city!r} in route")

    @property
    def duration(self) -> datetime.timedelta:
        return self.arrival_time - self.departure_time


@dataclass(frozen=True)
class ResolvedWaypoint:
    city: str
    coordinates: tuple[float, float]  # (lat, lon)


@dataclass
class Waypoint:
    city: str
    coordinates: tuple[float, float]
    scheduled_time: datetime.datetime
    status: WaypointStatus = WaypointStatus.UPCOMING


@dataclass
class ProgressSnapshot:
    journey_id: str
    evaluated_at: datetime.datetime
    percentage: int
    waypoints: list[Waypoint] = field(default_factory=list)
    ready_to_complete: bool = False
    remaining_seconds: int = 0

    @property
    def current_index(self) -> int | None:
        for i, wp in enumerate(self.waypoints):
            if wp.status is WaypointStatus.CURRENT:
                return i
        return None
