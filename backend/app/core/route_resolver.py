"""Resolve a journey's route to geocoded waypoints.

Remote checkpoint data is tried first; any failure falls back to the static
city table. The declared route is authoritative for count and order, remote
checkpoints only contribute coordinates.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.config import settings
from app.core.geo import lookup_coordinates, normalize_city
from app.core.journey import ResolvedWaypoint
from app.core.trips_client import RawCheckpoint, TripsClient

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_FALLBACK = "fallback"


@dataclass
class ResolvedRoute:
    waypoints: list[ResolvedWaypoint] = field(default_factory=list)
    source: str = SOURCE_FALLBACK


def synthesize(route: Sequence[str]) -> list[ResolvedWaypoint]:
    """Waypoints straight from the static table. Never raises."""
    return [ResolvedWaypoint(city=city, coordinates=lookup_coordinates(city)) for city in route]


class RouteResolver:
    """Remote-first waypoint resolution with a per-session cache."""

    def __init__(self, client: TripsClient | None, timeout: float | None = None) -> None:
        self.client = client
        self.timeout = settings.route_lookup_timeout_seconds if timeout is None else timeout
        self._cache: dict[str, ResolvedRoute] = {}

    async def resolve(self, journey_id: str, route: Sequence[str]) -> ResolvedRoute:
        cached = self._cache.get(journey_id)
        if cached is not None and [w.city for w in cached.waypoints] == list(route):
            return cached

        checkpoints = await self._fetch_remote(journey_id)
        if checkpoints:
            result = self._merge(journey_id, route, checkpoints)
        else:
            logger.info("Journey %s: using local route synthesis (%d cities)", journey_id, len(route))
            result = ResolvedRoute(waypoints=synthesize(route), source=SOURCE_FALLBACK)

        self._cache[journey_id] = result
        return result

    def forget(self, journey_id: str) -> None:
        self._cache.pop(journey_id, None)

    async def _fetch_remote(self, journey_id: str) -> list[RawCheckpoint]:
        if self.client is None:
            return []
        try:
            return await asyncio.wait_for(self.client.fetch_checkpoints(journey_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Journey %s: checkpoint lookup timed out after %ss", journey_id, self.timeout)
        except Exception:
            logger.exception("Journey %s: checkpoint lookup failed", journey_id)
        return []

    @staticmethod
    def _merge(
        journey_id: str, route: Sequence[str], checkpoints: list[RawCheckpoint],
    ) -> ResolvedRoute:
        """One waypoint per route city; remote coordinates win where present.

        The result counts as remote when the checkpoints list the route's
        cities in order or supply coordinates for at least one of them.
        """
        remote_keys = [normalize_city(cp.city) for cp in checkpoints]
        route_keys = [normalize_city(city) for city in route]
        agrees = remote_keys == route_keys
        if not agrees:
            logger.warning(
                "Journey %s: remote checkpoints %s disagree with route %s, keeping route",
                journey_id, remote_keys, route_keys,
            )

        remote_coords: dict[str, tuple[float, float]] = {}
        for key, cp in zip(remote_keys, checkpoints):
            coords = cp.coordinates
            if coords is not None:
                remote_coords.setdefault(key, coords)

        waypoints = []
        used_remote = False
        for city, key in zip(route, route_keys):
            coords = remote_coords.get(key)
            if coords is None:
                coords = lookup_coordinates(city)
            else:
                used_remote = True
            waypoints.append(ResolvedWaypoint(city=city, coordinates=coords))

        if not agrees and not used_remote:
            logger.info("Journey %s: remote checkpoints gave no usable coordinates, using local table", journey_id)
            return ResolvedRoute(waypoints=waypoints, source=SOURCE_FALLBACK)
        return ResolvedRoute(waypoints=waypoints, source=SOURCE_REMOTE)
