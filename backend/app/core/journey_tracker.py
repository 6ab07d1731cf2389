"""Live journey orchestrator: resolves routes, computes and publishes snapshots."""

import datetime
import logging

from app.config import settings
from app.core.broadcaster import Broadcaster
from app.core.journey import Journey, ProgressSnapshot, Waypoint
from app.core.progress_engine import ProgressEngine
from app.core.route_geometry import RouteGeometry
from app.core.route_resolver import ResolvedRoute, RouteResolver, SOURCE_FALLBACK, synthesize
from app.core.timeutils import utcnow
from app.schemas.journey import JourneyDetail, ProgressSnapshotOut, WaypointOut

logger = logging.getLogger(__name__)


class JourneyConflictError(Exception):
    """A different journey is already tracked under the same id."""


def _waypoint_out(wp: Waypoint) -> WaypointOut:
    return WaypointOut(
        city=wp.city,
        lat=wp.coordinates[0],
        lon=wp.coordinates[1],
        scheduled_time=wp.scheduled_time,
        status=wp.status.value,
    )


def snapshot_out(snapshot: ProgressSnapshot, route_source: str | None = None) -> ProgressSnapshotOut:
    """Render an engine snapshot with map geometry for API/WebSocket output."""
    geometry = RouteGeometry(snapshot.waypoints)
    position = geometry.position_at(snapshot.evaluated_at)
    return ProgressSnapshotOut(
        journey_id=snapshot.journey_id,
        evaluated_at=snapshot.evaluated_at,
        percentage=snapshot.percentage,
        ready_to_complete=snapshot.ready_to_complete,
        remaining_seconds=snapshot.remaining_seconds,
        current_index=snapshot.current_index,
        waypoints=[_waypoint_out(wp) for wp in snapshot.waypoints],
        position=list(position) if position else None,
        total_distance_km=round(geometry.total_length_km(), 1),
        remaining_distance_km=round(geometry.remaining_km(snapshot.evaluated_at), 1),
        route_source=route_source,
    )


class JourneyTracker:
    """Keeps the journeys under live tracking and refreshes their progress."""

    def __init__(
        self,
        resolver: RouteResolver,
        broadcaster: Broadcaster | None = None,
        engine: ProgressEngine | None = None,
        retention: datetime.timedelta | None = None,
    ) -> None:
        self.resolver = resolver
        self.broadcaster = broadcaster
        self.engine = engine or ProgressEngine()
        # How long a finished journey keeps being tracked
        if retention is None:
            retention = datetime.timedelta(minutes=settings.finished_retention_minutes)
        self.retention = retention
        # journey_id -> Journey
        self._journeys: dict[str, Journey] = {}
        # journey_id -> resolved waypoints
        self._routes: dict[str, ResolvedRoute] = {}

    @property
    def journey_ids(self) -> list[str]:
        return list(self._journeys)

    def get_journey(self, journey_id: str) -> Journey | None:
        return self._journeys.get(journey_id)

    async def register(self, journey: Journey) -> ProgressSnapshotOut:
        """Start tracking a journey. Re-registering identical data is a no-op."""
        self._check_conflict(journey)

        resolved = self._routes.get(journey.id)
        if resolved is None:
            resolved = await self.resolver.resolve(journey.id, journey.route)
            # Another registration of the same id may have landed while resolving
            self._check_conflict(journey)
        self._routes.setdefault(journey.id, resolved)
        self._journeys[journey.id] = journey
        logger.info(
            "Tracking journey %s: %s -> %s (%d waypoints, %s)",
            journey.id, journey.source, journey.destination,
            len(journey.route), self._routes[journey.id].source,
        )
        return self.get_snapshot(journey.id)

    def _check_conflict(self, journey: Journey) -> None:
        existing = self._journeys.get(journey.id)
        if existing is not None and existing != journey:
            raise JourneyConflictError(f"journey {journey.id} is already tracked with different data")

    def unregister(self, journey_id: str) -> bool:
        journey = self._journeys.pop(journey_id, None)
        self._routes.pop(journey_id, None)
        self.resolver.forget(journey_id)
        if self.broadcaster:
            self.broadcaster.forget(journey_id)
        if journey is not None:
            logger.info("Stopped tracking journey %s", journey_id)
        return journey is not None

    def get_snapshot(self, journey_id: str, now=None) -> ProgressSnapshotOut | None:
        journey = self._journeys.get(journey_id)
        if journey is None:
            return None
        resolved = self._routes.get(journey_id) or ResolvedRoute(synthesize(journey.route), SOURCE_FALLBACK)
        snapshot = self.engine.snapshot(journey, resolved.waypoints, now)
        return snapshot_out(snapshot, route_source=resolved.source)

    def preview(self, journey: Journey, now=None) -> ProgressSnapshotOut:
        """Snapshot for an untracked journey from the static city table only."""
        snapshot = self.engine.snapshot(journey, synthesize(journey.route), now)
        return snapshot_out(snapshot, route_source=SOURCE_FALLBACK)

    def get_detail(self, journey_id: str) -> JourneyDetail | None:
        journey = self._journeys.get(journey_id)
        if journey is None:
            return None
        snap = self.get_snapshot(journey_id)
        return JourneyDetail(
            id=journey.id,
            source=journey.source,
            destination=journey.destination,
            departure_time=journey.departure_time,
            arrival_time=journey.arrival_time,
            route=list(journey.route),
            host=journey.host,
            transport_provider=journey.transport_provider,
            transport_type=journey.transport_type,
            route_source=snap.route_source or SOURCE_FALLBACK,
            waypoints=snap.waypoints,
        )

    def list_snapshots(self, now=None) -> list[ProgressSnapshotOut]:
        now = now or utcnow()
        return [self.get_snapshot(jid, now) for jid in self.journey_ids]

    async def refresh_snapshots(self) -> int:
        """Recompute every tracked journey and publish the result.

        Journeys finished longer ago than the retention window get a final
        publish and are then dropped from tracking.
        """
        now = utcnow()
        published = 0
        for journey_id in self.journey_ids:
            try:
                snap = self.get_snapshot(journey_id, now)
                if snap is None:
                    continue
                if self.broadcaster:
                    await self.broadcaster.publish(journey_id, snap.model_dump(mode="json"))
                published += 1
            except Exception:
                logger.exception("Failed to refresh journey %s", journey_id)

            journey = self._journeys.get(journey_id)
            if journey is not None and now > journey.arrival_time + self.retention:
                logger.info("Journey %s finished at %s, dropping", journey_id, journey.arrival_time.isoformat())
                self.unregister(journey_id)
        logger.debug("Refreshed %d journeys", published)
        return published
