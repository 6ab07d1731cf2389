"""Tests for JourneyTracker."""

import asyncio
import datetime

import orjson
import pytest

from app.core.broadcaster import Broadcaster
from app.core.journey import Journey
from app.core.journey_tracker import JourneyConflictError, JourneyTracker
from app.core.route_resolver import RouteResolver
from app.core.trips_client import RawCheckpoint

UTC = datetime.timezone.utc
DEP = datetime.datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
ARR = datetime.datetime(2026, 3, 1, 14, 30, tzinfo=UTC)


class StaticClient:
    def __init__(self):
        self.calls = 0

    async def fetch_checkpoints(self, journey_id):
        self.calls += 1
        return [RawCheckpoint(city="Dhaka"), RawCheckpoint(city="Khulna", lat=22.8, lon=89.5)]


def make_journey(**overrides) -> Journey:
    fields = dict(id="trip-1", source="Dhaka", destination="Khulna", departure_time=DEP, arrival_time=ARR)
    fields.update(overrides)
    return Journey(**fields)


def test_register_resolves_once():
    client = StaticClient()
    tracker = JourneyTracker(RouteResolver(client))

    async def run():
        await tracker.register(make_journey())
        return await tracker.register(make_journey())

    snap = asyncio.run(run())
    assert client.calls == 1
    assert snap.route_source == "remote"
    assert [w.city for w in snap.waypoints] == ["Dhaka", "Jashore", "Khulna"]
    assert (snap.waypoints[2].lat, snap.waypoints[2].lon) == (22.8, 89.5)


def test_register_conflict():
    tracker = JourneyTracker(RouteResolver(None))

    async def run():
        await tracker.register(make_journey())
        await tracker.register(make_journey(arrival_time=ARR + datetime.timedelta(hours=1)))

    with pytest.raises(JourneyConflictError):
        asyncio.run(run())


def test_snapshot_at_time():
    tracker = JourneyTracker(RouteResolver(None))
    asyncio.run(tracker.register(make_journey()))
    snap = tracker.get_snapshot("trip-1", datetime.datetime(2026, 3, 1, 11, 15, tzinfo=UTC))
    assert snap.percentage == 50
    assert snap.current_index == 1
    assert [w.status for w in snap.waypoints] == ["completed", "current", "upcoming"]
    assert tracker.get_snapshot("missing") is None


def test_refresh_publishes_every_journey():
    broadcaster = Broadcaster()
    tracker = JourneyTracker(RouteResolver(None), broadcaster)

    async def run():
        await tracker.register(make_journey())
        await tracker.register(make_journey(id="trip-2"))
        q = broadcaster.subscribe("trip-2")
        count = await tracker.refresh_snapshots()
        return count, q

    count, q = asyncio.run(run())
    assert count == 2
    message = orjson.loads(q.get_nowait())
    assert message["journey_id"] == "trip-2"
    assert message["snapshot"]["percentage"] == 100
    # Both journeys finished long ago: published once more, then dropped
    assert tracker.journey_ids == []


def test_refresh_keeps_recently_finished_journey():
    now = datetime.datetime.now(UTC)
    recent = make_journey(
        departure_time=now - datetime.timedelta(hours=3),
        arrival_time=now - datetime.timedelta(minutes=10),
    )
    tracker = JourneyTracker(RouteResolver(None), retention=datetime.timedelta(hours=1))
    asyncio.run(tracker.register(recent))
    asyncio.run(tracker.refresh_snapshots())
    assert tracker.journey_ids == ["trip-1"]

    tracker.retention = datetime.timedelta(0)
    asyncio.run(tracker.refresh_snapshots())
    assert tracker.journey_ids == []


class SlowStaticClient:
    async def fetch_checkpoints(self, journey_id):
        await asyncio.sleep(0.05)
        return [RawCheckpoint(city="Dhaka"), RawCheckpoint(city="Khulna")]


def test_overlapping_conflicting_registrations():
    tracker = JourneyTracker(RouteResolver(SlowStaticClient()))
    first = make_journey()
    second = make_journey(arrival_time=ARR + datetime.timedelta(hours=5))

    async def run():
        return await asyncio.gather(
            tracker.register(first), tracker.register(second), return_exceptions=True,
        )

    results = asyncio.run(run())
    conflicts = [r for r in results if isinstance(r, JourneyConflictError)]
    assert len(conflicts) == 1
    assert tracker.get_journey("trip-1") == first
    assert tracker.get_journey("trip-1").arrival_time == ARR


def test_overlapping_identical_registrations():
    tracker = JourneyTracker(RouteResolver(SlowStaticClient()))

    async def run():
        return await asyncio.gather(tracker.register(make_journey()), tracker.register(make_journey()))

    first, second = asyncio.run(run())
    assert first.percentage == second.percentage == 100
    assert tracker.journey_ids == ["trip-1"]


def test_unregister():
    tracker = JourneyTracker(RouteResolver(None))
    asyncio.run(tracker.register(make_journey()))
    assert tracker.unregister("trip-1") is True
    assert tracker.unregister("trip-1") is False
    assert tracker.journey_ids == []
