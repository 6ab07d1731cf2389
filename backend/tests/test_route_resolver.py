"""Tests for RouteResolver and TripsClient checkpoint parsing."""

import asyncio

import httpx

from app.core.geo import DEFAULT_COORDINATES, lookup_coordinates
from app.core.route_resolver import SOURCE_FALLBACK, SOURCE_REMOTE, RouteResolver
from app.core.trips_client import RawCheckpoint, TripsClient

ROUTE = ["Dhaka", "Comilla", "Feni", "Chittagong", "Cox's Bazar"]


def make_client(handler) -> TripsClient:
    return TripsClient(
        base_url="http://trips.test",
        transport=httpx.MockTransport(handler),
        retry_backoff=[0],
    )


def resolve(resolver: RouteResolver, journey_id: str, route: list[str]):
    return asyncio.run(resolver.resolve(journey_id, route))


class SlowClient:
    async def fetch_checkpoints(self, journey_id):
        await asyncio.sleep(5)
        return [RawCheckpoint(city="Dhaka")]


class CountingClient:
    def __init__(self, checkpoints):
        self.calls = 0
        self.checkpoints = checkpoints

    async def fetch_checkpoints(self, journey_id):
        self.calls += 1
        return self.checkpoints


class BrokenClient:
    async def fetch_checkpoints(self, journey_id):
        raise RuntimeError("boom")


def test_fallback_on_server_error():
    client = make_client(lambda request: httpx.Response(500, json={"success": False}))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK
    assert [w.city for w in result.waypoints] == ROUTE
    assert result.waypoints[0].coordinates == lookup_coordinates("Dhaka")


def test_fallback_on_empty_list():
    client = make_client(lambda request: httpx.Response(200, json={"success": True, "checkpoints": []}))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK
    assert len(result.waypoints) == len(ROUTE)


def test_fallback_on_malformed_payload():
    client = make_client(lambda request: httpx.Response(200, json={"checkpoints": [{"time": "x"}]}))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK


def test_fallback_on_connect_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = resolve(RouteResolver(make_client(handler)), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK
    assert [w.city for w in result.waypoints] == ROUTE


def test_fallback_on_timeout():
    result = resolve(RouteResolver(SlowClient(), timeout=0.05), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK
    assert len(result.waypoints) == len(ROUTE)


def test_fallback_on_unexpected_exception():
    result = resolve(RouteResolver(BrokenClient()), "trip-1", ["Dhaka", "Khulna"])
    assert result.source == SOURCE_FALLBACK
    assert [w.city for w in result.waypoints] == ["Dhaka", "Khulna"]


def test_fallback_without_client_uses_default_for_unknown_city():
    result = resolve(RouteResolver(None), "trip-1", ["Dhaka", "Atlantis", "Khulna"])
    assert result.waypoints[1].coordinates == DEFAULT_COORDINATES
    assert result.waypoints[2].coordinates == lookup_coordinates("Khulna")


def test_remote_coordinates_override_table():
    payload = {
        "success": True,
        "checkpoints": [
            {"city": "Dhaka - Start", "time": "2026-03-01T08:00:00Z"},
            {"city": "Comilla", "lat": 23.5, "lon": 91.2},
            {"city": "Feni"},
            {"city": "Chittagong", "latitude": 22.3, "longitude": 91.8},
            {"city": "Cox's Bazar - End"},
        ],
    }
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json=payload)

    result = resolve(RouteResolver(make_client(handler)), "trip-7", ROUTE)
    assert seen == ["/api/trips/trip-7/checkpoints"]
    assert result.source == SOURCE_REMOTE
    assert [w.city for w in result.waypoints] == ROUTE
    assert result.waypoints[1].coordinates == (23.5, 91.2)
    assert result.waypoints[2].coordinates == lookup_coordinates("Feni")
    assert result.waypoints[3].coordinates == (22.3, 91.8)


def test_remote_disagreement_keeps_route_length():
    client = make_client(lambda request: httpx.Response(200, json=["Dhaka", "Chittagong", "Cox's Bazar"]))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert [w.city for w in result.waypoints] == ROUTE


def test_resolution_is_cached_per_journey():
    client = CountingClient([RawCheckpoint(city="Dhaka"), RawCheckpoint(city="Khulna")])
    resolver = RouteResolver(client)

    async def run():
        await resolver.resolve("trip-1", ["Dhaka", "Khulna"])
        await resolver.resolve("trip-1", ["Dhaka", "Khulna"])
        resolver.forget("trip-1")
        await resolver.resolve("trip-1", ["Dhaka", "Khulna"])

    asyncio.run(run())
    assert client.calls == 2


def test_checkpoint_retry_then_success():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"checkpoints": [{"name": "Dhaka"}, {"name": "Khulna"}]})

    client = make_client(handler)
    checkpoints = asyncio.run(client.fetch_checkpoints("trip-1"))
    assert len(attempts) == 2
    assert [cp.city for cp in checkpoints] == ["Dhaka", "Khulna"]


def test_checkpoint_invalid_coordinates_ignored():
    cp = TripsClient._parse_checkpoint({"city": "Feni", "lat": 0, "lon": 0})
    assert cp is not None
    assert cp.coordinates is None


def test_remote_with_nothing_usable_reports_fallback():
    payload = {"checkpoints": [{"city": "Sylhet", "lat": 24.9, "lon": 91.9}, {"city": "Rangpur"}]}
    client = make_client(lambda request: httpx.Response(200, json=payload))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert result.source == SOURCE_FALLBACK
    assert [w.coordinates for w in result.waypoints] == [lookup_coordinates(c) for c in ROUTE]


def test_remote_matching_route_without_coordinates_is_remote():
    client = make_client(lambda request: httpx.Response(200, json={"checkpoints": ROUTE}))
    result = resolve(RouteResolver(client), "trip-1", ROUTE)
    assert result.source == SOURCE_REMOTE
    assert result.waypoints[0].coordinates == lookup_coordinates("Dhaka")


def test_checkpoint_time_is_ignored():
    cp = TripsClient._parse_checkpoint({"city": "Feni", "time": "2026-03-01T11:15:00Z"})
    assert cp == RawCheckpoint(city="Feni")
