"""Journey progress REST API endpoints."""

import datetime

from fastapi import APIRouter, HTTPException

from app.core.journey import InvalidJourneyError, Journey
from app.core.journey_tracker import JourneyConflictError
from app.core.timeutils import utcnow
from app.core.trips_client import CompletionSubmitError
from app.schemas.journey import (
    CompletionRequest,
    CompletionResult,
    CompletionStatus,
    JourneyDetail,
    JourneyIn,
    ProgressRequest,
    ProgressSnapshotOut,
)

router = APIRouter(prefix="/api", tags=["journeys"])

# Will be set by main.py
tracker = None
trips_client = None


def _require_tracker():
    if tracker is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return tracker


def _to_journey(data: JourneyIn) -> Journey:
    try:
        return Journey(
            id=data.id,
            source=data.source,
            destination=data.destination,
            departure_time=data.departure_time,
            arrival_time=data.arrival_time,
            route=tuple(data.route or ()),
            host=data.host,
            transport_provider=data.transport_provider,
            transport_type=data.transport_type,
        )
    except InvalidJourneyError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/journeys", response_model=ProgressSnapshotOut, status_code=201)
async def register_journey(data: JourneyIn):
    """Start live tracking of a confirmed journey."""
    t = _require_tracker()
    journey = _to_journey(data)
    try:
        return await t.register(journey)
    except JourneyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/journeys", response_model=list[ProgressSnapshotOut])
async def list_journeys():
    """Current progress of every tracked journey."""
    return _require_tracker().list_snapshots()


@router.get("/journeys/{journey_id}", response_model=JourneyDetail)
async def get_journey(journey_id: str):
    detail = _require_tracker().get_detail(journey_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Journey not found")
    return detail


@router.get("/journeys/{journey_id}/progress", response_model=ProgressSnapshotOut)
async def get_progress(journey_id: str, at: datetime.datetime | None = None):
    """Progress snapshot at `at` (defaults to now)."""
    snap = _require_tracker().get_snapshot(journey_id, at)
    if snap is None:
        raise HTTPException(status_code=404, detail="Journey not found")
    return snap


@router.delete("/journeys/{journey_id}", status_code=204)
async def stop_tracking(journey_id: str):
    if not _require_tracker().unregister(journey_id):
        raise HTTPException(status_code=404, detail="Journey not found")


@router.post("/progress", response_model=ProgressSnapshotOut)
async def preview_progress(req: ProgressRequest):
    """Progress for an ad-hoc journey descriptor, without tracking it."""
    return _require_tracker().preview(_to_journey(req.journey), req.at)


@router.get("/journeys/{journey_id}/completion-status", response_model=CompletionStatus)
async def completion_status(journey_id: str):
    snap = _require_tracker().get_snapshot(journey_id)
    if snap is None:
        raise HTTPException(status_code=404, detail="Journey not found")
    return CompletionStatus(
        journey_id=journey_id,
        percentage=snap.percentage,
        can_complete=snap.ready_to_complete,
    )


@router.post("/journeys/{journey_id}/complete", response_model=CompletionResult)
async def complete_journey(journey_id: str, req: CompletionRequest):
    """Forward rating/review/photos to the trips service once the trip is ready."""
    t = _require_tracker()
    snap = t.get_snapshot(journey_id)
    if snap is None:
        raise HTTPException(status_code=404, detail="Journey not found")
    if not snap.ready_to_complete:
        raise HTTPException(
            status_code=409,
            detail=f"Journey is {snap.percentage}% complete, not ready to be completed yet",
        )
    if trips_client is None:
        raise HTTPException(status_code=503, detail="Trips service not configured")

    payload = {"rating": req.rating, "review": (req.review or "").strip() or None, "photos": req.photos}
    try:
        upstream = await trips_client.submit_completion(journey_id, payload)
    except CompletionSubmitError as e:
        raise HTTPException(status_code=502, detail=str(e))

    t.unregister(journey_id)
    return CompletionResult(journey_id=journey_id, completed_at=utcnow(), upstream=upstream)
