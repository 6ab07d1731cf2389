import datetime

from pydantic import BaseModel, Field

from app.config import settings


class JourneyIn(BaseModel):
    id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    destination: str = Field(min_length=1)
    departure_time: datetime.datetime
    arrival_time: datetime.datetime
    route: list[str] | None = None  # defaults to the known corridor or [source, destination]
    host: str | None = None
    transport_provider: str | None = None
    transport_type: str | None = None


class ProgressRequest(BaseModel):
    journey: JourneyIn
    at: datetime.datetime | None = None


class WaypointOut(BaseModel):
    city: str
    lat: float
    lon: float
    scheduled_time: datetime.datetime
    status: str


class ProgressSnapshotOut(BaseModel):
    journey_id: str
    evaluated_at: datetime.datetime
    percentage: int
    ready_to_complete: bool
    remaining_seconds: int
    current_index: int | None = None
    waypoints: list[WaypointOut] = []
    position: list[float] | None = None  # [lat, lon]
    total_distance_km: float | None = None
    remaining_distance_km: float | None = None
    route_source: str | None = None


class JourneyDetail(BaseModel):
    id: str
    source: str
    destination: str
    departure_time: datetime.datetime
    arrival_time: datetime.datetime
    route: list[str]
    host: str | None = None
    transport_provider: str | None = None
    transport_type: str | None = None
    route_source: str
    waypoints: list[WaypointOut] = []


class CompletionRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: str | None = Field(default=None, max_length=settings.review_max_length)
    photos: list[str] = Field(default_factory=list, max_length=settings.max_photos)


class CompletionStatus(BaseModel):
    journey_id: str
    percentage: int
    can_complete: bool


class CompletionResult(BaseModel):
    journey_id: str
    status: str = "completed"
    completed_at: datetime.datetime
    upstream: dict = {}
