"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import journeys, ws
from app.config import settings
from app.core.broadcaster import Broadcaster
from app.core.journey_tracker import JourneyTracker
from app.core.progress_engine import ProgressEngine
from app.core.route_resolver import RouteResolver
from app.core.scheduler import create_scheduler
from app.core.trips_client import TripsClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    trips = TripsClient()
    broadcaster = Broadcaster()
    await broadcaster.connect()

    tracker = JourneyTracker(
        RouteResolver(trips),
        broadcaster,
        ProgressEngine(ready_threshold=settings.completion_threshold),
    )

    # Wire up API modules
    ws.broadcaster = broadcaster
    ws.tracker = tracker
    journeys.tracker = tracker
    journeys.trips_client = trips

    scheduler = create_scheduler(tracker)
    scheduler.start()
    logger.info("Journey service started - refreshing progress every %ds", settings.poll_interval_seconds)

    yield

    # Shutdown
    scheduler.shutdown(wait=False)
    await trips.close()
    await broadcaster.close()
    logger.info("Journey service shut down")


app = FastAPI(
    title="Live Journey Progress",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(journeys.router)
app.include_router(ws.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
