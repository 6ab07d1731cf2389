"""APScheduler setup for periodic tasks."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


def create_scheduler(tracker) -> AsyncIOScheduler:
    """Create and configure the scheduler with all jobs."""
    from app.config import settings

    scheduler = AsyncIOScheduler()

    # Recompute and publish live journey progress every N seconds
    scheduler.add_job(
        tracker.refresh_snapshots,
        "interval",
        seconds=settings.poll_interval_seconds,
        id="refresh_journeys",
        name="Refresh live journey progress",
        max_instances=1,
    )

    return scheduler
