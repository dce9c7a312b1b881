"""APScheduler setup for periodic tasks."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


def create_scheduler(tracker) -> AsyncIOScheduler:
    """Create and configure the scheduler with all jobs."""
    from transit_live.config import settings

    scheduler = AsyncIOScheduler()

    # Poll vehicles every N seconds; a slow poll is cancelled by the next one,
    # so two instances may briefly overlap
    scheduler.add_job(
        tracker.poll_vehicles,
        "interval",
        seconds=settings.realtime_poll_interval_seconds,
        id="poll_vehicles",
        name="Poll provider for realtime vehicles",
        max_instances=2,
        coalesce=True,
    )

    # Staleness drifts with wall-clock time, independent of polling
    scheduler.add_job(
        tracker.tick_clock,
        "interval",
        seconds=settings.clock_tick_seconds,
        id="tick_clock",
        name="Re-evaluate vehicle staleness",
        max_instances=1,
    )

    # No-op once the static summary has loaded
    scheduler.add_job(
        tracker.retry_static_summary,
        "interval",
        seconds=settings.static_retry_seconds,
        id="retry_static_summary",
        name="Retry loading static GTFS summary",
        max_instances=1,
    )

    return scheduler
