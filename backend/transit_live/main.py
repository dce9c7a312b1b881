"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transit_live.api import diagnostics, routes, session, stops, vehicles, ws
from transit_live.config import settings
from transit_live.core.broadcaster import Broadcaster
from transit_live.core.preferences import RedisPreferenceStore
from transit_live.core.provider_client import ProviderClient
from transit_live.core.scheduler import create_scheduler
from transit_live.core.vehicle_tracker import TransitTracker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def wire(tracker: TransitTracker | None, broadcaster: Broadcaster | None = None) -> None:
    """Hand the tracker to every API module."""
    ws.broadcaster = broadcaster
    ws.tracker = tracker
    vehicles.tracker = tracker
    stops.tracker = tracker
    routes.tracker = tracker
    session.tracker = tracker
    diagnostics.tracker = tracker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    provider = ProviderClient()
    broadcaster = Broadcaster()
    await broadcaster.connect()
    preferences = RedisPreferenceStore()
    await preferences.connect()

    tracker = TransitTracker(provider, broadcaster, preferences)
    wire(tracker, broadcaster)

    await tracker.load_preferences()
    # Failures are recorded on the tracker and retried by the scheduler
    await tracker.load_static_summary()

    scheduler = create_scheduler(tracker)
    scheduler.start()
    logger.info(
        "Transit Live started - polling provider every %ds",
        settings.realtime_poll_interval_seconds,
    )

    yield

    scheduler.shutdown(wait=False)
    await provider.close()
    await preferences.close()
    await broadcaster.close()
    logger.info("Transit Live shut down")


app = FastAPI(
    title="Transit Live",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes.router)
app.include_router(stops.router)
app.include_router(vehicles.router)
app.include_router(session.router)
app.include_router(diagnostics.router)
app.include_router(ws.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
