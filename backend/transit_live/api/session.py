"""Rider session endpoints: focus, location and priority route."""

from fastapi import APIRouter, HTTPException

from transit_live.core.stop_detector import StopResolver
from transit_live.schemas.session import LocationUpdate, PriorityRouteUpdate, SessionState

router = APIRouter(prefix="/api/session", tags=["session"])

# Will be set by main.py
tracker = None


def _require_tracker():
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not initialized")
    return tracker


@router.get("", response_model=SessionState)
async def get_session():
    return _require_tracker().session_state()


@router.post("/vehicle/{vehicle_id}", response_model=SessionState)
async def select_vehicle(vehicle_id: str):
    """Focus a vehicle; clears any focused stop."""
    t = _require_tracker()
    if not any(v.id == vehicle_id for v in t.vehicles):
        raise HTTPException(status_code=404, detail="Vehicle not found")
    await t.select_vehicle(vehicle_id)
    return t.session_state()


@router.post("/stop/{stop_id}", response_model=SessionState)
async def select_stop(stop_id: str):
    """Focus a stop; clears any focused vehicle."""
    t = _require_tracker()
    stop = StopResolver.lookup(t.stops_by_id, stop_id)
    if stop is None:
        raise HTTPException(status_code=404, detail="Stop not found")
    await t.select_stop(stop.stop_id)
    return t.session_state()


@router.delete("/focus", response_model=SessionState)
async def clear_focus():
    t = _require_tracker()
    await t.clear_focus()
    return t.session_state()


@router.put("/location", response_model=SessionState)
async def update_location(body: LocationUpdate):
    """Report the rider's position, or why it is unavailable."""
    t = _require_tracker()
    if body.error:
        t.set_location_error(body.error)
    else:
        t.set_user_location(body.latitude, body.longitude)
    await t.publish()
    return t.session_state()


@router.put("/priority-route", response_model=SessionState)
async def set_priority_route(body: PriorityRouteUpdate):
    t = _require_tracker()
    await t.set_priority_route(body.route_id)
    return t.session_state()
