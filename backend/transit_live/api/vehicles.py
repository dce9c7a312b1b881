"""Vehicle REST API endpoints."""

from fastapi import APIRouter, HTTPException

from transit_live.schemas.vehicle import VehicleState

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])

# Will be set by main.py
tracker = None


@router.get("", response_model=list[VehicleState])
async def list_vehicles(route: str | None = None):
    """Get all vehicles of the latest snapshot with staleness flags."""
    if tracker is None:
        return []
    states = tracker.vehicle_states()
    if route:
        states = [s for s in states if s.route_id == route]
    return states


@router.get("/{vehicle_id}", response_model=VehicleState)
async def get_vehicle(vehicle_id: str):
    """Get a specific vehicle by ID."""
    if tracker is not None:
        for state in tracker.vehicle_states():
            if state.id == vehicle_id:
                return state
    raise HTTPException(status_code=404, detail="Vehicle not found")
