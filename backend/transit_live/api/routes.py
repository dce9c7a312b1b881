"""Route REST API endpoints."""

from fastapi import APIRouter, HTTPException

from transit_live.core.formatting import normalise_color
from transit_live.schemas.cards import DirectionUpdate, PinnedSlots, RouteCard
from transit_live.schemas.static import RouteInfo

router = APIRouter(prefix="/api/routes", tags=["routes"])

# Will be set by main.py
tracker = None


@router.get("", response_model=list[RouteInfo])
async def list_routes():
    """Get all routes of the static schedule."""
    if tracker is None:
        return []
    return [
        RouteInfo(
            id=r.route_id,
            short_name=r.route_short_name,
            long_name=r.route_long_name,
            description=r.route_desc,
            type=r.route_type,
            color=normalise_color(r.route_color),
        )
        for r in tracker.routes
    ]


@router.get("/cards", response_model=list[RouteCard])
async def list_route_cards():
    """Get ranked route cards, priority route first."""
    if tracker is None:
        return []
    return tracker.route_cards


@router.put("/{route_id}/direction", response_model=list[RouteCard])
async def set_direction(route_id: str, body: DirectionUpdate):
    """Remember the rider's direction for a route and return the re-ranked cards."""
    if tracker is None:
        return []
    if tracker.static_loaded and route_id not in tracker.routes_by_id:
        raise HTTPException(status_code=404, detail="Route not found")
    await tracker.set_direction_preference(route_id, body.direction_id)
    return tracker.route_cards


@router.get("/pinned", response_model=PinnedSlots)
async def get_pinned():
    if tracker is None:
        return PinnedSlots(pinned=[], slots=[])
    return PinnedSlots(pinned=tracker.pinned.routes, slots=tracker.pinned.slots())


@router.post("/{route_id}/pin", response_model=PinnedSlots)
async def toggle_pin(route_id: str):
    """Pin the route, or unpin it if already pinned."""
    if tracker is None:
        return PinnedSlots(pinned=[], slots=[])
    await tracker.toggle_pin(route_id)
    return PinnedSlots(pinned=tracker.pinned.routes, slots=tracker.pinned.slots())
