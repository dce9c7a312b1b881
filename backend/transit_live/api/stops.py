"""Stop REST API endpoints."""

from fastapi import APIRouter, HTTPException

from transit_live.config import settings
from transit_live.core.geo import stops_visible, visible_stops
from transit_live.core.stop_detector import StopResolver
from transit_live.schemas.static import Region, VisibleStops
from transit_live.schemas.vehicle import StopArrivals

router = APIRouter(prefix="/api/stops", tags=["stops"])

# Will be set by main.py
tracker = None


def _default_region() -> Region:
    return Region(
        latitude=settings.default_region_latitude,
        longitude=settings.default_region_longitude,
        latitude_delta=settings.default_region_latitude_delta,
        longitude_delta=settings.default_region_longitude_delta,
    )


@router.get("", response_model=VisibleStops)
async def list_stops(
    lat: float | None = None,
    lon: float | None = None,
    lat_delta: float | None = None,
    lon_delta: float | None = None,
):
    """Get stops inside the visible map region (empty while zoomed out)."""
    fallback = _default_region()
    region = Region(
        latitude=lat if lat is not None else fallback.latitude,
        longitude=lon if lon is not None else fallback.longitude,
        latitude_delta=lat_delta if lat_delta is not None else fallback.latitude_delta,
        longitude_delta=lon_delta if lon_delta is not None else fallback.longitude_delta,
    )
    show = stops_visible(region, settings.stop_visibility_delta)
    if tracker is None or not show:
        return VisibleStops(show_stops=show, stops=[])
    return VisibleStops(
        show_stops=True,
        stops=visible_stops(tracker.stops, region, fallback, settings.stop_padding_factor),
    )


@router.get("/{stop_id}/arrivals", response_model=StopArrivals)
async def get_arrivals(stop_id: str):
    """Get vehicles approaching a stop, soonest first."""
    if tracker is None:
        return StopArrivals(stop_id=stop_id, arrivals=[])
    stop = StopResolver.lookup(tracker.stops_by_id, stop_id)
    if stop is None:
        raise HTTPException(status_code=404, detail="Stop not found")
    return StopArrivals(
        stop_id=stop.stop_id,
        stop_name=stop.stop_name,
        arrivals=tracker.arrivals_for_stop(stop.stop_id),
    )
