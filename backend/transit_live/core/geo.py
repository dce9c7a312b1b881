"""Geospatial helpers: haversine distance, nearest stops and map-region filtering."""

import logging
import math

from shapely.geometry import Point, box

from transit_live.schemas.static import Region, Stop

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
MIN_REGION_DELTA = 0.0005


def is_finite_number(value) -> bool:
    """True only for real int/float values that are finite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def haversine_km(lat1, lon1, lat2, lon2) -> float:
    """Great-circle distance in km, or NaN when any coordinate is unusable."""
    if not all(is_finite_number(v) for v in (lat1, lon1, lat2, lon2)):
        return math.nan
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def nearest_stops(stops: list[Stop], lat: float, lon: float, limit: int = 50) -> list[Stop]:
    """Stops sorted by distance from (lat, lon); stops with unknown distance are left out."""
    scored = []
    for s in stops:
        d = haversine_km(lat, lon, s.stop_lat, s.stop_lon)
        if math.isfinite(d):
            scored.append((d, s))
    scored.sort(key=lambda item: item[0])
    return [s for _, s in scored[:limit]]


def stops_visible(region: Region | None, visibility_delta: float) -> bool:
    """Stops are only drawn once the map is zoomed in past the visibility delta."""
    if region is None:
        return False
    return region.latitude_delta <= visibility_delta and region.longitude_delta <= visibility_delta


def visible_stops(
    stops: list[Stop],
    region: Region | None,
    fallback: Region,
    padding_factor: float,
) -> list[Stop]:
    """Stops inside the region grown by padding_factor on each side."""
    if not stops:
        return []
    region = region or fallback
    lat_delta = max(region.latitude_delta, MIN_REGION_DELTA)
    lon_delta = max(region.longitude_delta, MIN_REGION_DELTA)
    lat_half = lat_delta * (0.5 + padding_factor)
    lon_half = lon_delta * (0.5 + padding_factor)

    # Shapely uses (x, y) = (lon, lat)
    bounds = box(
        region.longitude - lon_half, region.latitude - lat_half,
        region.longitude + lon_half, region.latitude + lat_half,
    )
    result = []
    for s in stops:
        if not (is_finite_number(s.stop_lat) and is_finite_number(s.stop_lon)):
            continue
        # covers() keeps stops lying exactly on the edge
        if bounds.covers(Point(s.stop_lon, s.stop_lat)):
            result.append(s)
    logger.debug("Visible stops: %d of %d", len(result), len(stops))
    return result
