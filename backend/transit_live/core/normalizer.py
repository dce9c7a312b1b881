"""Turns provider payloads into the canonical static and vehicle records.

Anything without usable coordinates is dropped here, so downstream code can
assume every Vehicle and Stop has finite latitude/longitude.
"""

import datetime
import logging
import re

from pydantic import ValidationError

from transit_live.core.geo import is_finite_number
from transit_live.schemas.static import Route, ShapePoint, StaticSummary, Stop, Trip
from transit_live.schemas.vehicle import Vehicle

logger = logging.getLogger(__name__)

# fromisoformat on 3.10 only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"(?<=\d\d:\d\d:\d\d)\.(\d+)")


def _str_or_none(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _int_or_none(value) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def _float_or_none(value) -> float | None:
    return float(value) if is_finite_number(value) else None


def parse_timestamp_ms(raw) -> int | None:
    """Parse an ISO-8601 string (or epoch seconds) to epoch milliseconds."""
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(raw * 1000) if is_finite_number(raw) else None
    text = str(raw).strip()
    if text.isdigit():
        return int(text) * 1000
    try:
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        parsed = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return int(parsed.timestamp() * 1000)


def normalize_vehicle(raw: dict) -> Vehicle | None:
    """Map one realtime feed record to a Vehicle, or None if it has no valid position."""
    position = raw.get("position") or {}
    if not isinstance(position, dict):
        return None
    lat = position.get("latitude")
    lon = position.get("longitude")
    if not (is_finite_number(lat) and is_finite_number(lon)):
        return None

    route_id = _str_or_none(raw.get("routeId"))
    vehicle_id = (
        _str_or_none(raw.get("vehicleId"))
        or _str_or_none(raw.get("entityId"))
        or f"vehicle-{route_id or 'unknown'}"
    )
    timestamp = _str_or_none(raw.get("timestamp"))

    return Vehicle(
        id=vehicle_id,
        route_id=route_id,
        trip_id=_str_or_none(raw.get("tripId")),
        direction_id=_int_or_none(raw.get("directionId")),
        latitude=float(lat),
        longitude=float(lon),
        bearing=_float_or_none(position.get("bearing")),
        speed=_float_or_none(position.get("speed")),
        timestamp=timestamp,
        timestamp_ms=parse_timestamp_ms(timestamp),
        current_stop_sequence=_int_or_none(raw.get("currentStopSequence")),
        stop_id=_str_or_none(raw.get("stopId")),
        congestion_level=_str_or_none(raw.get("congestionLevel")),
        schedule_relationship=_str_or_none(raw.get("scheduleRelationship")),
        label=_str_or_none(raw.get("label")),
        license_plate=_str_or_none(raw.get("licensePlate")),
    )


def normalize_vehicles(raws) -> list[Vehicle]:
    vehicles = []
    dropped = 0
    for item in raws if isinstance(raws, list) else []:
        vehicle = normalize_vehicle(item) if isinstance(item, dict) else None
        if vehicle is None:
            dropped += 1
            continue
        vehicles.append(vehicle)
    if dropped:
        logger.debug("Dropped %d realtime records without a valid position", dropped)
    return vehicles


def _normalize_stop(item: dict) -> Stop | None:
    stop_id = _str_or_none(item.get("stop_id"))
    lat = item.get("stop_lat")
    lon = item.get("stop_lon")
    if not stop_id or not (is_finite_number(lat) and is_finite_number(lon)):
        return None
    return Stop(
        stop_id=stop_id,
        stop_name=_str_or_none(item.get("stop_name")),
        stop_lat=float(lat),
        stop_lon=float(lon),
    )


def _normalize_route(item: dict) -> Route | None:
    route_id = _str_or_none(item.get("route_id"))
    if not route_id:
        return None
    return Route(
        route_id=route_id,
        route_short_name=_str_or_none(item.get("route_short_name")),
        route_long_name=_str_or_none(item.get("route_long_name")),
        route_desc=_str_or_none(item.get("route_desc")),
        route_type=_int_or_none(item.get("route_type")),
        route_color=_str_or_none(item.get("route_color")),
    )


def _normalize_trip(item: dict) -> Trip | None:
    trip_id = _str_or_none(item.get("trip_id"))
    if not trip_id:
        return None
    return Trip(
        trip_id=trip_id,
        route_id=_str_or_none(item.get("route_id")),
        service_id=_str_or_none(item.get("service_id")),
        trip_headsign=_str_or_none(item.get("trip_headsign")),
        direction_id=_int_or_none(item.get("direction_id")),
        shape_id=_str_or_none(item.get("shape_id")),
    )


def _normalize_list(items, parse) -> list:
    result = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        try:
            record = parse(item)
        except ValidationError as e:
            logger.debug("Skipping malformed static record: %s", e)
            continue
        if record is not None:
            result.append(record)
    return result


def normalize_static_summary(payload) -> StaticSummary:
    """Build a StaticSummary; stops without finite coordinates or an id are dropped."""
    if not isinstance(payload, dict):
        payload = {}
    summary = StaticSummary(
        routes=_normalize_list(payload.get("routes"), _normalize_route),
        stops=_normalize_list(payload.get("stops"), _normalize_stop),
        trips=_normalize_list(payload.get("trips"), _normalize_trip),
    )
    logger.info(
        "Static summary: %d routes, %d stops, %d trips",
        len(summary.routes), len(summary.stops), len(summary.trips),
    )
    return summary


def normalize_shape_points(payload) -> list[ShapePoint]:
    """Shape points with finite coordinates, ordered by sequence."""
    points = payload.get("points") if isinstance(payload, dict) else None
    result = []
    for item in points if isinstance(points, list) else []:
        if not isinstance(item, dict):
            continue
        lat = item.get("shape_pt_lat")
        lon = item.get("shape_pt_lon")
        if not (is_finite_number(lat) and is_finite_number(lon)):
            continue
        result.append(ShapePoint(
            latitude=float(lat),
            longitude=float(lon),
            sequence=_int_or_none(item.get("shape_pt_sequence")) or 0,
        ))
    result.sort(key=lambda p: p.sequence)
    return result
