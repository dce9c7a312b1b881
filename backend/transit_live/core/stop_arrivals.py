"""Arrivals for one focused stop, ranked by distance-based ETA."""

import logging
import math

from transit_live.core.eta_calculator import displayed_eta_to_stop
from transit_live.core.formatting import format_distance, format_time
from transit_live.core.geo import haversine_km
from transit_live.core.route_cards import route_label
from transit_live.schemas.static import Route, Stop, Trip
from transit_live.schemas.vehicle import StopArrival, Vehicle

logger = logging.getLogger(__name__)

# Vehicles further out than this are not realistically approaching
MAX_ARRIVAL_MINUTES = 120
INBOUND_HEADSIGN = "Inbound service"


def build_stop_arrivals(
    stop: Stop | None,
    vehicles: list[Vehicle],
    routes_by_id: dict[str, Route],
    trips_by_id: dict[str, Trip],
    stale_ids=frozenset(),
) -> list[StopArrival]:
    if stop is None:
        return []

    arrivals = []
    for vehicle in vehicles:
        distance_km = haversine_km(vehicle.latitude, vehicle.longitude, stop.stop_lat, stop.stop_lon)
        if not math.isfinite(distance_km):
            continue
        eta = displayed_eta_to_stop(distance_km, vehicle.speed)
        if eta is None or eta >= MAX_ARRIVAL_MINUTES:
            continue
        route = routes_by_id.get(vehicle.route_id) if vehicle.route_id else None
        trip = trips_by_id.get(vehicle.trip_id) if vehicle.trip_id else None
        arrivals.append(StopArrival(
            vehicle_id=vehicle.id,
            route_label=route_label(route, vehicle.route_id),
            headsign=(trip.trip_headsign if trip else None) or INBOUND_HEADSIGN,
            eta_minutes=eta,
            timestamp=vehicle.timestamp,
            time_label=format_time(vehicle.timestamp),
            distance_label=format_distance(distance_km),
            is_stale=vehicle.id in stale_ids,
        ))

    arrivals.sort(key=lambda a: a.eta_minutes if a.eta_minutes is not None else math.inf)
    logger.debug("Stop %s: %d approaching vehicles", stop.stop_id, len(arrivals))
    return arrivals
