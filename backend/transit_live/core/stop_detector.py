"""Resolves the stop a vehicle is at or heading to.

An explicit stop id from the feed wins. Otherwise the nearest stop by
haversine distance is used, searched among the stops closest to the user
when that shortlist exists and among every known stop when it does not.
"""

import logging
import math

from transit_live.core.geo import haversine_km
from transit_live.schemas.static import Stop
from transit_live.schemas.vehicle import Vehicle

logger = logging.getLogger(__name__)

# Size of the user-location shortlist searched instead of the full stop set
NEARBY_STOP_CANDIDATES = 50


def _numeric(value):
    try:
        return int(value)
    except (ValueError, TypeError):
        pass
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


class StopResolver:
    """Finds a best-guess stop per vehicle against one static stop set."""

    def __init__(self, stops_by_id: dict, nearby_stops: list[Stop] | None = None) -> None:
        self._stops_by_id = stops_by_id
        self._candidates = nearby_stops if nearby_stops else list(stops_by_id.values())

    def resolve(self, vehicle: Vehicle) -> Stop | None:
        if vehicle.stop_id is not None:
            stop = self.lookup(self._stops_by_id, vehicle.stop_id)
            if stop is not None:
                return stop
        stop, _ = self._find_nearest_stop(self._candidates, vehicle.latitude, vehicle.longitude)
        return stop

    @staticmethod
    def lookup(stops_by_id: dict, stop_id) -> Stop | None:
        """Try the id as given, as a string and as a number."""
        for key in (stop_id, str(stop_id), _numeric(stop_id)):
            if key is None:
                continue
            stop = stops_by_id.get(key)
            if stop is not None:
                return stop
        return None

    @staticmethod
    def _find_nearest_stop(stops: list[Stop], lat: float, lon: float) -> tuple[Stop | None, float]:
        best: Stop | None = None
        best_dist = float("inf")
        for s in stops:
            d = haversine_km(lat, lon, s.stop_lat, s.stop_lon)
            if math.isfinite(d) and d < best_dist:
                best_dist = d
                best = s
        return best, best_dist


def resolve_stop(
    vehicle: Vehicle,
    stops_by_id: dict,
    nearby_stops: list[Stop] | None = None,
) -> Stop | None:
    return StopResolver(stops_by_id, nearby_stops).resolve(vehicle)
