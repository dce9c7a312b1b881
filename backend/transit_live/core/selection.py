"""Session state: focused vehicle/stop, pinned routes, per-route direction choice."""

from enum import Enum
import logging

from transit_live.schemas.cards import PinnedRoute
from transit_live.schemas.vehicle import Vehicle

logger = logging.getLogger(__name__)

MAX_PINNED_ROUTES = 4


class Focus(str, Enum):
    UNFOCUSED = "unfocused"
    VEHICLE = "vehicle"
    STOP = "stop"


class SelectionState:
    """At most one of vehicle or stop is focused at any time."""

    def __init__(self) -> None:
        self.selected_vehicle_id: str | None = None
        self.selected_stop_id: str | None = None
        self.priority_route_id: str | None = None

    @property
    def focus(self) -> Focus:
        if self.selected_vehicle_id is not None:
            return Focus.VEHICLE
        if self.selected_stop_id is not None:
            return Focus.STOP
        return Focus.UNFOCUSED

    def select_vehicle(self, vehicle_id: str | None) -> None:
        if not vehicle_id:
            return
        self.selected_stop_id = None
        self.selected_vehicle_id = vehicle_id

    def select_stop(self, stop_id: str | None) -> None:
        if not stop_id:
            return
        self.selected_vehicle_id = None
        self.selected_stop_id = stop_id

    def clear(self) -> None:
        self.selected_vehicle_id = None
        self.selected_stop_id = None

    def set_priority_route(self, route_id: str | None) -> None:
        self.priority_route_id = route_id

    def reconcile(self, vehicles: list[Vehicle]) -> None:
        """Keep a vehicle focus valid against a new snapshot.

        A focused vehicle missing from the snapshot hands focus to the first
        vehicle of the snapshot, or drops it when the snapshot is empty.
        """
        if self.focus is not Focus.VEHICLE:
            return
        if any(v.id == self.selected_vehicle_id for v in vehicles):
            return
        previous = self.selected_vehicle_id
        self.selected_vehicle_id = vehicles[0].id if vehicles else None
        logger.debug("Selected vehicle %s gone, now %s", previous, self.selected_vehicle_id)

    def selected_vehicle(self, vehicles: list[Vehicle]) -> Vehicle | None:
        if self.selected_vehicle_id is None:
            return None
        return next((v for v in vehicles if v.id == self.selected_vehicle_id), None)

    def active_stop_id(self, vehicles: list[Vehicle]) -> str | None:
        """The focused stop, else the stop the focused vehicle reports."""
        if self.selected_stop_id is not None:
            return self.selected_stop_id
        vehicle = self.selected_vehicle(vehicles)
        return vehicle.stop_id if vehicle else None


class PinnedRoutes:
    """Most recently pinned first, capped at max_pins."""

    def __init__(self, max_pins: int = MAX_PINNED_ROUTES) -> None:
        self.max_pins = max_pins
        self._pins: list[PinnedRoute] = []

    @property
    def routes(self) -> list[PinnedRoute]:
        return list(self._pins)

    def load(self, items: list[dict]) -> None:
        pins = []
        for item in items:
            if isinstance(item, dict) and item.get("route_id"):
                pins.append(PinnedRoute(
                    route_id=str(item["route_id"]),
                    route_label=item.get("route_label"),
                ))
        self._pins = pins[:self.max_pins]

    def dump(self) -> list[dict]:
        return [p.model_dump() for p in self._pins]

    def is_pinned(self, route_id: str) -> bool:
        return any(p.route_id == route_id for p in self._pins)

    def toggle(self, route_id: str | None, route_label: str | None = None) -> bool:
        """Pin or unpin; returns True when the route ends up pinned."""
        if not route_id:
            return False
        if self.is_pinned(route_id):
            self._pins = [p for p in self._pins if p.route_id != route_id]
            return False
        self._pins = [PinnedRoute(route_id=route_id, route_label=route_label), *self._pins]
        self._pins = self._pins[:self.max_pins]
        return True

    def slots(self) -> list[PinnedRoute | None]:
        filled: list[PinnedRoute | None] = list(self._pins[:self.max_pins])
        while len(filled) < self.max_pins:
            filled.append(None)
        return filled


class DirectionPreferences:
    """route_id -> direction the rider last chose; survives across polls."""

    def __init__(self) -> None:
        self._by_route: dict[str, int] = {}

    def load(self, data: dict) -> None:
        prefs = {}
        for route_id, direction in data.items():
            try:
                prefs[str(route_id)] = int(direction)
            except (ValueError, TypeError):
                continue
        self._by_route = prefs

    def get(self, route_id: str) -> int | None:
        return self._by_route.get(route_id)

    def set(self, route_id: str, direction_id: int) -> None:
        self._by_route[route_id] = direction_id

    def as_dict(self) -> dict[str, int]:
        return dict(self._by_route)
