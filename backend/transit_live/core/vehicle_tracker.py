"""Main orchestrator: polls the provider, owns session state, recomputes projections.

The realtime snapshot is a versioned aggregate replaced wholesale on every
successful poll. Route cards, stop arrivals and staleness flags are pure
functions of the latest snapshot, the static summary and the selection
state, recomputed whenever any of those changes.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from transit_live.config import settings
from transit_live.core.broadcaster import Broadcaster
from transit_live.core.eta_calculator import now_ms
from transit_live.core.formatting import format_relative_time
from transit_live.core.geo import is_finite_number
from transit_live.core.provider_client import ProviderClient, ProviderError
from transit_live.core.route_cards import build_route_cards, prioritize_route
from transit_live.core.selection import DirectionPreferences, PinnedRoutes, SelectionState
from transit_live.core.shape_cache import ShapeCache
from transit_live.core.staleness import stale_vehicle_ids
from transit_live.core.stop_arrivals import build_stop_arrivals
from transit_live.core.stop_detector import StopResolver
from transit_live.schemas.cards import RouteCard
from transit_live.schemas.session import SessionState
from transit_live.schemas.static import Route, ShapePoint, StaticSummary, Stop, Trip
from transit_live.schemas.vehicle import StopArrival, Vehicle, VehicleState

logger = logging.getLogger(__name__)

STATIC_ERROR_MESSAGE = "Static GTFS data unavailable. Check backend."
REALTIME_ERROR_MESSAGE = "Realtime feed unreachable. Showing last known locations."
LOCATION_ERROR_MESSAGE = "Location unavailable. Enable permissions to center on you."


@dataclass(frozen=True)
class VehicleSnapshot:
    generation: int
    vehicles: list[Vehicle] = field(default_factory=list)
    fetched_at_ms: int | None = None


class TransitTracker:
    """Orchestrates the realtime reconciliation pipeline for one rider session."""

    def __init__(
        self,
        provider: ProviderClient,
        broadcaster: Broadcaster,
        preferences=None,
        clock: Callable[[], int] = now_ms,
        stale_threshold_ms: int | None = None,
        max_route_cards: int | None = None,
        max_pinned_routes: int | None = None,
    ) -> None:
        self.provider = provider
        self.broadcaster = broadcaster
        self.preferences = preferences
        self._clock = clock
        self.stale_threshold_ms = stale_threshold_ms or settings.stale_threshold_ms
        self.max_route_cards = max_route_cards or settings.max_route_cards

        # Static summary, immutable once loaded
        self.routes: list[Route] = []
        self.stops: list[Stop] = []
        self.trips: list[Trip] = []
        self.routes_by_id: dict[str, Route] = {}
        self.stops_by_id: dict[str, Stop] = {}
        self.trips_by_id: dict[str, Trip] = {}
        self.loading_static = True
        self.static_loaded = False
        self.static_error: str | None = None

        # Realtime snapshot; only the poll with the latest generation may replace it
        self.snapshot = VehicleSnapshot(generation=0)
        self.realtime_error: str | None = None
        self._generation = 0
        self._poll_task: asyncio.Task | None = None

        # Coarse clock for staleness and "updated X ago" labels
        self.now_ms = clock()
        self.stale_ids: set[str] = set()

        self.user_location: tuple[float, float] | None = None
        self.location_error: str | None = None

        self.selection = SelectionState()
        self.pinned = PinnedRoutes(max_pinned_routes or settings.max_pinned_routes)
        self.directions = DirectionPreferences()

        self.shape_cache = ShapeCache(provider.fetch_shape)
        self.shape_error: str | None = None
        # Runs beside polling; a poll never awaits or cancels it
        self.shape_task: asyncio.Task | None = None

        # Derived projections
        self.route_cards: list[RouteCard] = []
        self.stop_arrivals: list[StopArrival] = []

    @property
    def vehicles(self) -> list[Vehicle]:
        return self.snapshot.vehicles

    # ------------------------------------------------------------------
    # Loading

    async def load_preferences(self) -> None:
        if self.preferences is None:
            return
        self.pinned.load(await self.preferences.load_pinned_routes())
        self.directions.load(await self.preferences.load_direction_preferences())
        logger.info(
            "Loaded %d pinned routes and %d direction preferences",
            len(self.pinned.routes), len(self.directions.as_dict()),
        )

    def apply_static_summary(self, summary: StaticSummary) -> None:
        self.routes = summary.routes
        self.stops = summary.stops
        self.trips = summary.trips
        self.routes_by_id = {r.route_id: r for r in summary.routes}
        self.stops_by_id = {s.stop_id: s for s in summary.stops}
        self.trips_by_id = {t.trip_id: t for t in summary.trips}
        self.static_loaded = True
        self.static_error = None

    async def load_static_summary(self) -> None:
        """Fetch the static summary; on failure keep whatever was loaded before."""
        self.loading_static = True
        try:
            summary = await self.provider.fetch_static_summary()
            self.apply_static_summary(summary)
        except ProviderError as e:
            self.static_error = str(e)
            logger.error("Static summary unavailable: %s", e)
        finally:
            self.loading_static = False
        self.recompute()
        await self.publish()
        self.schedule_shape_load()

    async def retry_static_summary(self) -> None:
        if self.static_loaded:
            return
        await self.load_static_summary()

    # ------------------------------------------------------------------
    # Polling

    async def poll_vehicles(self) -> None:
        """Single poll cycle. Supersedes any poll still in flight."""
        previous = self._poll_task
        if previous is not None and not previous.done():
            previous.cancel()

        self._generation += 1
        generation = self._generation
        task = asyncio.create_task(self._fetch_snapshot(generation))
        self._poll_task = task
        try:
            await task
        except asyncio.CancelledError:
            if self._poll_task is task:
                raise
            logger.debug("Poll generation %d superseded", generation)

    async def _fetch_snapshot(self, generation: int) -> None:
        try:
            vehicles = await self.provider.fetch_vehicles()
        except ProviderError as e:
            if generation != self._generation:
                return
            self.realtime_error = str(e)
            logger.warning("Realtime poll failed, keeping %d vehicles: %s", len(self.vehicles), e)
            await self.publish()
            return

        if generation != self._generation:
            logger.debug("Discarding result of superseded poll %d", generation)
            return
        self.apply_snapshot(vehicles, generation)
        await self.publish()
        self.schedule_shape_load()

    def apply_snapshot(self, vehicles: list[Vehicle], generation: int | None = None) -> None:
        """Replace the vehicle snapshot and everything derived from it."""
        now = self._clock()
        self.snapshot = VehicleSnapshot(
            generation=generation if generation is not None else self.snapshot.generation + 1,
            vehicles=list(vehicles),
            fetched_at_ms=now,
        )
        self.realtime_error = None
        self.now_ms = now
        self.stale_ids = stale_vehicle_ids(self.vehicles, self.stale_threshold_ms, now)
        self.selection.reconcile(self.vehicles)
        self.recompute()

    async def tick_clock(self) -> None:
        """Re-evaluate staleness as time passes, even without new data."""
        self.now_ms = self._clock()
        stale = stale_vehicle_ids(self.vehicles, self.stale_threshold_ms, self.now_ms)
        if stale != self.stale_ids:
            logger.debug("Stale vehicles: %d -> %d", len(self.stale_ids), len(stale))
        self.stale_ids = stale
        self.recompute()
        await self.publish()

    # ------------------------------------------------------------------
    # Derived projections

    def recompute(self) -> None:
        if self.loading_static:
            self.route_cards = []
            self.stop_arrivals = []
            return

        cards = build_route_cards(
            self.vehicles,
            self.routes,
            self.routes_by_id,
            self.stops_by_id,
            self.trips_by_id,
            stale_ids=self.stale_ids,
            user_location=self.user_location,
            preferred_directions=self.directions.as_dict(),
            now=self.now_ms,
            max_cards=self.max_route_cards,
        )
        self.route_cards = prioritize_route(cards, self.selection.priority_route_id)

        focused_stop = None
        if self.selection.selected_stop_id is not None:
            focused_stop = StopResolver.lookup(self.stops_by_id, self.selection.selected_stop_id)
        self.stop_arrivals = build_stop_arrivals(
            focused_stop, self.vehicles, self.routes_by_id, self.trips_by_id, self.stale_ids,
        )

    def arrivals_for_stop(self, stop_id: str) -> list[StopArrival]:
        stop = StopResolver.lookup(self.stops_by_id, stop_id)
        return build_stop_arrivals(stop, self.vehicles, self.routes_by_id, self.trips_by_id, self.stale_ids)

    def vehicle_states(self) -> list[VehicleState]:
        return [
            VehicleState(
                **v.model_dump(),
                is_stale=v.id in self.stale_ids,
                updated_label=format_relative_time(v.timestamp_ms, self.now_ms),
            )
            for v in self.vehicles
        ]

    @property
    def selected_vehicle(self) -> Vehicle | None:
        return self.selection.selected_vehicle(self.vehicles)

    @property
    def selected_trip(self) -> Trip | None:
        vehicle = self.selected_vehicle
        if vehicle is None or not vehicle.trip_id:
            return None
        return self.trips_by_id.get(vehicle.trip_id)

    @property
    def active_route_id(self) -> str | None:
        trip = self.selected_trip
        if trip is not None and trip.route_id in self.routes_by_id:
            return trip.route_id
        vehicle = self.selected_vehicle
        if vehicle is not None and vehicle.route_id:
            route = self.routes_by_id.get(vehicle.route_id)
            return route.route_id if route else vehicle.route_id
        return None

    @property
    def selected_shape(self) -> list[ShapePoint] | None:
        trip = self.selected_trip
        return self.shape_cache.get(trip.shape_id) if trip else None

    async def load_selected_shape(self) -> None:
        trip = self.selected_trip
        if trip is None or not trip.shape_id or trip.shape_id in self.shape_cache:
            return
        try:
            await self.shape_cache.ensure(trip.shape_id)
            self.shape_error = None
        except ProviderError as e:
            self.shape_error = str(e)
            logger.warning("Shape %s unavailable: %s", trip.shape_id, e)

    def schedule_shape_load(self) -> None:
        """Fetch the selected trip's shape in the background and publish once it lands."""
        trip = self.selected_trip
        if trip is None or not trip.shape_id or trip.shape_id in self.shape_cache:
            return
        if self.shape_task is not None and not self.shape_task.done():
            return
        self.shape_task = asyncio.create_task(self._load_shape_and_publish())

    async def _load_shape_and_publish(self) -> None:
        await self.load_selected_shape()
        await self.publish()

    @property
    def status_banner(self) -> str | None:
        """Highest-priority active error: static > realtime > location."""
        if self.static_error:
            return STATIC_ERROR_MESSAGE
        if self.realtime_error:
            return REALTIME_ERROR_MESSAGE
        if self.location_error:
            return LOCATION_ERROR_MESSAGE
        return None

    # ------------------------------------------------------------------
    # Session mutators

    def set_user_location(self, latitude, longitude) -> None:
        if is_finite_number(latitude) and is_finite_number(longitude):
            self.user_location = (float(latitude), float(longitude))
            self.location_error = None
        else:
            self.user_location = None
        self.recompute()

    def set_location_error(self, message: str | None) -> None:
        self.location_error = message

    async def select_vehicle(self, vehicle_id: str) -> None:
        self.selection.select_vehicle(vehicle_id)
        self.recompute()
        await self.load_selected_shape()
        await self.publish()

    async def select_stop(self, stop_id: str) -> None:
        self.selection.select_stop(stop_id)
        self.recompute()
        await self.publish()

    async def clear_focus(self) -> None:
        self.selection.clear()
        self.recompute()
        await self.publish()

    async def set_priority_route(self, route_id: str | None) -> None:
        self.selection.set_priority_route(route_id)
        self.recompute()
        await self.publish()

    async def set_direction_preference(self, route_id: str, direction_id: int) -> None:
        self.directions.set(route_id, direction_id)
        if self.preferences is not None:
            await self.preferences.save_direction_preferences(self.directions.as_dict())
        self.recompute()
        await self.publish()

    async def toggle_pin(self, route_id: str) -> bool:
        route = self.routes_by_id.get(route_id)
        label = None
        if route is not None:
            label = route.route_short_name or route.route_long_name
        pinned = self.pinned.toggle(route_id, label or route_id)
        if self.preferences is not None:
            await self.preferences.save_pinned_routes(self.pinned.dump())
        return pinned

    # ------------------------------------------------------------------
    # Output

    def session_state(self) -> SessionState:
        active_stop_id = self.selection.active_stop_id(self.vehicles)
        active_stop = None
        if active_stop_id is not None:
            active_stop = StopResolver.lookup(self.stops_by_id, active_stop_id)
        return SessionState(
            focus=self.selection.focus.value,
            selected_vehicle_id=self.selection.selected_vehicle_id,
            selected_stop_id=self.selection.selected_stop_id,
            active_stop=active_stop,
            active_route_id=self.active_route_id,
            priority_route_id=self.selection.priority_route_id,
            stop_arrivals=self.stop_arrivals,
            selected_shape=self.selected_shape,
            status_banner=self.status_banner,
            loading_static=self.loading_static,
            snapshot_generation=self.snapshot.generation,
        )

    def state_payload(self) -> dict:
        return {
            "generation": self.snapshot.generation,
            "vehicles": [s.model_dump() for s in self.vehicle_states()],
            "route_cards": [c.model_dump() for c in self.route_cards],
            "stop_arrivals": [a.model_dump() for a in self.stop_arrivals],
            "status_banner": self.status_banner,
        }

    async def publish(self) -> None:
        await self.broadcaster.publish(self.state_payload())

    def get_diagnostics(self) -> dict:
        """Pipeline counters for debugging the reconciliation."""
        return {
            "static_loaded": self.static_loaded,
            "loading_static": self.loading_static,
            "total_routes": len(self.routes),
            "total_stops": len(self.stops),
            "total_trips": len(self.trips),
            "snapshot_generation": self.snapshot.generation,
            "snapshot_fetched_at_ms": self.snapshot.fetched_at_ms,
            "total_vehicles": len(self.vehicles),
            "stale_vehicles": len(self.stale_ids),
            "vehicles_with_stop_id": sum(1 for v in self.vehicles if v.stop_id),
            "route_cards": len(self.route_cards),
            "live_route_cards": sum(1 for c in self.route_cards if c.vehicle_id),
            "cached_shapes": len(self.shape_cache),
            "errors": {
                "static": self.static_error,
                "realtime": self.realtime_error,
                "location": self.location_error,
                "shape": self.shape_error,
            },
        }
