"""Tests for TransitTracker: polling, snapshot replacement and session state."""

import asyncio

from transit_live.core.broadcaster import Broadcaster
from transit_live.core.provider_client import ProviderError
from transit_live.core.route_cards import STATIC_STOP_LABEL
from transit_live.core.vehicle_tracker import (
    LOCATION_ERROR_MESSAGE,
    REALTIME_ERROR_MESSAGE,
    STATIC_ERROR_MESSAGE,
    TransitTracker,
)
from transit_live.schemas.static import Route, ShapePoint, StaticSummary, Stop, Trip
from transit_live.schemas.vehicle import Vehicle

T0 = 1_700_000_000_000


def make_summary() -> StaticSummary:
    return StaticSummary(
        routes=[
            Route(route_id="1", route_short_name="1", route_long_name="Spring Garden"),
            Route(route_id="2", route_short_name="2", route_long_name="Dartmouth"),
        ],
        stops=[
            Stop(stop_id="S1", stop_name="Barrington St", stop_lat=44.6488, stop_lon=-63.5752),
            Stop(stop_id="S2", stop_name="Spring Garden Rd", stop_lat=44.6430, stop_lon=-63.5790),
        ],
        trips=[
            Trip(trip_id="t1", route_id="1", trip_headsign="Downtown", direction_id=0, shape_id="shp1"),
        ],
    )


def vehicle(vid: str, route_id: str = "1", trip_id: str | None = None, timestamp_ms: int = T0) -> Vehicle:
    return Vehicle(
        id=vid, route_id=route_id, trip_id=trip_id,
        latitude=44.6470, longitude=-63.5760, timestamp_ms=timestamp_ms,
    )


class FakeProvider:
    """Serves queued vehicle responses; an Exception is raised, a callable is awaited."""

    def __init__(self, summary=None, vehicle_responses=None) -> None:
        self.summary = summary if summary is not None else make_summary()
        self.vehicle_responses = list(vehicle_responses or [])
        self.shape_calls: list[str] = []
        # when set, shape fetches hang until the event fires
        self.shape_gate: asyncio.Event | None = None

    async def fetch_static_summary(self) -> StaticSummary:
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary

    async def fetch_shape(self, shape_id: str) -> list[ShapePoint]:
        self.shape_calls.append(shape_id)
        if self.shape_gate is not None:
            await self.shape_gate.wait()
        return [ShapePoint(latitude=44.64, longitude=-63.57, sequence=0)]

    async def fetch_vehicles(self) -> list[Vehicle]:
        response = self.vehicle_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return await response()
        return response


class MemoryPreferenceStore:
    def __init__(self) -> None:
        self.pinned: list[dict] = []
        self.directions: dict = {}

    async def load_pinned_routes(self) -> list[dict]:
        return list(self.pinned)

    async def save_pinned_routes(self, pinned: list[dict]) -> None:
        self.pinned = list(pinned)

    async def load_direction_preferences(self) -> dict:
        return dict(self.directions)

    async def save_direction_preferences(self, preferences: dict) -> None:
        self.directions = dict(preferences)


class Clock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_tracker(provider: FakeProvider, preferences=None, clock=None) -> TransitTracker:
    return TransitTracker(
        provider,
        Broadcaster(),
        preferences,
        clock=clock or Clock(),
        stale_threshold_ms=45_000,
        max_route_cards=15,
        max_pinned_routes=4,
    )


# -- static summary ----------------------------------------------------------


def test_outputs_empty_while_static_loading():
    tracker = make_tracker(FakeProvider())
    tracker.apply_snapshot([vehicle("v1")])
    assert tracker.loading_static
    assert tracker.route_cards == []
    assert tracker.stop_arrivals == []


def test_static_fallback_cards_without_vehicles():
    provider = FakeProvider(vehicle_responses=[[]])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert not tracker.loading_static
    assert [c.route_id for c in tracker.route_cards] == ["1", "2"]
    assert all(c.eta_minutes is None for c in tracker.route_cards)
    assert all(c.stop_label == STATIC_STOP_LABEL for c in tracker.route_cards)
    assert tracker.status_banner is None


def test_static_failure_sets_banner_and_retries():
    provider = FakeProvider(summary=ProviderError("Static summary", "Static summary request failed (503)", 503))
    tracker = make_tracker(provider)

    asyncio.run(tracker.load_static_summary())
    assert not tracker.loading_static
    assert not tracker.static_loaded
    assert tracker.status_banner == STATIC_ERROR_MESSAGE

    provider.summary = make_summary()
    asyncio.run(tracker.retry_static_summary())
    assert tracker.static_loaded
    assert tracker.status_banner is None
    assert len(tracker.routes) == 2


def test_retry_is_noop_once_loaded():
    provider = FakeProvider()
    tracker = make_tracker(provider)
    asyncio.run(tracker.load_static_summary())

    provider.summary = ProviderError("Static summary", "boom")
    asyncio.run(tracker.retry_static_summary())
    assert tracker.static_error is None


# -- polling -----------------------------------------------------------------


def test_successful_poll_replaces_snapshot():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1")], [vehicle("v2"), vehicle("v3", "2")]])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert [v.id for v in tracker.vehicles] == ["v2", "v3"]
    assert tracker.snapshot.generation == 2
    assert tracker.snapshot.fetched_at_ms == T0
    assert {c.route_id for c in tracker.route_cards} == {"1", "2"}


def test_failed_poll_keeps_last_snapshot():
    provider = FakeProvider(vehicle_responses=[
        [vehicle("v1")],
        ProviderError("Realtime vehicles", "Realtime vehicles request failed (500)", 500),
        [vehicle("v2")],
    ])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert [v.id for v in tracker.vehicles] == ["v1"]
    assert tracker.status_banner == REALTIME_ERROR_MESSAGE
    assert tracker.route_cards[0].vehicle_id == "v1"

    asyncio.run(tracker.poll_vehicles())
    assert [v.id for v in tracker.vehicles] == ["v2"]
    assert tracker.status_banner is None


def test_superseded_poll_is_discarded():
    provider = FakeProvider()
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(10)
            return [vehicle("old")]

        provider.vehicle_responses = [slow, [vehicle("new")]]
        first = asyncio.create_task(tracker.poll_vehicles())
        await started.wait()
        await tracker.poll_vehicles()
        await first

    asyncio.run(run())
    assert [v.id for v in tracker.vehicles] == ["new"]
    assert tracker.snapshot.generation == 2


def test_staleness_follows_the_clock():
    clock = Clock(T0 + 10_000)
    provider = FakeProvider(vehicle_responses=[[vehicle("v1"), vehicle("v2", timestamp_ms=T0 + 10_000)]])
    tracker = make_tracker(provider, clock=clock)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        assert tracker.stale_ids == set()

        clock.now = T0 + 54_500
        await tracker.tick_clock()

    asyncio.run(run())
    assert tracker.stale_ids == {"v1"}
    states = {s.id: s for s in tracker.vehicle_states()}
    assert states["v1"].is_stale
    assert not states["v2"].is_stale
    assert states["v1"].updated_label == "1m ago"


# -- selection ---------------------------------------------------------------


def test_selected_vehicle_falls_back_across_polls():
    provider = FakeProvider(vehicle_responses=[
        [vehicle("v1"), vehicle("v2")],
        [vehicle("v2"), vehicle("v3")],
        [vehicle("v3"), vehicle("v2")],
        [],
    ])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.select_vehicle("v1")
        await tracker.poll_vehicles()
        assert tracker.selection.selected_vehicle_id == "v2"
        await tracker.poll_vehicles()
        assert tracker.selection.selected_vehicle_id == "v2"
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert tracker.selection.selected_vehicle_id is None
    assert tracker.session_state().focus == "unfocused"


def test_selected_trip_shape_fetched_once():
    provider = FakeProvider(vehicle_responses=[
        [vehicle("v1", trip_id="t1")],
        [vehicle("v1", trip_id="t1")],
    ])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.select_vehicle("v1")
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert provider.shape_calls == ["shp1"]
    state = tracker.session_state()
    assert state.active_route_id == "1"
    assert len(state.selected_shape) == 1


def test_focused_stop_has_arrivals():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1", trip_id="t1")]])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.select_stop("S1")

    asyncio.run(run())
    state = tracker.session_state()
    assert state.focus == "stop"
    assert state.active_stop.stop_name == "Barrington St"
    assert [a.vehicle_id for a in state.stop_arrivals] == ["v1"]
    assert state.stop_arrivals[0].headsign == "Downtown"

    asyncio.run(tracker.clear_focus())
    assert tracker.stop_arrivals == []


def test_priority_route_moves_to_front():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1", "1"), vehicle("v2", "2")]])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()
        await tracker.set_priority_route("2")

    asyncio.run(run())
    assert tracker.route_cards[0].route_id == "2"


def test_location_error_banner_priority():
    provider = FakeProvider(vehicle_responses=[ProviderError("Realtime vehicles", "boom")])
    tracker = make_tracker(provider)
    asyncio.run(tracker.load_static_summary())

    tracker.set_location_error("denied")
    assert tracker.status_banner == LOCATION_ERROR_MESSAGE

    asyncio.run(tracker.poll_vehicles())
    assert tracker.status_banner == REALTIME_ERROR_MESSAGE

    tracker.static_error = "down"
    assert tracker.status_banner == STATIC_ERROR_MESSAGE


def test_user_location_ranks_cards():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1")]])
    tracker = make_tracker(provider)

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert tracker.route_cards[0].distance_km is None

    tracker.set_user_location(44.6488, -63.5752)
    assert tracker.route_cards[0].distance_km is not None

    tracker.set_user_location(float("nan"), -63.5752)
    assert tracker.user_location is None


# -- preferences -------------------------------------------------------------


def test_preferences_persist_across_sessions():
    store = MemoryPreferenceStore()
    tracker = make_tracker(FakeProvider(), store)

    async def run():
        await tracker.load_static_summary()
        assert await tracker.toggle_pin("1") is True
        await tracker.toggle_pin("2")
        await tracker.set_direction_preference("1", 1)

    asyncio.run(run())
    assert store.pinned == [
        {"route_id": "2", "route_label": "2"},
        {"route_id": "1", "route_label": "1"},
    ]
    assert store.directions == {"1": 1}

    restored = make_tracker(FakeProvider(), store)
    asyncio.run(restored.load_preferences())
    assert [p.route_id for p in restored.pinned.routes] == ["2", "1"]
    assert restored.directions.get("1") == 1


def test_publish_reaches_subscribers():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1")]])
    tracker = make_tracker(provider)
    queue = tracker.broadcaster.subscribe()

    async def run():
        await tracker.load_static_summary()
        await tracker.poll_vehicles()

    asyncio.run(run())
    assert queue.qsize() == 2
    assert tracker.get_diagnostics()["total_vehicles"] == 1


def test_slow_shape_does_not_hold_back_polls():
    provider = FakeProvider(vehicle_responses=[[vehicle("v1", trip_id="t1")] for _ in range(3)])
    tracker = make_tracker(provider)

    async def run():
        provider.shape_gate = asyncio.Event()
        await tracker.load_static_summary()
        tracker.selection.select_vehicle("v1")
        queue = tracker.broadcaster.subscribe()

        for _ in range(3):
            await asyncio.wait_for(tracker.poll_vehicles(), timeout=1)
        assert queue.qsize() == 3
        assert tracker.selected_shape is None

        provider.shape_gate.set()
        await tracker.shape_task
        assert queue.qsize() == 4

    asyncio.run(run())
    assert provider.shape_calls == ["shp1"]
    assert tracker.snapshot.generation == 3
    assert len(tracker.selected_shape) == 1
