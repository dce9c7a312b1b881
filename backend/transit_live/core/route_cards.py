"""Route-card aggregation: one ranked, direction-aware card per route.

Every live vehicle becomes a draft card attached to its resolved stop. Drafts
are bucketed by stop, buckets are ranked by the stop's distance from the user,
and the ranked list is reduced to one card per route. Routes with nearby
service (the five closest stop buckets) push everything else off the list.
When the feed has nothing to offer, the first routes of the static schedule
are returned as placeholders.
"""

import logging
import math
import re

from transit_live.core.eta_calculator import displayed_eta_to_stop, estimate_eta_minutes
from transit_live.core.formatting import format_relative_time, normalise_color
from transit_live.core.geo import haversine_km, nearest_stops
from transit_live.core.stop_detector import NEARBY_STOP_CANDIDATES, StopResolver
from transit_live.schemas.cards import DirectionOption, RouteCard
from transit_live.schemas.static import Route, Stop, Trip
from transit_live.schemas.vehicle import Vehicle

logger = logging.getLogger(__name__)

MAX_ROUTE_CARDS = 15
# Number of closest stop buckets whose cards count as "near me"
PRIMARY_BUCKETS = 5

SEVERE_WARNING = "Delayed"
HEADSIGN_UNAVAILABLE = "Headsign unavailable"
STOP_UNAVAILABLE = "Stop info coming soon"
STATIC_HEADSIGN = "Service info pending"
STATIC_STOP_LABEL = "Searching nearby stops…"


def build_direction_catalogue(trips) -> dict[str, dict[int, str | None]]:
    """route_id -> {direction_id -> first non-empty headsign seen for it}."""
    catalogue: dict[str, dict[int, str | None]] = {}
    for trip in trips:
        if trip.route_id is None or trip.direction_id is None:
            continue
        directions = catalogue.setdefault(trip.route_id, {})
        if directions.get(trip.direction_id) is None:
            headsign = (trip.trip_headsign or "").strip()
            directions[trip.direction_id] = headsign or None
    return catalogue


def clean_headsign(headsign: str, route_label: str | None) -> str:
    """Drop a leading '<route label><separator>' from the headsign.

    '7 - Robie' on route 7 becomes 'Robie'. The original is kept when nothing
    would be left.
    """
    if not headsign or not route_label:
        return headsign
    pattern = re.compile(
        r"^\s*" + re.escape(route_label) + r"(?:\s*[-–—:|/·]\s*|\s+)",
        re.IGNORECASE,
    )
    cleaned = pattern.sub("", headsign, count=1).strip()
    return cleaned or headsign


def route_label(route: Route | None, fallback_route_id: str | None, default: str = "Route") -> str:
    if route is not None:
        if route.route_short_name:
            return route.route_short_name
        if route.route_long_name:
            return route.route_long_name
    return fallback_route_id or default


def _is_severe(congestion_level: str | None) -> bool:
    return bool(congestion_level) and "severe" in congestion_level.lower()


def _draft_card(
    vehicle: Vehicle,
    route: Route | None,
    trip: Trip | None,
    stop: Stop | None,
    user_location: tuple[float, float] | None,
    stale_ids,
    now: int | None,
) -> RouteCard:
    label = route_label(route, vehicle.route_id)
    headsign = (
        (trip.trip_headsign if trip else None)
        or (route.route_long_name if route else None)
        or HEADSIGN_UNAVAILABLE
    )

    distance_to_user = None
    eta = None
    if stop is not None:
        if user_location is not None:
            d = haversine_km(user_location[0], user_location[1], stop.stop_lat, stop.stop_lon)
            if math.isfinite(d):
                distance_to_user = d
        distance_to_stop = haversine_km(
            vehicle.latitude, vehicle.longitude, stop.stop_lat, stop.stop_lon,
        )
        eta = displayed_eta_to_stop(distance_to_stop, vehicle.speed)
    if eta is None:
        eta = estimate_eta_minutes(vehicle.timestamp_ms, now)

    direction_id = vehicle.direction_id
    if direction_id is None and trip is not None:
        direction_id = trip.direction_id

    route_id = (route.route_id if route else None) or vehicle.route_id
    return RouteCard(
        id=route_id or vehicle.id,
        route_id=route_id,
        route_label=label,
        headsign=clean_headsign(headsign, label),
        stop_id=stop.stop_id if stop else None,
        stop_label=(stop.stop_name if stop else None) or STOP_UNAVAILABLE,
        eta_minutes=eta,
        warning=SEVERE_WARNING if _is_severe(vehicle.congestion_level) else None,
        vehicle_id=vehicle.id,
        is_stale=vehicle.id in stale_ids,
        updated_label=format_relative_time(vehicle.timestamp_ms, now),
        distance_km=distance_to_user,
        direction_id=direction_id,
        color=normalise_color(route.route_color) if route else None,
    )


def _rank_candidates(drafts: list[RouteCard]) -> list[RouteCard]:
    """Order drafts by their stop's distance from the user and tag the primary ones."""
    buckets: dict[str, dict] = {}
    unlocated: list[RouteCard] = []
    for card in drafts:
        if card.stop_id is None or card.distance_km is None:
            unlocated.append(card)
            continue
        bucket = buckets.setdefault(card.stop_id, {"distance": card.distance_km, "cards": []})
        bucket["cards"].append(card)

    ordered = sorted(buckets.values(), key=lambda b: b["distance"])
    candidates = []
    for i, bucket in enumerate(ordered):
        primary = i < PRIMARY_BUCKETS
        for card in bucket["cards"]:
            candidates.append(card.model_copy(update={"is_primary": primary}))
    candidates.extend(unlocated)
    return candidates


def _direction_options(
    entries: list[RouteCard],
    catalogue: dict[int, str | None] | None,
) -> list[DirectionOption]:
    live = {c.direction_id for c in entries if c.direction_id is not None}
    headsigns = dict(catalogue) if catalogue else {}
    # live directions the schedule has no headsign for take the live one
    for c in entries:
        if c.direction_id is not None and headsigns.get(c.direction_id) is None:
            headsigns[c.direction_id] = c.headsign
    return [
        DirectionOption(direction_id=d, headsign=h, has_realtime=d in live)
        for d, h in sorted(headsigns.items())
    ]


def _pick_direction(
    entries: list[RouteCard],
    options: list[DirectionOption],
    preferred: int | None,
) -> tuple[RouteCard, int | None]:
    if preferred is not None:
        desired = preferred
    else:
        live = [o for o in options if o.has_realtime]
        if live:
            desired = live[0].direction_id
        elif options:
            desired = options[0].direction_id
        else:
            desired = entries[0].direction_id
    chosen = next((c for c in entries if c.direction_id == desired), entries[0])
    return chosen, desired


def static_route_cards(routes: list[Route], max_cards: int = MAX_ROUTE_CARDS) -> list[RouteCard]:
    """Placeholder cards for the first routes of the schedule, no live data."""
    cards = []
    for index, route in enumerate(routes[:max_cards]):
        cards.append(RouteCard(
            id=route.route_id or f"route-{index}",
            route_id=route.route_id,
            route_label=route_label(route, None, default=f"Route {index + 1}"),
            headsign=route.route_long_name or STATIC_HEADSIGN,
            stop_label=STATIC_STOP_LABEL,
            color=normalise_color(route.route_color),
        ))
    return cards


def build_route_cards(
    vehicles: list[Vehicle],
    routes: list[Route],
    routes_by_id: dict[str, Route],
    stops_by_id: dict[str, Stop],
    trips_by_id: dict[str, Trip],
    stale_ids=frozenset(),
    user_location: tuple[float, float] | None = None,
    preferred_directions: dict[str, int] | None = None,
    now: int | None = None,
    max_cards: int = MAX_ROUTE_CARDS,
) -> list[RouteCard]:
    """Rank live vehicles into at most max_cards cards, one per route."""
    preferred_directions = preferred_directions or {}
    catalogue = build_direction_catalogue(trips_by_id.values())

    nearby = None
    if user_location is not None:
        nearby = nearest_stops(
            list(stops_by_id.values()), user_location[0], user_location[1],
            limit=NEARBY_STOP_CANDIDATES,
        )
    resolver = StopResolver(stops_by_id, nearby)

    drafts = []
    for vehicle in vehicles:
        route = routes_by_id.get(vehicle.route_id) if vehicle.route_id else None
        trip = trips_by_id.get(vehicle.trip_id) if vehicle.trip_id else None
        stop = resolver.resolve(vehicle)
        drafts.append(_draft_card(vehicle, route, trip, stop, user_location, stale_ids, now))

    if not drafts:
        return static_route_cards(routes, max_cards)

    # Insertion order of the groups is the first candidate index of each route
    groups: dict[str, list[RouteCard]] = {}
    for card in _rank_candidates(drafts):
        groups.setdefault(card.id, []).append(card)

    cards = []
    for entries in groups.values():
        route_id = entries[0].route_id
        options = _direction_options(entries, catalogue.get(route_id) if route_id else None)
        chosen, desired = _pick_direction(
            entries, options, preferred_directions.get(route_id) if route_id else None,
        )
        cards.append(chosen.model_copy(update={
            "direction_options": options,
            "selected_direction_id": desired,
        }))

    if any(c.is_primary for c in cards):
        cards = [c for c in cards if c.is_primary]
    logger.debug("Built %d route cards from %d vehicles", len(cards), len(vehicles))
    return cards[:max_cards]


def prioritize_route(cards: list[RouteCard], route_id: str | None) -> list[RouteCard]:
    """Move the card for route_id to the front, leaving the rest in rank order."""
    if route_id is None:
        return cards
    for i, card in enumerate(cards):
        if card.route_id == route_id:
            return [card] + cards[:i] + cards[i + 1:]
    return cards
