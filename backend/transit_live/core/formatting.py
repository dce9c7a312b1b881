"""Human-readable labels shared by the aggregators and the API."""

import datetime

from transit_live.core.eta_calculator import now_ms, round_half_up

DEFAULT_ROUTE_COLOR = "#2196f3"


def format_relative_time(timestamp_ms: int | None, now: int | None = None) -> str | None:
    """'Just now', '4m ago', '2h ago'."""
    if timestamp_ms is None:
        return None
    if now is None:
        now = now_ms()
    diff = now - timestamp_ms
    if diff < 0:
        return "just now"
    minutes = round_half_up(diff / 60_000)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    return f"{round_half_up(minutes / 60)}h ago"


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{distance_km * 1000:.0f} m away"
    return f"{distance_km:.1f} km away"


def normalise_color(value: str | None, fallback: str = DEFAULT_ROUTE_COLOR) -> str:
    """GTFS colours come without the leading '#'."""
    if not value:
        return fallback
    return value if value.startswith("#") else f"#{value}"


def format_time(value: str | None) -> str:
    """HH:MM (UTC) for an ISO-8601 timestamp, 'unavailable' otherwise."""
    if not value:
        return "unavailable"
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return "unavailable"
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc)
    return parsed.strftime("%H:%M")
