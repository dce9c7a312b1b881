"""Minute ETAs from distance and speed, with a timestamp-recency fallback."""

import logging
import math
import time

logger = logging.getLogger(__name__)

# Floor on effective speed (km/min), ~12 km/h - prevents extreme ETAs for stopped vehicles
MIN_SPEED_KM_PER_MIN = 0.2
# Used when the feed reports no speed (or zero)
DEFAULT_SPEED_KM_PER_MIN = 0.5
# Added to the age of the last report when no distance is known
RECENCY_BASE_MINUTES = 5


def now_ms() -> int:
    return int(time.time() * 1000)


def round_half_up(value: float) -> int:
    # round() would send 2.5 to 2
    return math.floor(value + 0.5)


def raw_eta_to_stop(distance_km: float | None, speed_mps: float | None) -> float | None:
    """Unrounded minutes to cover distance_km at the given speed (m/s)."""
    if distance_km is None or not math.isfinite(distance_km):
        return None
    speed_km_per_min = (speed_mps * 3.6) / 60 if speed_mps else DEFAULT_SPEED_KM_PER_MIN
    return distance_km / max(speed_km_per_min, MIN_SPEED_KM_PER_MIN)


def estimate_eta_to_stop(distance_km: float | None, speed_mps: float | None) -> int | None:
    """Whole minutes to the stop, never less than 1."""
    minutes = raw_eta_to_stop(distance_km, speed_mps)
    if minutes is None:
        return None
    return max(1, round_half_up(minutes))


def displayed_eta_to_stop(distance_km: float | None, speed_mps: float | None) -> int | None:
    """ETA as shown to riders: anything under a minute reads as 0 ("arriving now")."""
    minutes = raw_eta_to_stop(distance_km, speed_mps)
    if minutes is None:
        return None
    if minutes < 1:
        return 0
    return max(1, round_half_up(minutes))


def estimate_eta_minutes(timestamp_ms: int | None, now: int | None = None) -> int | None:
    """Coarse ETA from how long ago the vehicle last reported."""
    if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, (int, float)):
        return None
    if now is None:
        now = now_ms()
    elapsed = max(0, round_half_up((now - timestamp_ms) / 60_000))
    return max(1, RECENCY_BASE_MINUTES + elapsed)
