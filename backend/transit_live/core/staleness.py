"""Flags vehicles whose last report is older than the stale threshold."""

from collections.abc import Iterable

from transit_live.core.eta_calculator import now_ms
from transit_live.schemas.vehicle import Vehicle

DEFAULT_STALE_THRESHOLD_MS = 45_000


def stale_vehicle_ids(
    vehicles: Iterable[Vehicle],
    threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS,
    now: int | None = None,
) -> set[str]:
    """Ids of vehicles with a parsed timestamp older than threshold_ms.

    Vehicles that never reported a usable timestamp are not considered stale.
    """
    if now is None:
        now = now_ms()
    return {
        v.id for v in vehicles
        if v.timestamp_ms is not None and now - v.timestamp_ms > threshold_ms
    }
