from pydantic import BaseModel

from transit_live.schemas.static import ShapePoint, Stop
from transit_live.schemas.vehicle import StopArrival


class LocationUpdate(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    error: str | None = None


class PriorityRouteUpdate(BaseModel):
    route_id: str | None = None


class SessionState(BaseModel):
    focus: str
    selected_vehicle_id: str | None = None
    selected_stop_id: str | None = None
    active_stop: Stop | None = None
    active_route_id: str | None = None
    priority_route_id: str | None = None
    stop_arrivals: list[StopArrival] = []
    selected_shape: list[ShapePoint] | None = None
    status_banner: str | None = None
    loading_static: bool = True
    snapshot_generation: int = 0
