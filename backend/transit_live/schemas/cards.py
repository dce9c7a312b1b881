from pydantic import BaseModel, Field


class DirectionOption(BaseModel):
    direction_id: int
    headsign: str | None = None
    has_realtime: bool = False


class RouteCard(BaseModel):
    id: str
    route_id: str | None = None
    route_label: str
    headsign: str
    stop_id: str | None = None
    stop_label: str
    eta_minutes: int | None = None
    warning: str | None = None
    vehicle_id: str | None = None
    is_stale: bool = False
    updated_label: str | None = None
    distance_km: float | None = None
    direction_id: int | None = None
    direction_options: list[DirectionOption] = []
    selected_direction_id: int | None = None
    color: str | None = None
    # ranking tag, only meaningful inside the aggregator
    is_primary: bool = Field(default=False, exclude=True)


class PinnedRoute(BaseModel):
    route_id: str
    route_label: str | None = None


class PinnedSlots(BaseModel):
    pinned: list[PinnedRoute]
    slots: list[PinnedRoute | None]


class DirectionUpdate(BaseModel):
    direction_id: int
