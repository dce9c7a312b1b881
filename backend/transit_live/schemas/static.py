from pydantic import BaseModel, Field


class Route(BaseModel):
    route_id: str
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_desc: str | None = None
    route_type: int | None = None
    route_color: str | None = None


class Stop(BaseModel):
    stop_id: str
    stop_name: str | None = None
    stop_lat: float
    stop_lon: float


class Trip(BaseModel):
    trip_id: str
    route_id: str | None = None
    service_id: str | None = None
    trip_headsign: str | None = None
    direction_id: int | None = None
    shape_id: str | None = None


class ShapePoint(BaseModel):
    latitude: float
    longitude: float
    sequence: int = 0


class StaticSummary(BaseModel):
    routes: list[Route] = Field(default_factory=list)
    stops: list[Stop] = Field(default_factory=list)
    trips: list[Trip] = Field(default_factory=list)


class RouteInfo(BaseModel):
    id: str
    short_name: str | None = None
    long_name: str | None = None
    description: str | None = None
    type: int | None = None
    color: str


class Region(BaseModel):
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


class VisibleStops(BaseModel):
    show_stops: bool
    stops: list[Stop] = []
