from pydantic import BaseModel


class Vehicle(BaseModel):
    id: str
    route_id: str | None = None
    trip_id: str | None = None
    direction_id: int | None = None
    latitude: float
    longitude: float
    bearing: float | None = None
    speed: float | None = None
    timestamp: str | None = None
    timestamp_ms: int | None = None
    current_stop_sequence: int | None = None
    stop_id: str | None = None
    congestion_level: str | None = None
    schedule_relationship: str | None = None
    label: str | None = None
    license_plate: str | None = None


class VehicleState(Vehicle):
    is_stale: bool = False
    updated_label: str | None = None


class StopArrival(BaseModel):
    vehicle_id: str
    route_label: str
    headsign: str
    eta_minutes: int | None = None
    timestamp: str | None = None
    time_label: str = "unavailable"
    distance_label: str
    is_stale: bool = False


class StopArrivals(BaseModel):
    stop_id: str
    stop_name: str | None = None
    arrivals: list[StopArrival]
