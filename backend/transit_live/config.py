from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    provider_base_url: str = "http://localhost:4000"
    provider_timeout_seconds: float = 10.0
    redis_url: str = "redis://localhost:6379/0"
    realtime_poll_interval_seconds: int = 3
    clock_tick_seconds: int = 30
    static_retry_seconds: int = 60
    stale_threshold_ms: int = 45_000
    max_route_cards: int = 15
    max_pinned_routes: int = 4

    # Halifax, used when the client has not reported a visible region yet
    default_region_latitude: float = 44.6488
    default_region_longitude: float = -63.5752
    default_region_latitude_delta: float = 0.15
    default_region_longitude_delta: float = 0.15
    stop_visibility_delta: float = 0.02
    stop_padding_factor: float = 0.6

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
