"""Persistent rider preferences: pinned routes and per-route direction choice."""

import logging

import orjson
import redis.asyncio as aioredis

from transit_live.config import settings

logger = logging.getLogger(__name__)

PINNED_KEY = "transit:pinned_routes"
DIRECTIONS_KEY = "transit:direction_preferences"


class RedisPreferenceStore:
    """Stores preferences as orjson blobs in Redis.

    Loads return empty values and saves are dropped when Redis is unavailable;
    failures are logged, never raised.
    """

    def __init__(self, redis_url: str | None = None) -> None:
        self._url = redis_url or settings.redis_url
        self._redis: aioredis.Redis | None = None

    async def connect(self) -> None:
        self._redis = aioredis.from_url(self._url, decode_responses=False)

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()

    async def _load(self, key: str):
        if not self._redis:
            return None
        try:
            data = await self._redis.get(key)
            return orjson.loads(data) if data else None
        except Exception:
            logger.exception("Failed to load %s from Redis", key)
            return None

    async def _save(self, key: str, value) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, orjson.dumps(value))
        except Exception:
            logger.exception("Failed to persist %s to Redis", key)

    async def load_pinned_routes(self) -> list[dict]:
        data = await self._load(PINNED_KEY)
        return data if isinstance(data, list) else []

    async def save_pinned_routes(self, pinned: list[dict]) -> None:
        await self._save(PINNED_KEY, pinned)

    async def load_direction_preferences(self) -> dict:
        data = await self._load(DIRECTIONS_KEY)
        return data if isinstance(data, dict) else {}

    async def save_direction_preferences(self, preferences: dict) -> None:
        await self._save(DIRECTIONS_KEY, preferences)
