"""Fan-out of derived transit state to WebSocket clients, mirrored in Redis."""

import asyncio
import logging

import orjson
import redis.asyncio as aioredis

from transit_live.config import settings

logger = logging.getLogger(__name__)

CHANNEL = "transit:updates"
STATE_KEY = "transit:state"
# Per-client backlog; a client this far behind is dropped
SUBSCRIBER_BACKLOG = 10


def _encode(kind: str, state: dict) -> bytes:
    return orjson.dumps({**state, "type": kind})


class Broadcaster:
    """Every message is one orjson object tagged "update" or "snapshot".

    The last update is kept in memory as well as in Redis, so late joiners get
    a snapshot even when Redis is unreachable.
    """

    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        self._queues: set[asyncio.Queue] = set()
        self._latest: dict | None = None

    async def connect(self) -> None:
        self._redis = aioredis.from_url(settings.redis_url, decode_responses=False)

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()

    async def publish(self, state: dict) -> None:
        self._latest = state
        payload = _encode("update", state)
        await self._mirror(payload)

        lagging = set()
        for queue in self._queues:
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                lagging.add(queue)
        if lagging:
            logger.warning("Dropping %d lagging WebSocket subscribers", len(lagging))
        self._queues -= lagging

    async def _mirror(self, payload: bytes) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(STATE_KEY, payload)
            await self._redis.publish(CHANNEL, payload)
        except Exception:
            logger.exception("Failed to mirror state to Redis")

    async def snapshot(self, state: dict | None = None) -> bytes | None:
        """Snapshot message for a new client.

        Built from `state` when given, else from the last published state
        (Redis first, then memory). None when nothing was ever published.
        """
        if state is not None:
            return _encode("snapshot", state)
        if self._redis:
            try:
                stored = await self._redis.get(STATE_KEY)
                if stored:
                    return _encode("snapshot", orjson.loads(stored))
            except Exception:
                logger.exception("Failed to read state from Redis")
        if self._latest is not None:
            return _encode("snapshot", self._latest)
        return None

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_BACKLOG)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)
