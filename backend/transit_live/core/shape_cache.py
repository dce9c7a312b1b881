"""Per-shape-id cache of trip polylines.

Each shape id is fetched at most once per session. Concurrent requests for an
id share one in-flight fetch; a failed fetch leaves no entry so the next
request retries. Entries are never evicted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from transit_live.schemas.static import ShapePoint

logger = logging.getLogger(__name__)

ShapeFetcher = Callable[[str], Awaitable[list[ShapePoint]]]


class ShapeCache:

    def __init__(self, fetcher: ShapeFetcher) -> None:
        self._fetcher = fetcher
        self._shapes: dict[str, list[ShapePoint]] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    def __contains__(self, shape_id: str) -> bool:
        return shape_id in self._shapes

    def __len__(self) -> int:
        return len(self._shapes)

    def get(self, shape_id: str | None) -> list[ShapePoint] | None:
        """Cached coordinates, without triggering a fetch."""
        if not shape_id:
            return None
        return self._shapes.get(shape_id)

    async def ensure(self, shape_id: str) -> list[ShapePoint]:
        """Cached coordinates, fetching them first if needed. Fetch errors propagate.

        Cancelling one caller leaves the shared fetch running for the others.
        """
        cached = self._shapes.get(shape_id)
        if cached is not None:
            return cached

        task = self._inflight.get(shape_id)
        if task is None:
            task = asyncio.create_task(self._fetch(shape_id))
            self._inflight[shape_id] = task
        return await asyncio.shield(task)

    async def _fetch(self, shape_id: str) -> list[ShapePoint]:
        try:
            points = await self._fetcher(shape_id)
        finally:
            self._inflight.pop(shape_id, None)
        self._shapes[shape_id] = points
        logger.debug("Cached shape %s (%d points)", shape_id, len(points))
        return points
