"""Async client for the transit data provider (static GTFS summary, shapes, realtime vehicles)."""

import asyncio
import logging

import httpx

from transit_live.config import settings
from transit_live.core.normalizer import (
    normalize_shape_points,
    normalize_static_summary,
    normalize_vehicles,
)
from transit_live.schemas.static import ShapePoint, StaticSummary
from transit_live.schemas.vehicle import Vehicle

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_BACKOFF = [2, 4, 8]  # seconds between retries


class ProviderError(Exception):
    """A provider call failed (network, HTTP status or undecodable body)."""

    def __init__(self, label: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.label = label
        self.status_code = status_code


class ProviderClient:
    """Fetches static and realtime data from the provider's HTTP API."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_backoff: list[float] | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.provider_base_url,
            timeout=settings.provider_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._backoff = RETRY_BACKOFF if retry_backoff is None else retry_backoff

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(
        self, path: str, label: str, params: dict | None = None, retries: int = MAX_RETRIES,
    ):
        """GET + JSON decode, retrying timeouts, connection errors and 5xx."""
        for attempt in range(retries + 1):
            try:
                resp = await self._client.get(path, params=params)
                resp.raise_for_status()
                return resp.json()
            except (httpx.ReadTimeout, httpx.ConnectTimeout, httpx.ConnectError) as e:
                if attempt < retries:
                    wait = self._backoff[min(attempt, len(self._backoff) - 1)]
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %ss",
                        label, attempt + 1, retries + 1, type(e).__name__, wait,
                    )
                    await asyncio.sleep(wait)
                else:
                    logger.error("%s failed after %d attempts: %s", label, retries + 1, e)
                    raise ProviderError(label, f"{label} request failed ({type(e).__name__})") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempt < retries:
                    wait = self._backoff[min(attempt, len(self._backoff) - 1)]
                    logger.warning(
                        "%s attempt %d/%d got HTTP %d, retrying in %ss",
                        label, attempt + 1, retries + 1, status, wait,
                    )
                    await asyncio.sleep(wait)
                else:
                    logger.error("Failed to fetch %s from provider: HTTP %d", label, status)
                    raise ProviderError(label, f"{label} request failed ({status})", status) from e
            except httpx.HTTPError as e:
                logger.error("Failed to fetch %s from provider: %s", label, e)
                raise ProviderError(label, f"{label} request failed ({type(e).__name__})") from e
            except ValueError as e:
                logger.error("Undecodable %s response from provider", label)
                raise ProviderError(label, f"{label} response was not valid JSON") from e
        raise ProviderError(label, f"{label} request failed")

    async def fetch_static_summary(self) -> StaticSummary:
        """Routes, stops and trips for the whole static dataset."""
        data = await self._get_json("/api/static/summary", "Static summary")
        return normalize_static_summary(data)

    async def fetch_shape(self, shape_id: str) -> list[ShapePoint]:
        data = await self._get_json("/api/static/shape", "Shape", params={"shapeId": shape_id})
        points = normalize_shape_points(data)
        logger.debug("Fetched shape %s with %d points", shape_id, len(points))
        return points

    async def fetch_vehicles(self) -> list[Vehicle]:
        """Current realtime snapshot. Not retried: the next poll is the retry."""
        data = await self._get_json("/api/realtime/vehicles", "Realtime vehicles", retries=0)
        raws = data.get("vehicles") if isinstance(data, dict) else None
        vehicles = normalize_vehicles(raws or [])
        logger.info("Fetched %d realtime vehicles", len(vehicles))
        return vehicles
