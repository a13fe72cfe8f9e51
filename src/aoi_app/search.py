"""Location search against Nominatim (OpenStreetMap).

Search is best-effort: network errors, bad status codes and malformed
payloads all come back as an empty result list. DebouncedSearch keeps at
most one pending request; a new query cancels the previous one instead of
queuing behind it.
"""

from __future__ import annotations

import asyncio

import httpx
from loguru import logger
from pydantic import BaseModel


class SearchResult(BaseModel):
    """A geocoded place."""
    id: str
    lat: float
    lng: float
    display_name: str


class GeocodingClient:
    """Thin async client for the Nominatim search endpoint."""

    def __init__(
        self,
        url: str,
        user_agent: str,
        timeout: float = 10.0,
        min_chars: int = 3,
    ) -> None:
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self.min_chars = min_chars

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Geocode free text. Returns [] for short queries and on any failure."""
        query = query.strip()
        if len(query) < self.min_chars:
            return []

        async with httpx.AsyncClient() as client:
            try:
                resp = await client.get(
                    self.url,
                    params={"q": query, "format": "json", "limit": limit},
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
                resp.raise_for_status()
                hits = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Nominatim search failed for '{query}': {e}")
                return []

        results = []
        for hit in hits if isinstance(hits, list) else []:
            try:
                results.append(SearchResult(
                    id=str(hit["place_id"]),
                    lat=float(hit["lat"]),
                    lng=float(hit["lon"]),
                    display_name=hit.get("display_name", ""),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed Nominatim hit: {e}")
        return results[:limit]


class DebouncedSearch:
    """Debounce search-as-you-type with a single in-flight request."""

    def __init__(self, client: GeocodingClient, delay: float = 0.3, limit: int = 5) -> None:
        self.client = client
        self.delay = delay
        self.limit = limit
        self._task: asyncio.Task | None = None

    async def _run(self, query: str) -> list[SearchResult]:
        await asyncio.sleep(self.delay)
        return await self.client.search(query, self.limit)

    def submit(self, query: str) -> asyncio.Task:
        """Schedule a search, superseding any pending one. Call from the event loop."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(query))
        return self._task

    async def search(self, query: str) -> list[SearchResult]:
        """Submit and wait. A superseded search resolves to []."""
        task = self.submit(query)
        try:
            return await task
        except asyncio.CancelledError:
            if self._task is not task:
                return []
            raise

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
