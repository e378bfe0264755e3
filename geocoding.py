"""Address lookup behind an injectable async interface.

Nothing in the matching path depends on this; the HTTP layer keeps a
``Geocoder`` on ``app.state`` so tests can swap in a fake.
"""
import asyncio
import logging
import time
from typing import Optional, Protocol, Tuple

import httpx

from config import GEOCODER_USER_AGENT, NOMINATIM_URL

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class Geocoder(Protocol):
    async def geocode(self, query: str) -> Optional[Coordinate]:
        ...


class NominatimGeocoder:
    """OpenStreetMap Nominatim client, limited to one request per second."""

    min_interval = 1.0

    def __init__(self, base_url: str = NOMINATIM_URL, user_agent: str = GEOCODER_USER_AGENT,
                 country_codes: Optional[str] = None, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.country_codes = country_codes
        self.timeout = timeout
        self._client = client
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    async def _wait_turn(self):
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.min_interval:
            await asyncio.sleep(self.min_interval - elapsed)
        self._last_request = time.monotonic()

    async def _get(self, params: dict) -> httpx.Response:
        headers = {"User-Agent": self.user_agent}
        url = f"{self.base_url}/search"
        if self._client is not None:
            return await self._client.get(url, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, params=params, headers=headers)

    async def geocode(self, query: str) -> Optional[Coordinate]:
        params = {"q": query, "format": "json", "limit": 1}
        if self.country_codes:
            params["countrycodes"] = self.country_codes
        async with self._lock:
            await self._wait_turn()
            try:
                resp = await self._get(params)
                resp.raise_for_status()
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("geocoding %r failed: %s", query, exc)
                return None
        if not data:
            logger.warning("no geocoding result for %r", query)
            return None
        return float(data[0]["lat"]), float(data[0]["lon"])
