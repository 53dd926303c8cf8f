"""Address geocoding against the Nominatim (OpenStreetMap) search API.

Geocoding is best effort. Creation must never be blocked by the lookup, so
every failure path returns the (0, 0) marker instead of raising. The lookup
is a single attempt bounded by a total deadline.
"""

import asyncio
import logging
import math

import httpx

from . import config
from .schemas import AddressFields, Coordinates

logger = logging.getLogger(__name__)


class GeocodingResolver:
    """Resolve a postal address to coordinates, degrading to (0, 0)."""

    def __init__(
        self,
        base_url: str = config.GEOCODING_URL,
        user_agent: str = config.GEOCODING_USER_AGENT,
        timeout_s: float = config.GEOCODING_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
        log: logging.Logger | None = None,
    ):
        self.base_url = base_url
        self.user_agent = user_agent
        self.timeout_s = timeout_s
        self.transport = transport
        self.log = log or logger

    async def resolve(self, address: AddressFields) -> Coordinates:
        query = address.as_query()
        self.log.info(f"Geocoding address: {query}")

        try:
            results = await asyncio.wait_for(self._search(query), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            self.log.warning(f"Geocoding timed out after {self.timeout_s}s, using (0, 0)")
            return Coordinates.unresolved()
        except (httpx.HTTPError, ValueError) as e:
            self.log.warning(f"Geocoding request failed ({e!r}), using (0, 0)")
            return Coordinates.unresolved()

        coordinates = self._first_result(results)
        if coordinates is None:
            self.log.warning(f"No usable geocoding result for '{query}', using (0, 0)")
            return Coordinates.unresolved()

        self.log.info(f"Geocoded coordinates: {coordinates.latitude}, {coordinates.longitude}")
        return coordinates

    async def _search(self, query: str):
        async with httpx.AsyncClient(
            timeout=self.timeout_s,
            transport=self.transport,
            headers={"User-Agent": self.user_agent},
        ) as client:
            response = await client.get(self.base_url, params={"format": "json", "q": query})
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _first_result(results) -> Coordinates | None:
        """Pull lon/lat out of the first entry, or None if it isn't usable."""
        if not isinstance(results, list) or not results:
            return None

        first = results[0]
        if not isinstance(first, dict):
            return None

        try:
            longitude = float(first["lon"])
            latitude = float(first["lat"])
        except (KeyError, TypeError, ValueError):
            return None

        if not (math.isfinite(longitude) and math.isfinite(latitude)):
            return None

        return Coordinates(longitude=longitude, latitude=latitude)
