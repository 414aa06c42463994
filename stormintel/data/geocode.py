"""Address geocoding: Census Geocoder first, Nominatim (OpenStreetMap) as fallback.

Both providers are free and keyless. Nothing is retried beyond the chain itself:
Census structured -> Nominatim structured -> Nominatim freeform.
"""

import logging

import httpx

from stormintel.config import settings
from stormintel.models.storm import GeoPoint

logger = logging.getLogger(__name__)


class Geocoder:
    def __init__(
        self,
        census_url: str | None = None,
        nominatim_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.census_url = census_url or settings.census_geocoder_url
        self.nominatim_url = nominatim_url or settings.nominatim_url
        self.user_agent = user_agent or settings.nominatim_user_agent
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def geocode(self, street: str, city: str, state: str, zip_code: str) -> GeoPoint | None:
        """Resolve an address to coordinates. Returns None when every provider comes back empty."""
        point = await self._census(street, city, state, zip_code)
        if point:
            return point

        logger.info("Census geocoder found no match for %s, %s %s; trying Nominatim", street, city, state)
        point = await self._nominatim({
            "street": street,
            "city": city,
            "state": state,
            "postalcode": zip_code,
            "country": "USA",
        })
        if point:
            return point

        point = await self._nominatim({
            "q": f"{street}, {city}, {state} {zip_code}, USA",
            "countrycodes": "us",
        })
        if point is None:
            logger.warning("Could not geocode address: %s, %s, %s %s", street, city, state, zip_code)
        return point

    async def _census(self, street: str, city: str, state: str, zip_code: str) -> GeoPoint | None:
        params = {
            "street": street,
            "city": city,
            "state": state,
            "zip": zip_code,
            "benchmark": "Public_AR_Current",
            "format": "json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.census_url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Census geocoder request failed: %s", e)
            return None

        result = data.get("result") if isinstance(data, dict) else None
        matches = result.get("addressMatches") if isinstance(result, dict) else None
        if not isinstance(matches, list) or not matches:
            return None
        if not isinstance(matches[0], dict):
            logger.warning("Census geocoder returned a malformed match: %s", matches[0])
            return None
        coords = matches[0].get("coordinates") or {}
        try:
            return GeoPoint(lat=float(coords["y"]), lng=float(coords["x"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Census geocoder returned malformed coordinates: %s", coords)
            return None

    async def _nominatim(self, query: dict[str, str]) -> GeoPoint | None:
        params = {**query, "format": "json", "limit": 1}
        headers = {"User-Agent": self.user_agent}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.nominatim_url, params=params, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Nominatim request failed: %s", e)
            return None

        if not isinstance(data, list) or not data:
            return None
        try:
            return GeoPoint(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Nominatim returned malformed coordinates: %s", data[0])
            return None
