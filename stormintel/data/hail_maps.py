"""Interactive Hail Maps (IHM) API client.

Historical lookups are keyed by an address marker, which has to be registered
first (``create_monitor``), or by raw coordinates. Payloads vary between
endpoints and API versions, so every logical field is read through an ordered
list of candidate keys.
"""

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter

from stormintel.config import settings
from stormintel.data.base import ConfigurationError, GeocodeSource, ProviderError
from stormintel.data.cache import Cache, MemoryCache, make_key, round_coord
from stormintel.data.normalize import ExtractionRule, FieldKind, build_event, extract, to_eastern_date
from stormintel.models.storm import AddressMonitor, EventType, GeoPoint, SourceStatus, StormEvent

logger = logging.getLogger(__name__)

SOURCE_NAME = "Interactive Hail Maps"

MONITOR_PATH = "/ExternalApi/AddressMonitoringImport2g"
MARKER_HISTORY_PATH = "/ExternalApi/ImpactDatesForAddressMarker"
LATLNG_HISTORY_PATH = "/ExternalApi/ImpactDatesForLatLong"

# Where the event list may live in a history response
PAYLOAD_LIST_KEYS = ("ImpactDates", "events", "results", "data", "storms")

# Per-record extraction table. Hail size keys run from most to least location-specific.
HAIL_SIZE = ExtractionRule("hail_size", FieldKind.NUMBER, (
    "SizeAtLocation", "SizeWithin1Mile", "SizeWithin3Mile", "SizeWithin10Mile",
    "hailSize", "hail_size", "size",
))
EVENT_DATE = ExtractionRule("date", FieldKind.TEXT, ("FileDate", "date", "event_date", "storm_date"))
WIND_SPEED = ExtractionRule("wind_speed", FieldKind.NUMBER, ("windSpeed", "wind_speed", "WindSpeed"))
LATITUDE = ExtractionRule("latitude", FieldKind.NUMBER, ("latitude", "lat", "Lat", "Latitude"))
LONGITUDE = ExtractionRule("longitude", FieldKind.NUMBER, ("longitude", "lng", "Long", "Longitude", "lon"))
EVENT_ID = ExtractionRule("id", FieldKind.TEXT, ("id", "event_id"))

# Monitor registration response
MARKER_ID = ExtractionRule("marker_id", FieldKind.TEXT, (
    "AddressMarker_id", "AddressMarker_Id", "addressMarkerId", "markerId", "marker_id",
    "id", "address_id",
    "data.AddressMarker_id", "data.AddressMarker_Id", "data.markerId", "data.marker_id",
))
MONITOR_LAT = ExtractionRule("latitude", FieldKind.NUMBER, (
    "Lat", "lat", "latitude", "Latitude", "data.Lat", "data.lat", "data.latitude",
))
MONITOR_LNG = ExtractionRule("longitude", FieldKind.NUMBER, (
    "Long", "lng", "lon", "longitude", "Longitude", "data.Long", "data.lng", "data.longitude",
))

_events_adapter = TypeAdapter(list[StormEvent])


class HailMapsClient:
    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        base_url: str | None = None,
        cache: Cache | None = None,
        geocoder: GeocodeSource | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.ihm_api_key if api_key is None else api_key
        self.api_secret = settings.ihm_api_secret if api_secret is None else api_secret
        if bool(self.api_key) != bool(self.api_secret):
            raise ConfigurationError("IHM_API_KEY and IHM_API_SECRET must be configured together")
        if not self.is_configured:
            logger.warning("IHM_API_KEY / IHM_API_SECRET not configured; hail catalog lookups disabled")

        self.base_url = (base_url or settings.ihm_base_url).rstrip("/")
        self.cache = cache or MemoryCache(max_entries=settings.cache_max_entries)
        self.geocoder = geocoder
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_body: dict | None = None,
    ) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            auth=(self.api_key, self.api_secret),
        ) as client:
            resp = await client.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json_body,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            return resp.json()

    # ---- Monitor registration ----

    async def create_monitor(self, street: str, city: str, state: str, zip_code: str) -> AddressMonitor:
        """Register an address for monitoring and return its marker id.

        Raises ConfigurationError when credentials are missing and ProviderError
        when the response carries no marker id. Missing coordinates are filled by
        the geocoder when one is attached.
        """
        if not self.is_configured:
            raise ConfigurationError("Hail maps service not configured")

        payload = await self._request("POST", MONITOR_PATH, json_body={
            "street": street.strip(),
            "city": city.strip(),
            "state": state.strip().upper(),
            "zip": zip_code.strip(),
        })
        if not isinstance(payload, dict):
            raise ProviderError("IHM monitor response was not an object")

        marker_id = extract(payload, MARKER_ID)
        if not marker_id:
            raise ProviderError("IHM API response missing markerId")

        lat, lng = extract(payload, MONITOR_LAT), extract(payload, MONITOR_LNG)
        location = GeoPoint(lat=lat, lng=lng) if lat is not None and lng is not None else None
        if location is None and self.geocoder is not None:
            logger.info("IHM monitor %s has no coordinates; geocoding %s, %s", marker_id, street, city)
            location = await self.geocoder.geocode(street, city, state, zip_code)

        if location is not None:
            await self.cache.set(
                make_key("ihm", "marker-location", marker_id),
                {"lat": location.lat, "lng": location.lng},
                settings.marker_cache_ttl,
            )
        return AddressMonitor(marker_id=marker_id, location=location, raw=payload)

    async def marker_location(self, marker_id: str) -> GeoPoint | None:
        """Coordinates remembered from the marker's registration, if still cached."""
        cached = await self.cache.get(make_key("ihm", "marker-location", marker_id))
        if not cached:
            return None
        return GeoPoint(lat=cached["lat"], lng=cached["lng"])

    # ---- History lookups ----

    async def search_by_marker_with_status(
        self, marker_id: str, months: int = 24
    ) -> tuple[list[StormEvent], SourceStatus]:
        if not self.is_configured:
            return [], SourceStatus.SKIPPED
        try:
            center = await self.marker_location(marker_id)
            events = await self._fetch_events(
                MARKER_HISTORY_PATH,
                {"AddressMarker_id": marker_id, "Months": str(months)},
                cache_key=make_key("ihm", "marker", marker_id, months),
                center=center,
                id_prefix=marker_id,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("IHM marker lookup failed for %s: %s", marker_id, e)
            return [], SourceStatus.ERROR
        return events, SourceStatus.OK

    async def search_by_marker(self, marker_id: str, months: int = 24) -> list[StormEvent]:
        events, _ = await self.search_by_marker_with_status(marker_id, months)
        return events

    async def search_by_coordinates_with_status(
        self, lat: float, lng: float, months: int = 24, radius_miles: float = 0
    ) -> tuple[list[StormEvent], SourceStatus]:
        if not self.is_configured:
            return [], SourceStatus.SKIPPED
        params = {"Lat": str(lat), "Long": str(lng), "Months": str(months)}
        if radius_miles > 0:
            params["Radius"] = str(radius_miles)
        try:
            events = await self._fetch_events(
                LATLNG_HISTORY_PATH,
                params,
                cache_key=make_key("ihm", "latlng", round_coord(lat), round_coord(lng), months, radius_miles),
                center=GeoPoint(lat=lat, lng=lng),
                id_prefix=f"{round_coord(lat)},{round_coord(lng)}",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("IHM coordinate lookup failed for %s,%s: %s", lat, lng, e)
            return [], SourceStatus.ERROR
        return events, SourceStatus.OK

    async def search_by_coordinates(
        self, lat: float, lng: float, months: int = 24, radius_miles: float = 0
    ) -> list[StormEvent]:
        events, _ = await self.search_by_coordinates_with_status(lat, lng, months, radius_miles)
        return events

    async def search_by_address(
        self, street: str, city: str, state: str, zip_code: str, months: int = 24
    ) -> list[StormEvent]:
        """Register the address, then look up its marker history."""
        if not self.is_configured:
            return []
        try:
            monitor = await self.create_monitor(street, city, state, zip_code)
        except (httpx.HTTPError, ValueError, ProviderError) as e:
            logger.warning("IHM monitor registration failed for %s, %s: %s", street, city, e)
            return []
        return await self.search_by_marker(monitor.marker_id, months)

    async def search_with_status(
        self, lat: float, lng: float, radius_miles: float, months: int
    ) -> tuple[list[StormEvent], SourceStatus]:
        return await self.search_by_coordinates_with_status(lat, lng, months, radius_miles)

    async def _fetch_events(
        self,
        path: str,
        params: dict,
        cache_key: str,
        center: GeoPoint | None,
        id_prefix: str,
    ) -> list[StormEvent]:
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return _events_adapter.validate_python(cached)

        payload = await self._request("GET", path, params=params)
        events = normalize_impact_dates(payload, center, id_prefix)
        await self.cache.set(cache_key, _events_adapter.dump_python(events, mode="json"), settings.ihm_cache_ttl)
        return events


def _impact_items(payload: Any) -> list:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    for key in PAYLOAD_LIST_KEYS:
        items = payload.get(key)
        if items is not None:
            return items if isinstance(items, list) else []
    return []


def normalize_impact_dates(payload: Any, center: GeoPoint | None, id_prefix: str) -> list[StormEvent]:
    """Convert an ImpactDates-style payload into StormEvents.

    Records with no coordinates of their own are placed at ``center``; without
    a center they are dropped.
    """
    events = []
    for index, item in enumerate(_impact_items(payload)):
        if not isinstance(item, dict):
            continue

        hail_size = extract(item, HAIL_SIZE)
        wind_speed = extract(item, WIND_SPEED)
        if hail_size is None and wind_speed is not None:
            event_type, magnitude = EventType.WIND, wind_speed
        else:
            event_type, magnitude = EventType.HAIL, hail_size

        raw_date = extract(item, EVENT_DATE) or ""
        lat, lng = extract(item, LATITUDE), extract(item, LONGITUDE)
        if (not lat or not lng) and center is not None:
            lat, lng = center.lat, center.lng

        raw_id = extract(item, EVENT_ID)
        event_id = f"ihm-{raw_id}" if raw_id else f"ihm-{id_prefix}-{raw_date[:10]}-{index}"

        event = build_event(
            id=event_id,
            event_type=event_type,
            event_date=to_eastern_date(raw_date),
            latitude=lat,
            longitude=lng,
            magnitude=magnitude,
            source=SOURCE_NAME,
        )
        if event is not None:
            events.append(event)
    return events
