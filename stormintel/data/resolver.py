"""Storm search orchestration across the hail catalog, NOAA archive and NWS alerts.

Flow: address → monitor registration / geocode → coordinates
      coordinates → {IHM, NOAA, NWS} concurrently → merge → result
Hot zones: bounds → fan-out → located hail events → grid clustering → scoring
"""

import asyncio
import logging
from datetime import date
from typing import Iterable

import httpx

from stormintel.config import settings
from stormintel.data.base import GeocodeSource, ProviderError, StormEventSource
from stormintel.data.cache import Cache, MemoryCache
from stormintel.data.geocode import Geocoder
from stormintel.data.hail_maps import HailMapsClient
from stormintel.data.noaa_storm_events import NOAAStormEventsClient
from stormintel.data.normalize import eastern_today
from stormintel.data.nws_alerts import SOURCE_NAME as NWS_SOURCE, NWSAlertClient
from stormintel.engine.geo import bounds_from_center, covering_radius_miles
from stormintel.engine.hot_zones import generate_hot_zones
from stormintel.models.storm import (
    BoundingBox,
    EventType,
    GeoPoint,
    HotZone,
    SearchArea,
    SourceStatus,
    StormEvent,
    StormSearchResult,
)

logger = logging.getLogger(__name__)

CATALOG = "catalog"
ARCHIVE = "archive"
ALERTS = "alerts"


def merge_events(*batches: Iterable[StormEvent]) -> list[StormEvent]:
    """Union of event batches, first occurrence of an id wins, newest first."""
    merged: dict[str, StormEvent] = {}
    for batch in batches:
        for event in batch:
            merged.setdefault(event.id, event)
    return sorted(merged.values(), key=lambda e: (e.date, e.id), reverse=True)


def filter_by_hail_size(events: Iterable[StormEvent], min_size: float | None) -> list[StormEvent]:
    """Keep hail events at least ``min_size`` inches. No-op when min_size is falsy."""
    if not min_size:
        return list(events)
    return [
        e for e in events
        if e.event_type is EventType.HAIL and e.magnitude is not None and e.magnitude >= min_size
    ]


class StormResolver:
    def __init__(
        self,
        hail_maps: HailMapsClient | None = None,
        noaa: StormEventSource | None = None,
        nws: StormEventSource | None = None,
        geocoder: GeocodeSource | None = None,
        cache: Cache | None = None,
    ):
        cache = cache or MemoryCache(max_entries=settings.cache_max_entries)
        self.geocoder = geocoder or Geocoder()
        self.hail_maps = hail_maps or HailMapsClient(cache=cache, geocoder=self.geocoder)
        self.noaa = noaa or NOAAStormEventsClient(cache=cache)
        self.nws = nws or NWSAlertClient(cache=cache)

    async def search_by_marker(self, marker_id: str, months: int = 24) -> StormSearchResult:
        """Catalog history for a registered marker. The other sources need coordinates and are skipped."""
        events, status = await self.hail_maps.search_by_marker_with_status(marker_id, months)
        center = await self.hail_maps.marker_location(marker_id)
        if center is None and events:
            center = GeoPoint(lat=events[0].latitude, lng=events[0].longitude)

        return StormSearchResult(
            events=merge_events(events),
            total_count=len(events),
            search_area=SearchArea(center=center, radius_miles=0, months=months),
            source_status={CATALOG: status, ARCHIVE: SourceStatus.SKIPPED, ALERTS: SourceStatus.SKIPPED},
        )

    async def search_by_address(
        self,
        street: str,
        city: str,
        state: str,
        zip_code: str,
        months: int = 24,
        radius_miles: float = 10.0,
    ) -> StormSearchResult:
        """Register (or geocode) the address, then search around it.

        With a marker, catalog history comes from the marker; the archive and
        alerts use the monitor's or geocoder's coordinates. If nothing yields
        coordinates, only the catalog result is returned.
        """
        marker_id = None
        location = None
        if self.hail_maps.is_configured:
            try:
                monitor = await self.hail_maps.create_monitor(street, city, state, zip_code)
                marker_id, location = monitor.marker_id, monitor.location
            except (httpx.HTTPError, ValueError, ProviderError) as e:
                logger.warning("Monitor registration failed for %s, %s: %s", street, city, e)

        if location is None:
            location = await self.geocoder.geocode(street, city, state, zip_code)

        if location is None:
            if marker_id is not None:
                return await self.search_by_marker(marker_id, months)
            logger.warning("No coordinates for %s, %s %s; nothing to search", street, city, state)
            return StormSearchResult(
                events=[],
                total_count=0,
                search_area=SearchArea(center=None, radius_miles=radius_miles, months=months),
                source_status={
                    CATALOG: SourceStatus.SKIPPED if not self.hail_maps.is_configured else SourceStatus.ERROR,
                    ARCHIVE: SourceStatus.SKIPPED,
                    ALERTS: SourceStatus.SKIPPED,
                },
            )

        logger.info("Searching storms near %s, %s -> %.4f, %.4f", street, city, location.lat, location.lng)
        if marker_id is not None:
            catalog = self.hail_maps.search_by_marker_with_status(marker_id, months)
        else:
            catalog = self.hail_maps.search_by_coordinates_with_status(location.lat, location.lng, months, 0)
        return await self._fan_out(location, months, radius_miles, catalog)

    async def search_by_coordinates(
        self, lat: float, lng: float, months: int = 24, radius_miles: float = 10.0
    ) -> StormSearchResult:
        location = GeoPoint(lat=lat, lng=lng)
        catalog = self.hail_maps.search_by_coordinates_with_status(lat, lng, months, radius_miles)
        return await self._fan_out(location, months, radius_miles, catalog)

    async def _fan_out(self, location: GeoPoint, months: int, radius_miles: float, catalog) -> StormSearchResult:
        (ihm_events, ihm_status), (noaa_events, noaa_status), (nws_events, nws_status) = await asyncio.gather(
            catalog,
            self.noaa.search_with_status(location.lat, location.lng, radius_miles, months),
            self.nws.search_with_status(location.lat, location.lng, radius_miles, months),
        )
        logger.info(
            "Fetched %d IHM, %d NOAA, %d NWS events", len(ihm_events), len(noaa_events), len(nws_events)
        )
        events = merge_events(ihm_events, noaa_events, nws_events)
        return StormSearchResult(
            events=events,
            total_count=len(events),
            search_area=SearchArea(center=location, radius_miles=radius_miles, months=months),
            source_status={CATALOG: ihm_status, ARCHIVE: noaa_status, ALERTS: nws_status},
        )

    async def get_hot_zones(
        self,
        bounds: BoundingBox | None = None,
        center: GeoPoint | None = None,
        radius_miles: float | None = None,
        months: int = 24,
        today: date | None = None,
    ) -> list[HotZone]:
        """Top canvassing zones for a bounding box, or for a center plus radius."""
        if bounds is not None:
            center = bounds.center
            radius_miles = covering_radius_miles(bounds)
        elif center is not None:
            radius_miles = radius_miles or settings.hot_zone_radius_miles
            bounds = bounds_from_center(center, radius_miles)
        else:
            raise ValueError("Must provide either bounds or center coordinates")

        result = await self.search_by_coordinates(center.lat, center.lng, months, radius_miles)
        # Alerts sit at the query point, not where the hail fell
        hail = [e for e in result.events if e.event_type is EventType.HAIL and e.source != NWS_SOURCE]
        zones = generate_hot_zones(hail, bounds, today or eastern_today())
        logger.info("Generated %d hot zones from %d hail events", len(zones), len(hail))
        return zones
