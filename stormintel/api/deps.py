"""FastAPI dependency injection."""

from functools import lru_cache

from stormintel.config import settings
from stormintel.data.cache import Cache, build_cache
from stormintel.data.geocode import Geocoder
from stormintel.data.hail_maps import HailMapsClient
from stormintel.data.noaa_storm_events import NOAAStormEventsClient
from stormintel.data.nws_alerts import NWSAlertClient
from stormintel.data.resolver import StormResolver


@lru_cache
def get_cache() -> Cache:
    # Shared across requests
    return build_cache(settings)


def get_geocoder() -> Geocoder:
    return Geocoder()


def get_hail_maps() -> HailMapsClient:
    return HailMapsClient(cache=get_cache(), geocoder=get_geocoder())


def get_nws_client() -> NWSAlertClient:
    return NWSAlertClient(cache=get_cache())


def get_resolver() -> StormResolver:
    return StormResolver(
        hail_maps=get_hail_maps(),
        noaa=NOAAStormEventsClient(cache=get_cache()),
        nws=get_nws_client(),
        geocoder=get_geocoder(),
        cache=get_cache(),
    )
