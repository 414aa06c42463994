"""National Weather Service alerts API client.

Two calls per lookup: resolve the forecast grid for a point, then query alerts
scoped to that grid's forecast zone over a date range. Free, no API key, but
NWS requires an identifying User-Agent.
https://api.weather.gov/
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone

import httpx
from pydantic import TypeAdapter

from stormintel.config import settings
from stormintel.data.cache import Cache, MemoryCache, make_key, round_coord, round_timestamp
from stormintel.data.normalize import EASTERN, build_event, to_eastern_date
from stormintel.models.storm import EventType, GridPoint, NWSAlert, SourceStatus, StormEvent

logger = logging.getLogger(__name__)

SOURCE_NAME = "NWS Alerts"

STORM_ALERT_EVENTS = (
    "Severe Thunderstorm Warning",
    "Severe Thunderstorm Watch",
    "Tornado Warning",
    "Tornado Watch",
)

# Category stems matched case-insensitively against the alert's event text
_STORM_STEMS = ("severe thunderstorm", "tornado")

# Alerts at these severities are kept regardless of category
_ALWAYS_KEEP_SEVERITIES = {"Severe", "Extreme"}

_alerts_adapter = TypeAdapter(list[NWSAlert])
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def is_storm_category(alert: NWSAlert) -> bool:
    event = alert.event.lower()
    return any(stem in event for stem in _STORM_STEMS)


def is_storm_alert(alert: NWSAlert) -> bool:
    return is_storm_category(alert) or alert.severity in _ALWAYS_KEEP_SEVERITIES


def _first_number(values) -> float | None:
    if isinstance(values, list):
        values = values[0] if values else None
    if values is None:
        return None
    m = _NUMBER.search(str(values))
    return float(m.group()) if m else None


def parse_alert(feature: dict) -> NWSAlert:
    """Map a GeoJSON alert feature onto NWSAlert. Raises ValueError on non-string fields."""
    props = feature.get("properties")
    if not isinstance(props, dict):
        props = {}
    parameters = props.get("parameters")
    if not isinstance(parameters, dict):
        parameters = {}
    return NWSAlert(
        id=str(feature.get("id") or props.get("id") or ""),
        headline=props.get("headline") or "",
        description=props.get("description") or "",
        severity=props.get("severity") or "Unknown",
        certainty=props.get("certainty") or "Unknown",
        event=props.get("event") or "Unknown Event",
        onset=props.get("onset") or props.get("effective") or "",
        expires=props.get("expires") or props.get("ends") or "",
        sender_name=props.get("senderName") or "NWS",
        area_desc=props.get("areaDesc") or "",
        max_hail_size=_first_number(parameters.get("maxHailSize")),
        max_wind_gust=_first_number(parameters.get("maxWindGust")),
    )


def alert_to_event(alert: NWSAlert, lat: float, lng: float) -> StormEvent | None:
    """Place an alert at the queried point as a StormEvent.

    Only thunderstorm and tornado categories convert; heat, flood, winter and
    other alerts kept on severity alone give None. Tornado categories become
    tornado events; a reported hail size makes a hail event; otherwise it is a
    wind event with the reported gust, if any.
    """
    if not is_storm_category(alert):
        return None
    if "tornado" in alert.event.lower():
        event_type, magnitude = EventType.TORNADO, None
    elif alert.max_hail_size:
        event_type, magnitude = EventType.HAIL, alert.max_hail_size
    else:
        event_type, magnitude = EventType.WIND, alert.max_wind_gust

    return build_event(
        id=f"nws-{alert.id}",
        event_type=event_type,
        event_date=to_eastern_date(alert.onset),
        latitude=lat,
        longitude=lng,
        magnitude=magnitude,
        source=SOURCE_NAME,
        location=alert.area_desc,
        narrative=alert.headline,
    )


class NWSAlertClient:
    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        cache: Cache | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.nws_base_url).rstrip("/")
        self.headers = {
            "User-Agent": user_agent or settings.nws_user_agent,
            "Accept": "application/geo+json",
        }
        self.cache = cache or MemoryCache(max_entries=settings.cache_max_entries)
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def get_grid_point(self, lat: float, lng: float) -> GridPoint | None:
        """Resolve the NWS forecast grid for a coordinate. None on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/points/{lat:.4f},{lng:.4f}", headers=self.headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("NWS grid point lookup failed: %s", e)
            return None

        props = data.get("properties") if isinstance(data, dict) else None
        if not isinstance(props, dict) or not props.get("gridId"):
            logger.warning("NWS grid point response had no grid: %.100r", data)
            return None
        zone_url = str(props.get("forecastZone") or "")
        try:
            return GridPoint(
                grid_id=str(props["gridId"]),
                grid_x=int(props.get("gridX") or 0),
                grid_y=int(props.get("gridY") or 0),
                forecast_zone=zone_url.rstrip("/").rsplit("/", 1)[-1] if zone_url else "",
            )
        except (TypeError, ValueError):
            logger.warning("NWS grid point response had malformed grid indices: %s", props)
            return None

    async def fetch_alerts(
        self,
        lat: float,
        lng: float,
        start: datetime,
        end: datetime,
        event_types: tuple[str, ...] | None = None,
    ) -> list[NWSAlert]:
        """Storm-relevant alerts for a point over [start, end]. Never raises provider errors."""
        alerts = await self._cached_alerts(lat, lng, start, end, event_types)
        return alerts or []

    async def _cached_alerts(
        self,
        lat: float,
        lng: float,
        start: datetime,
        end: datetime,
        event_types: tuple[str, ...] | None,
    ) -> list[NWSAlert] | None:
        start, end = _as_utc(start), _as_utc(end)
        key = make_key(
            "nws", round_coord(lat), round_coord(lng),
            round_timestamp(start).isoformat(), round_timestamp(end).isoformat(),
            ",".join(event_types or ()),
        )
        cached = await self.cache.get(key)
        if cached is not None:
            return _alerts_adapter.validate_python(cached)

        alerts = await self._query_alerts(lat, lng, start, end, event_types)
        if alerts is None:
            return None

        await self.cache.set(key, _alerts_adapter.dump_python(alerts, mode="json"), settings.nws_cache_ttl)
        return alerts

    async def _query_alerts(
        self,
        lat: float,
        lng: float,
        start: datetime,
        end: datetime,
        event_types: tuple[str, ...] | None,
    ) -> list[NWSAlert] | None:
        """None signals a failed lookup (not cached); [] is a genuine empty answer."""
        grid = await self.get_grid_point(lat, lng)
        if grid is None:
            logger.warning("Could not determine NWS zone for %.3f,%.3f", lat, lng)
            return None

        params = {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "status": "actual",
            "message_type": "alert",
        }
        if grid.forecast_zone:
            params["zone"] = grid.forecast_zone
        else:
            params["point"] = f"{lat:.4f},{lng:.4f}"
        if event_types:
            params["event"] = ",".join(event_types)

        logger.info("Fetching NWS alerts for %.3f,%.3f (%s to %s)", lat, lng, start.date(), end.date())
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/alerts", params=params, headers=self.headers)
                if resp.status_code == 404:
                    logger.info("No NWS alerts found for this area/timeframe")
                    return []
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("NWS alerts request failed: %s", e)
            return None

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            logger.warning("NWS alerts response had no feature list: %.100r", data)
            return None

        alerts = []
        for f in features:
            if not isinstance(f, dict):
                continue
            try:
                alerts.append(parse_alert(f))
            except ValueError as e:
                logger.warning("Skipping malformed NWS alert %s: %s", f.get("id"), e)
        relevant = [a for a in alerts if is_storm_alert(a)]
        logger.info("Found %d relevant NWS alerts (of %d total)", len(relevant), len(alerts))
        return relevant

    async def fetch_storm_warnings(self, lat: float, lng: float, storm_date: date | datetime) -> list[NWSAlert]:
        """Severe thunderstorm / tornado warnings and watches within a day either side of a storm."""
        if isinstance(storm_date, datetime):
            moment = storm_date
        else:
            moment = datetime.combine(storm_date, time(12), tzinfo=EASTERN)
        return await self.fetch_alerts(
            lat,
            lng,
            start=moment - timedelta(days=1),
            end=moment + timedelta(days=1),
            event_types=STORM_ALERT_EVENTS,
        )

    async def search_with_status(
        self, lat: float, lng: float, radius_miles: float = 0, months: int = 24
    ) -> tuple[list[StormEvent], SourceStatus]:
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=round(months * 30.44))
        alerts = await self._cached_alerts(lat, lng, start, end, None)
        if alerts is None:
            return [], SourceStatus.ERROR
        events = [e for e in (alert_to_event(a, lat, lng) for a in alerts) if e is not None]
        return events, SourceStatus.OK

    async def search(self, lat: float, lng: float, months: int = 24) -> list[StormEvent]:
        events, _ = await self.search_with_status(lat, lng, 0, months)
        return events


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
