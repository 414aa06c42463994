"""NOAA Storm Events Database: bulk CSV archive ingestion.

NCEI publishes one gzip-compressed "details" CSV per year, re-issued with a new
creation stamp whenever the year is revised:

    StormEvents_details-ftp_v1.0_d2024_c20250117.csv.gz

The file for a year is discovered from the directory listing (the lexically last
match is the newest revision), streamed, decompressed and parsed row by row, so a
year is never held in memory as raw CSV. Only hail, thunderstorm wind and tornado
rows with usable coordinates survive. Free, no API key.
"""

import codecs
import csv
import logging
import re
import zlib
from datetime import date, timedelta

import httpx
from pydantic import TypeAdapter

from stormintel.config import settings
from stormintel.data.base import DataFileResolver
from stormintel.data.cache import Cache, MemoryCache, make_key
from stormintel.data.normalize import (
    build_event,
    classify_archive_event_type,
    eastern_today,
    knots_to_mph,
    parse_archive_datetime,
    parse_float,
)
from stormintel.engine.geo import haversine_miles
from stormintel.models.storm import EventType, SourceStatus, StormEvent

logger = logging.getLogger(__name__)

SOURCE_NAME = "NOAA Storm Events Database"

_events_adapter = TypeAdapter(list[StormEvent])


def details_file_pattern(year: int) -> re.Pattern:
    return re.compile(rf"StormEvents_details-ftp_v1\.0_d{year}_c\d+\.csv\.gz")


class NCEIDirectoryResolver:
    """Finds a year's details file by scraping the NCEI HTML directory listing."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.noaa_csv_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def resolve(self, year: int) -> str | None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.get(f"{self.base_url}/")
            resp.raise_for_status()
            listing = resp.text

        matches = sorted(set(details_file_pattern(year).findall(listing)))
        if not matches:
            return None
        return f"{self.base_url}/{matches[-1]}"


class CsvRecordStream:
    """Incremental CSV parser fed with decoded text chunks.

    Physical lines are joined into one logical record until its quote count is
    even, so quoted narratives containing newlines parse correctly.
    """

    def __init__(self):
        self._buffer = ""
        self._pending: str | None = None
        self._header: list[str] | None = None

    def feed(self, text: str) -> list[dict[str, str]]:
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return self._consume(lines)

    def close(self) -> list[dict[str, str]]:
        lines = [self._buffer] if self._buffer else []
        self._buffer = ""
        rows = self._consume(lines)
        if self._pending is not None:
            rows.extend(self._emit(self._pending))
            self._pending = None
        return rows

    def _consume(self, lines: list[str]) -> list[dict[str, str]]:
        rows = []
        for line in lines:
            line = line.rstrip("\r")
            record = line if self._pending is None else f"{self._pending}\n{line}"
            if record.count('"') % 2:
                self._pending = record
                continue
            self._pending = None
            rows.extend(self._emit(record))
        return rows

    def _emit(self, record: str) -> list[dict[str, str]]:
        if not record.strip():
            return []
        try:
            values = next(csv.reader([record]))
        except csv.Error as e:
            logger.debug("Skipping unparseable CSV record: %s", e)
            return []
        if self._header is None:
            self._header = [h.strip() for h in values]
            return []
        return [dict(zip(self._header, values))]


def row_to_event(row: dict[str, str]) -> StormEvent | None:
    """Normalize one archive row. Returns None for irrelevant or unusable rows."""
    event_type = classify_archive_event_type(row.get("EVENT_TYPE"))
    if event_type is None:
        return None

    magnitude = parse_float(row.get("MAGNITUDE"))
    if event_type is EventType.WIND and magnitude is not None:
        magnitude = knots_to_mph(magnitude)
    elif event_type is EventType.TORNADO:
        magnitude = None  # tornado strength lives in TOR_F_SCALE, not MAGNITUDE

    raw_id = row.get("EVENT_ID") or row.get("EPISODE_ID") or ""
    return build_event(
        id=f"noaa-{raw_id}",
        event_type=event_type,
        event_date=parse_archive_datetime(row.get("BEGIN_DATE_TIME"), row.get("CZ_TIMEZONE")),
        latitude=parse_float(row.get("BEGIN_LAT")),
        longitude=parse_float(row.get("BEGIN_LON")),
        magnitude=magnitude,
        source=SOURCE_NAME,
        certified=True,
        state=(row.get("STATE") or "").title(),
        location=row.get("CZ_NAME") or "",
        narrative=row.get("EVENT_NARRATIVE") or row.get("EPISODE_NARRATIVE") or "",
    )


class NOAAStormEventsClient:
    def __init__(
        self,
        file_resolver: DataFileResolver | None = None,
        cache: Cache | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.file_resolver = file_resolver or NCEIDirectoryResolver(transport=transport)
        self.cache = cache or MemoryCache(max_entries=settings.cache_max_entries)
        self.timeout = timeout or settings.noaa_download_timeout
        self._transport = transport

    async def fetch_year(self, year: int) -> list[StormEvent]:
        """All hail / thunderstorm wind / tornado events for a year, cached for 24 hours.

        A year with no published file yields []. HTTP failures propagate.
        """
        key = make_key("noaa", "year", year)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.info("Using cached NOAA data for %s", year)
            return _events_adapter.validate_python(cached)

        url = await self.file_resolver.resolve(year)
        if url is None:
            logger.warning("No NOAA storm data file found for year %s", year)
            return []

        logger.info("Fetching NOAA data: %s", url)
        events = await self._stream_events(url)
        logger.info("Parsed %d NOAA events for %s", len(events), year)

        await self.cache.set(key, _events_adapter.dump_python(events, mode="json"), settings.noaa_cache_ttl)
        return events

    async def _stream_events(self, url: str) -> list[StormEvent]:
        decompressor = zlib.decompressobj(zlib.MAX_WBITS | 16)
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        records = CsvRecordStream()
        events: list[StormEvent] = []
        seen: set[str] = set()

        def collect(rows: list[dict[str, str]]) -> None:
            for row in rows:
                event = row_to_event(row)
                if event is not None and event.id not in seen:
                    seen.add(event.id)
                    events.append(event)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                async for chunk in resp.aiter_bytes():
                    collect(records.feed(decoder.decode(decompressor.decompress(chunk))))

        tail = decoder.decode(decompressor.flush(), final=True)
        collect(records.feed(tail))
        collect(records.close())
        return events

    async def search_with_status(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 10.0,
        months: int = 24,
        event_types: set[EventType] | None = None,
        today: date | None = None,
    ) -> tuple[list[StormEvent], SourceStatus]:
        """Events within ``radius_miles`` of a point over the last ``months``, newest first.

        Years are fetched one after another; a failed year is logged and skipped.
        Status is ERROR only when every year failed.
        """
        today = today or eastern_today()
        cutoff = today - timedelta(days=round(months * 30.44))
        years = list(range(today.year, cutoff.year - 1, -1))

        events: list[StormEvent] = []
        failures = 0
        for year in years:
            try:
                year_events = await self.fetch_year(year)
            except (httpx.HTTPError, zlib.error, ValueError) as e:
                logger.warning("NOAA data for %s not available: %s", year, e)
                failures += 1
                continue
            events.extend(
                e for e in year_events
                if e.date >= cutoff
                and (event_types is None or e.event_type in event_types)
                and haversine_miles(lat, lng, e.latitude, e.longitude) <= radius_miles
            )

        events.sort(key=lambda e: e.date, reverse=True)
        status = SourceStatus.ERROR if years and failures == len(years) else SourceStatus.OK
        return events, status

    async def search(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 10.0,
        months: int = 24,
        event_types: set[EventType] | None = None,
    ) -> list[StormEvent]:
        events, _ = await self.search_with_status(lat, lng, radius_miles, months, event_types)
        return events
