"""Tests for NOAA Storm Events bulk CSV ingestion."""

import gzip
from datetime import date

import httpx
import pytest

from stormintel.data.cache import MemoryCache
from stormintel.data.noaa_storm_events import (
    CsvRecordStream,
    NCEIDirectoryResolver,
    NOAAStormEventsClient,
    row_to_event,
)
from stormintel.models.storm import EventType, Severity, SourceStatus

BASE_URL = "https://ncei.test/csvfiles"

HEADER = "EVENT_ID,EPISODE_ID,STATE,EVENT_TYPE,CZ_NAME,BEGIN_DATE_TIME,CZ_TIMEZONE,MAGNITUDE,BEGIN_LAT,BEGIN_LON,EVENT_NARRATIVE"

ROWS_2024 = [
    '1001,501,TEXAS,Hail,DALLAS,28-APR-24 23:30:00,CST-6,1.75,32.79,-96.81,"Golf ball hail"',
    '1002,501,TEXAS,Thunderstorm Wind,DALLAS,15-MAY-24 18:00:00,CST-6,65,32.77,-96.79,"Trees down,\nroofs damaged"',
    '1003,502,TEXAS,Tornado,DALLAS,20-MAY-24 17:00:00,CST-6,,32.80,-96.82,',
    '1004,503,TEXAS,High Wind,DALLAS,21-MAY-24 17:00:00,CST-6,50,32.80,-96.82,',
    '1005,504,OKLAHOMA,Hail,TULSA,22-MAY-24 17:00:00,CST-6,2.00,36.15,-95.99,',
    '1006,505,TEXAS,Hail,DALLAS,01-MAR-24 12:00:00,CST-6,1.00,32.78,-96.80,',
    '1007,506,TEXAS,Hail,DALLAS,02-MAY-24 12:00:00,CST-6,1.00,,,',
]


def gz_csv(rows: list[str]) -> bytes:
    return gzip.compress(("\n".join([HEADER, *rows]) + "\n").encode())


def listing(*names: str) -> str:
    links = "".join(f'<a href="{n}">{n}</a>\n' for n in names)
    return f"<html><body><pre>{links}</pre></body></html>"


class StaticResolver:
    def __init__(self, urls: dict[int, str]):
        self.urls = urls
        self.calls = []

    async def resolve(self, year: int) -> str | None:
        self.calls.append(year)
        return self.urls.get(year)


@pytest.fixture
def requests():
    return []


def make_transport(files: dict[str, bytes], requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = files.get(str(request.url))
        if body is None:
            return httpx.Response(500)
        return httpx.Response(200, content=body)

    return httpx.MockTransport(handler)


# ── Directory resolution ────────────────────────────────────────

class TestDirectoryResolver:
    async def test_latest_revision_selected(self):
        html = listing(
            "StormEvents_details-ftp_v1.0_d2024_c20250101.csv.gz",
            "StormEvents_details-ftp_v1.0_d2024_c20250317.csv.gz",
            "StormEvents_details-ftp_v1.0_d2023_c20250401.csv.gz",
            "StormEvents_fatalities-ftp_v1.0_d2024_c20250401.csv.gz",
        )
        transport = httpx.MockTransport(lambda r: httpx.Response(200, text=html))
        resolver = NCEIDirectoryResolver(base_url=BASE_URL, transport=transport)
        assert await resolver.resolve(2024) == f"{BASE_URL}/StormEvents_details-ftp_v1.0_d2024_c20250317.csv.gz"

    async def test_missing_year(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, text=listing()))
        resolver = NCEIDirectoryResolver(base_url=BASE_URL, transport=transport)
        assert await resolver.resolve(1949) is None


# ── CSV parsing ─────────────────────────────────────────────────

class TestCsvRecordStream:
    def test_quoted_newline_kept_in_one_record(self):
        stream = CsvRecordStream()
        rows = stream.feed('A,B\n1,"line one\nline two"\n2,x\n')
        assert rows == [{"A": "1", "B": "line one\nline two"}, {"A": "2", "B": "x"}]

    def test_chunk_boundaries(self):
        text = 'A,B\n1,"split\nacross"\n2,tail'
        stream = CsvRecordStream()
        rows = []
        for i in range(0, len(text), 3):
            rows.extend(stream.feed(text[i:i + 3]))
        rows.extend(stream.close())
        assert rows == [{"A": "1", "B": "split\nacross"}, {"A": "2", "B": "tail"}]

    def test_crlf(self):
        stream = CsvRecordStream()
        assert stream.feed("A,B\r\n1,2\r\n") == [{"A": "1", "B": "2"}]


class TestRowToEvent:
    def test_wind_converted_to_mph(self):
        event = row_to_event({
            "EVENT_ID": "9", "EVENT_TYPE": "Thunderstorm Wind", "BEGIN_DATE_TIME": "15-MAY-24 18:00:00",
            "CZ_TIMEZONE": "CST-6", "MAGNITUDE": "65", "BEGIN_LAT": "32.7", "BEGIN_LON": "-96.7",
        })
        assert event.magnitude == 74.8
        assert event.severity == Severity.MODERATE
        assert event.certified

    def test_episode_id_fallback(self):
        event = row_to_event({
            "EVENT_ID": "", "EPISODE_ID": "77", "EVENT_TYPE": "Hail", "BEGIN_DATE_TIME": "15-MAY-24 18:00:00",
            "CZ_TIMEZONE": "CST-6", "MAGNITUDE": "1.0", "BEGIN_LAT": "32.7", "BEGIN_LON": "-96.7",
        })
        assert event.id == "noaa-77"

    def test_irrelevant_type(self):
        assert row_to_event({"EVENT_TYPE": "Flash Flood"}) is None


# ── Year fetch and search ───────────────────────────────────────

FILE_2024 = f"{BASE_URL}/StormEvents_details-ftp_v1.0_d2024_c20250317.csv.gz"
FILE_2023 = f"{BASE_URL}/StormEvents_details-ftp_v1.0_d2023_c20240601.csv.gz"


class TestNOAAClient:
    async def test_fetch_year_parses_stream(self, requests):
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024}),
            transport=make_transport({FILE_2024: gz_csv(ROWS_2024)}, requests),
        )
        events = await client.fetch_year(2024)
        by_id = {e.id: e for e in events}

        # High Wind is excluded; the coordinate-less row fails validation
        assert set(by_id) == {"noaa-1001", "noaa-1002", "noaa-1003", "noaa-1005", "noaa-1006"}
        assert by_id["noaa-1001"].date == date(2024, 4, 29)
        assert by_id["noaa-1001"].state == "Texas"
        assert by_id["noaa-1002"].narrative == "Trees down,\nroofs damaged"
        assert by_id["noaa-1003"].event_type == EventType.TORNADO
        assert by_id["noaa-1003"].severity == Severity.SEVERE

    async def test_fetch_year_cached(self, requests):
        resolver = StaticResolver({2024: FILE_2024})
        client = NOAAStormEventsClient(
            file_resolver=resolver,
            cache=MemoryCache(),
            transport=make_transport({FILE_2024: gz_csv(ROWS_2024)}, requests),
        )
        first = await client.fetch_year(2024)
        second = await client.fetch_year(2024)
        assert first == second
        assert len(requests) == 1
        assert resolver.calls == [2024]

    async def test_missing_year_not_cached(self, requests):
        resolver = StaticResolver({})
        client = NOAAStormEventsClient(file_resolver=resolver, transport=make_transport({}, requests))
        assert await client.fetch_year(2031) == []
        assert await client.fetch_year(2031) == []
        assert resolver.calls == [2031, 2031]

    async def test_search_filters_radius_window_and_sorts(self, requests, today):
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024}),
            transport=make_transport({FILE_2024: gz_csv(ROWS_2024)}, requests),
        )
        events, status = await client.search_with_status(32.78, -96.80, radius_miles=10, months=2, today=today)

        assert status == SourceStatus.OK
        # Tulsa is out of range, 1 March is before the window
        assert [e.id for e in events] == ["noaa-1003", "noaa-1002", "noaa-1001"]

    async def test_search_event_type_filter(self, requests, today):
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024}),
            transport=make_transport({FILE_2024: gz_csv(ROWS_2024)}, requests),
        )
        events, _ = await client.search_with_status(
            32.78, -96.80, radius_miles=10, months=2, event_types={EventType.HAIL}, today=today,
        )
        assert [e.id for e in events] == ["noaa-1001"]

    async def test_partial_year_failure(self, requests):
        rows_2023 = ['2001,601,TEXAS,Hail,DALLAS,10-JUN-23 15:00:00,CST-6,1.25,32.78,-96.80,']
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024, 2023: FILE_2023}),
            transport=make_transport({FILE_2023: gz_csv(rows_2023)}, requests),  # 2024 download fails
        )
        events, status = await client.search_with_status(32.78, -96.80, months=12, today=date(2024, 2, 1))
        assert status == SourceStatus.OK
        assert [e.id for e in events] == ["noaa-2001"]

    async def test_all_years_failed(self, requests):
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024, 2023: FILE_2023}),
            transport=make_transport({}, requests),
        )
        events, status = await client.search_with_status(32.78, -96.80, months=12, today=date(2024, 2, 1))
        assert events == []
        assert status == SourceStatus.ERROR

    async def test_corrupt_download_is_a_failed_year(self, requests, today):
        client = NOAAStormEventsClient(
            file_resolver=StaticResolver({2024: FILE_2024}),
            transport=make_transport({FILE_2024: b"not gzip at all"}, requests),
        )
        events, status = await client.search_with_status(32.78, -96.80, months=2, today=today)
        assert events == []
        assert status == SourceStatus.ERROR
