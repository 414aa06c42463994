"""Tests for provider normalization: severity, event typing, coordinates, dates."""

from datetime import date, datetime, timedelta, timezone

import pytest

from stormintel.data.normalize import (
    ExtractionRule,
    FieldKind,
    build_event,
    classify_archive_event_type,
    classify_severity,
    extract,
    knots_to_mph,
    parse_archive_datetime,
    parse_zone_offset,
    to_eastern_date,
    valid_coordinates,
)
from stormintel.models.storm import EventType, Severity


class TestSeverity:
    @pytest.mark.parametrize("size,expected", [
        (0.75, Severity.MINOR),
        (1.0, Severity.MODERATE),
        (1.75, Severity.MODERATE),
        (2.0, Severity.SEVERE),
        (4.0, Severity.SEVERE),
    ])
    def test_hail(self, size, expected):
        assert classify_severity(EventType.HAIL, size) == expected

    @pytest.mark.parametrize("mph,expected", [
        (45, Severity.MINOR),
        (58, Severity.MODERATE),
        (74.9, Severity.MODERATE),
        (75, Severity.SEVERE),
    ])
    def test_wind(self, mph, expected):
        assert classify_severity(EventType.WIND, mph) == expected

    def test_tornado_always_severe(self):
        assert classify_severity(EventType.TORNADO, None) == Severity.SEVERE
        assert classify_severity(EventType.TORNADO, 0.1) == Severity.SEVERE

    def test_missing_magnitude(self):
        assert classify_severity(EventType.HAIL, None) is None
        assert classify_severity(EventType.WIND, None) is None


class TestArchiveEventType:
    @pytest.mark.parametrize("text,expected", [
        ("Hail", EventType.HAIL),
        ("Marine Hail", EventType.HAIL),
        ("Thunderstorm Wind", EventType.WIND),
        ("Marine Thunderstorm Wind", EventType.WIND),
        ("Tornado", EventType.TORNADO),
        ("High Wind", None),
        ("Flash Flood", None),
        ("", None),
        (None, None),
    ])
    def test_classification(self, text, expected):
        assert classify_archive_event_type(text) == expected

    def test_knots_to_mph(self):
        assert knots_to_mph(50) == 57.5
        assert knots_to_mph(65) == 74.8


class TestCoordinates:
    @pytest.mark.parametrize("lat,lng", [
        (None, -96.8),
        (32.78, None),
        (0, -96.8),
        (32.78, 0),
        (float("nan"), -96.8),
        (91, -96.8),
        (32.78, -181),
    ])
    def test_rejected(self, lat, lng):
        assert not valid_coordinates(lat, lng)

    def test_accepted(self):
        assert valid_coordinates(32.78, -96.8)
        assert valid_coordinates(-33.9, 151.2)


class TestExtract:
    RULE = ExtractionRule("size", FieldKind.NUMBER, ("SizeAtLocation", "SizeWithin1Mile", "data.size"))

    def test_first_present_wins(self):
        assert extract({"SizeAtLocation": 1.25, "SizeWithin1Mile": 2.0}, self.RULE) == 1.25

    def test_skips_empty_and_unparseable(self):
        assert extract({"SizeAtLocation": "", "SizeWithin1Mile": "1.5"}, self.RULE) == 1.5
        assert extract({"SizeAtLocation": "n/a", "SizeWithin1Mile": None}, self.RULE) is None

    def test_nested_key(self):
        assert extract({"data": {"size": "0.88"}}, self.RULE) == 0.88

    def test_zero_falls_through(self):
        assert extract({"SizeAtLocation": 0, "SizeWithin1Mile": 1.75}, self.RULE) == 1.75

    def test_text_coercion(self):
        rule = ExtractionRule("id", FieldKind.TEXT, ("id",))
        assert extract({"id": 123}, rule) == "123"


class TestDates:
    def test_zone_with_offset(self):
        assert parse_zone_offset("CST-6") == timezone(timedelta(hours=-6))
        assert parse_zone_offset("GST10") == timezone(timedelta(hours=10))

    def test_zone_abbreviation_only(self):
        assert parse_zone_offset("EDT") == timezone(timedelta(hours=-4))

    def test_unknown_zone_is_utc(self):
        assert parse_zone_offset("XYZ") == timezone.utc
        assert parse_zone_offset(None) == timezone.utc

    def test_archive_datetime_crosses_midnight(self):
        # 23:30 CST is 01:30 EDT the next day
        assert parse_archive_datetime("28-APR-24 23:30:00", "CST-6") == date(2024, 4, 29)

    def test_archive_datetime_same_day(self):
        assert parse_archive_datetime("28-APR-24 15:00:00", "CST-6") == date(2024, 4, 28)

    def test_iso_utc_string(self):
        assert to_eastern_date("2024-04-29T02:00:00Z") == date(2024, 4, 28)

    def test_naive_datetime_is_eastern(self):
        assert to_eastern_date(datetime(2024, 4, 29, 23, 0)) == date(2024, 4, 29)

    def test_date_only_string(self):
        assert to_eastern_date("2024-05-01") == date(2024, 5, 1)

    def test_garbage(self):
        assert to_eastern_date("not a date") is None
        assert to_eastern_date("") is None


class TestBuildEvent:
    def test_severity_derived(self):
        event = build_event(
            id="x", event_type=EventType.HAIL, event_date=date(2024, 5, 1),
            latitude=32.78, longitude=-96.8, magnitude=2.25, source="t",
        )
        assert event.severity == Severity.SEVERE

    def test_invalid_coordinates_dropped(self):
        assert build_event(
            id="x", event_type=EventType.HAIL, event_date=date(2024, 5, 1),
            latitude=0, longitude=0, magnitude=1.0, source="t",
        ) is None

    def test_missing_date_dropped(self):
        assert build_event(
            id="x", event_type=EventType.HAIL, event_date=None,
            latitude=32.78, longitude=-96.8, magnitude=1.0, source="t",
        ) is None

    @pytest.mark.parametrize("event_type,magnitude", [
        (EventType.HAIL, 0.5), (EventType.HAIL, 1.75), (EventType.HAIL, None),
        (EventType.WIND, 60), (EventType.WIND, 90), (EventType.TORNADO, None),
    ])
    def test_severity_recompute_idempotent(self, event_type, magnitude):
        event = build_event(
            id="x", event_type=event_type, event_date=date(2024, 5, 1),
            latitude=37.5407, longitude=-77.4360, magnitude=magnitude, source="t",
        )
        assert classify_severity(event.event_type, event.magnitude) == event.severity
