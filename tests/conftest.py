"""Shared fixtures for storm intelligence tests.

Reference location: downtown Dallas, TX (32.78, -96.80), a well-worn hail corridor.
"""

from datetime import date

import pytest

from stormintel.data.normalize import build_event
from stormintel.models.storm import EventType, StormEvent

DALLAS_LAT = 32.78
DALLAS_LNG = -96.80

TODAY = date(2024, 6, 1)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_event():
    """Factory for canonical events. Defaults to a 1.5" hail event in Dallas on TODAY."""
    counter = iter(range(1, 10_000))

    def _make(
        event_type: EventType = EventType.HAIL,
        magnitude: float | None = 1.5,
        event_date: date = TODAY,
        lat: float = DALLAS_LAT,
        lng: float = DALLAS_LNG,
        id: str | None = None,
        source: str = "test",
    ) -> StormEvent:
        event = build_event(
            id=id or f"evt-{next(counter)}",
            event_type=event_type,
            event_date=event_date,
            latitude=lat,
            longitude=lng,
            magnitude=magnitude,
            source=source,
        )
        assert event is not None
        return event

    return _make
