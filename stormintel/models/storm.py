"""Storm intelligence data types."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    HAIL = "hail"
    WIND = "wind"
    TORNADO = "tornado"


class Severity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class SourceStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"


class StormEvent(BaseModel):
    """Canonical storm event. Built only through normalize.build_event."""

    model_config = ConfigDict(frozen=True)

    id: str
    event_type: EventType
    date: date  # Eastern calendar date
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    magnitude: float | None = None  # inches for hail, mph for wind
    severity: Severity | None = None
    source: str
    certified: bool = False
    state: str = ""
    location: str = ""
    narrative: str = ""


class NWSAlert(BaseModel):
    id: str
    headline: str = ""
    description: str = ""
    severity: str = "Unknown"
    certainty: str = "Unknown"
    event: str = "Unknown Event"
    onset: str = ""
    expires: str = ""
    sender_name: str = "NWS"
    area_desc: str = ""
    max_hail_size: float | None = None  # inches
    max_wind_gust: float | None = None  # mph


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(lat=(self.north + self.south) / 2, lng=(self.east + self.west) / 2)

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


@dataclass(frozen=True)
class AddressMonitor:
    marker_id: str
    location: GeoPoint | None = None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GridPoint:
    grid_id: str
    grid_x: int
    grid_y: int
    forecast_zone: str = ""


@dataclass(frozen=True)
class SearchArea:
    center: GeoPoint | None
    radius_miles: float
    months: int


@dataclass(frozen=True)
class StormSearchResult:
    events: list[StormEvent]
    total_count: int
    search_area: SearchArea
    # catalog / archive / alerts -> ok | error | skipped
    source_status: dict[str, SourceStatus] = field(default_factory=dict)


@dataclass
class GeographicCell:
    lat: float
    lng: float
    events: list[StormEvent] = field(default_factory=list)


@dataclass(frozen=True)
class HotZone:
    id: str
    center_lat: float
    center_lng: float
    intensity: int  # 0-100
    event_count: int
    recent_event_count: int
    avg_magnitude: float | None
    max_magnitude: float | None
    last_event_date: date | None
    recommendation: str
    radius_miles: float
    events: list[StormEvent] = field(default_factory=list)
