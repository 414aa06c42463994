"""Pydantic schemas for API request/response models."""

from datetime import date

from pydantic import BaseModel, Field, model_validator

from stormintel.models.storm import (
    HotZone,
    NWSAlert,
    SourceStatus,
    StormEvent,
    StormSearchResult,
)


# ---- Request schemas ----

class MonitorRequest(BaseModel):
    street: str
    city: str
    state: str
    zip: str = ""


class AdvancedSearchRequest(BaseModel):
    """Address parts or coordinates, with an optional date window and hail size floor."""
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str = ""
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    start_date: date | None = None
    end_date: date | None = None
    min_hail_size: float | None = Field(None, ge=0, description="Inches")
    radius_miles: float = Field(10.0, gt=0)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def months(self, today: date) -> int:
        """Lookback window implied by the date range. 24 months when no start is given."""
        if self.start_date is None:
            return 24
        end = self.end_date or today
        return max(1, (end.year - self.start_date.year) * 12 + (end.month - self.start_date.month) + 1)


# ---- Response schemas ----

class HailStatusResponse(BaseModel):
    configured: bool
    provider: str


class MonitorResponse(BaseModel):
    marker_id: str
    latitude: float | None = None
    longitude: float | None = None


class SearchAreaResponse(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    radius_miles: float
    months: int


class StormSearchResponse(BaseModel):
    events: list[StormEvent]
    total_count: int
    search_area: SearchAreaResponse
    source_status: dict[str, SourceStatus] = {}

    @classmethod
    def from_result(cls, result: StormSearchResult) -> "StormSearchResponse":
        area = result.search_area
        return cls(
            events=result.events,
            total_count=result.total_count,
            search_area=SearchAreaResponse(
                latitude=area.center.lat if area.center else None,
                longitude=area.center.lng if area.center else None,
                radius_miles=area.radius_miles,
                months=area.months,
            ),
            source_status=result.source_status,
        )


class HotZoneResponse(BaseModel):
    id: str
    center_lat: float
    center_lng: float
    intensity: int
    event_count: int
    recent_event_count: int
    avg_magnitude: float | None = None
    max_magnitude: float | None = None
    last_event_date: date | None = None
    recommendation: str
    radius_miles: float
    events: list[StormEvent] = []

    @classmethod
    def from_zone(cls, zone: HotZone) -> "HotZoneResponse":
        return cls(**{f: getattr(zone, f) for f in cls.model_fields})


class HotZonesResponse(BaseModel):
    hot_zones: list[HotZoneResponse]
    count: int


class WarningsResponse(BaseModel):
    warnings: list[NWSAlert]
    count: int
