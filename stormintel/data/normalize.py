"""Normalization from provider record shapes into the canonical StormEvent.

Severity is derived here, once, from magnitude and event type. Downstream code
reads ``StormEvent.severity`` and never re-derives it.

Thresholds:
  Hail (inches): >= 2.0 severe, >= 1.0 moderate, otherwise minor
  Wind (mph):    >= 75 severe,  >= 58 moderate,  otherwise minor
  Tornado:       always severe
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from stormintel.models.storm import EventType, Severity, StormEvent

logger = logging.getLogger(__name__)

EASTERN = ZoneInfo("America/New_York")

KNOTS_TO_MPH = 1.15078

HAIL_SEVERE_IN = 2.0
HAIL_MODERATE_IN = 1.0
WIND_SEVERE_MPH = 75.0
WIND_MODERATE_MPH = 58.0  # NWS severe thunderstorm wind criterion


# ---- Extraction rules ----

class FieldKind(Enum):
    NUMBER = "number"
    TEXT = "text"


@dataclass(frozen=True)
class ExtractionRule:
    """Candidate keys for one logical field, most specific first."""
    name: str
    kind: FieldKind
    keys: tuple[str, ...]


def _coerce(value: Any, kind: FieldKind) -> Any | None:
    if value is None or value == "":
        return None
    if kind is FieldKind.NUMBER:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return None if math.isnan(number) else number
    return str(value)


def extract(payload: Mapping[str, Any], rule: ExtractionRule) -> Any | None:
    """Return the first present, coercible value for ``rule`` in ``payload``.

    Dotted keys (``data.markerId``) descend into nested mappings. A numeric zero
    counts as unreported and falls through to the next key.
    """
    for key in rule.keys:
        node: Any = payload
        for part in key.split("."):
            if not isinstance(node, Mapping):
                node = None
                break
            node = node.get(part)
        value = _coerce(node, rule.kind)
        if value is not None and not (rule.kind is FieldKind.NUMBER and value == 0):
            return value
    return None


# ---- Severity ----

def classify_severity(event_type: EventType, magnitude: float | None) -> Severity | None:
    """Pure function of (event_type, magnitude). None when hail/wind magnitude is unreported."""
    if event_type is EventType.TORNADO:
        return Severity.SEVERE
    if magnitude is None:
        return None
    if event_type is EventType.HAIL:
        severe, moderate = HAIL_SEVERE_IN, HAIL_MODERATE_IN
    else:
        severe, moderate = WIND_SEVERE_MPH, WIND_MODERATE_MPH
    if magnitude >= severe:
        return Severity.SEVERE
    if magnitude >= moderate:
        return Severity.MODERATE
    return Severity.MINOR


def classify_archive_event_type(text: str | None) -> EventType | None:
    """Map the archive's free-text EVENT_TYPE onto hail / wind / tornado.

    Wind requires both "thunder" and "wind" so that e.g. "High Wind" is excluded.
    """
    t = (text or "").lower()
    if "hail" in t:
        return EventType.HAIL
    if "thunder" in t and "wind" in t:
        return EventType.WIND
    if "tornado" in t:
        return EventType.TORNADO
    return None


def knots_to_mph(knots: float) -> float:
    return round(knots * KNOTS_TO_MPH, 1)


# ---- Coordinates ----

def valid_coordinates(lat: float | None, lng: float | None) -> bool:
    """Reject missing, NaN, zero, and out-of-range coordinates."""
    if lat is None or lng is None:
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    if lat == 0 or lng == 0:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def parse_float(value: Any) -> float | None:
    return _coerce(value, FieldKind.NUMBER)


# ---- Dates ----

_TZ_ABBREVIATIONS = {
    "EST": -5, "EDT": -4, "CST": -6, "CDT": -5, "MST": -7, "MDT": -6,
    "PST": -8, "PDT": -7, "AKST": -9, "AKDT": -8, "HST": -10, "AST": -4,
    "SST": -11, "GST": 10, "UTC": 0, "GMT": 0,
}

_TZ_PATTERN = re.compile(r"^([A-Z]+)?(-?\d+)?$")


def parse_zone_offset(zone: str | None) -> timezone:
    """Parse archive zone labels like ``CST-6``, ``GST10`` or ``EDT``. Unknown -> UTC."""
    label = (zone or "").strip().upper()
    m = _TZ_PATTERN.match(label)
    if not label or m is None:
        return timezone.utc
    abbrev, offset = m.groups()
    if offset is not None:
        return timezone(timedelta(hours=int(offset)))
    if abbrev in _TZ_ABBREVIATIONS:
        return timezone(timedelta(hours=_TZ_ABBREVIATIONS[abbrev]))
    return timezone.utc


def to_eastern_date(value: datetime | date | str, source_tz: timezone | ZoneInfo = EASTERN) -> date | None:
    """Convert a provider date/time into the Eastern calendar date.

    Naive datetimes are interpreted in ``source_tz``. Bare dates are taken as-is.
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                return date.fromisoformat(text[:10])
            except ValueError:
                return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=source_tz)
        return value.astimezone(EASTERN).date()
    return value


def eastern_today() -> date:
    return datetime.now(EASTERN).date()


def parse_archive_datetime(text: str | None, zone: str | None) -> date | None:
    """Parse ``28-APR-24 23:30:00`` in the row's CZ_TIMEZONE and return the Eastern date."""
    if not text:
        return None
    try:
        local = datetime.strptime(text.strip().title(), "%d-%b-%y %H:%M:%S")
    except ValueError:
        return to_eastern_date(text, parse_zone_offset(zone))
    return to_eastern_date(local, parse_zone_offset(zone))


# ---- Construction ----

def build_event(
    *,
    id: str,
    event_type: EventType,
    event_date: date | None,
    latitude: float | None,
    longitude: float | None,
    magnitude: float | None,
    source: str,
    certified: bool = False,
    state: str = "",
    location: str = "",
    narrative: str = "",
) -> StormEvent | None:
    """Build a canonical StormEvent, or None if the record fails validation."""
    if event_date is None or not valid_coordinates(latitude, longitude):
        return None
    return StormEvent(
        id=id,
        event_type=event_type,
        date=event_date,
        latitude=latitude,
        longitude=longitude,
        magnitude=magnitude,
        severity=classify_severity(event_type, magnitude),
        source=source,
        certified=certified,
        state=state,
        location=location,
        narrative=narrative,
    )
