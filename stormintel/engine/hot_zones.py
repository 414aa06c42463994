"""Hot-zone scoring: rank grid cells by canvassing priority.

Intensity (0-100) is a weighted blend of three 0-100 sub-scores:
  Recency   (0.40): 100 on the day of the last event, falling to 0 at 90 days
  Severity  (0.35): step function on the largest hail size in the cell
  Frequency (0.25): 10 points per event, saturating at 10 events

A heuristic, kept simple so reps can reason about it.
"""

from datetime import date
from typing import Iterable

from stormintel.engine.clustering import (
    GRID_SIZE_DEG,
    cluster_into_cells,
    filter_in_bounds,
    filter_recent,
)
from stormintel.engine.geo import MILES_PER_DEGREE
from stormintel.models.storm import BoundingBox, GeographicCell, HotZone, StormEvent

WEIGHT_RECENCY = 0.40
WEIGHT_SEVERITY = 0.35
WEIGHT_FREQUENCY = 0.25

RECENT_WINDOW_DAYS = 90
FREQUENCY_SATURATION = 10
MIN_INTENSITY = 20  # zones at or below this are noise
MAX_HOT_ZONES = 10

# (minimum hail size in inches, score), checked top-down
SEVERITY_STEPS = (
    (2.0, 100),
    (1.5, 80),
    (1.0, 60),
    (0.75, 40),
)
SEVERITY_FLOOR = 20


def recency_score(days_since_last_event: int) -> float:
    return max(0.0, 100 - (days_since_last_event / RECENT_WINDOW_DAYS) * 100)


def severity_score(max_magnitude: float | None) -> float:
    """0 when the cell has no size data at all."""
    if max_magnitude is None:
        return 0.0
    for threshold, score in SEVERITY_STEPS:
        if max_magnitude >= threshold:
            return float(score)
    return float(SEVERITY_FLOOR)


def frequency_score(event_count: int) -> float:
    return min(100.0, (event_count / FREQUENCY_SATURATION) * 100)


def combine_scores(recency: float, severity: float, frequency: float) -> float:
    intensity = recency * WEIGHT_RECENCY + severity * WEIGHT_SEVERITY + frequency * WEIGHT_FREQUENCY
    return min(100.0, max(0.0, intensity))


def recommendation(intensity: float, event_count: int) -> str:
    if intensity >= 80:
        return f"HOT ZONE - High priority area with {event_count} events. Recent severe damage likely."
    if intensity >= 60:
        return f"Strong Area - {event_count} events with significant hail activity. Good canvassing opportunity."
    if intensity >= 40:
        return f"Moderate Activity - {event_count} events. Worth investigating for potential leads."
    return f"Low Activity - {event_count} events. Lower priority for canvassing."


def cell_intensity(cell: GeographicCell, today: date) -> float:
    """Unrounded 0-100 score for a cell. Filtering and tiers use this value."""
    magnitudes = [e.magnitude for e in cell.events if e.magnitude is not None]
    last_event_date = max((e.date for e in cell.events), default=None)
    days_since = (today - last_event_date).days if last_event_date else RECENT_WINDOW_DAYS
    return combine_scores(
        recency_score(max(0, days_since)),
        severity_score(max(magnitudes) if magnitudes else None),
        frequency_score(len(cell.events)),
    )


def build_hot_zone(
    cell: GeographicCell,
    recent_ids: set[str],
    today: date,
    grid_size: float = GRID_SIZE_DEG,
) -> HotZone:
    magnitudes = [e.magnitude for e in cell.events if e.magnitude is not None]
    avg_magnitude = sum(magnitudes) / len(magnitudes) if magnitudes else None
    max_magnitude = max(magnitudes) if magnitudes else None
    last_event_date = max((e.date for e in cell.events), default=None)
    intensity = cell_intensity(cell, today)

    return HotZone(
        id=f"hotzone-{cell.lat:.3f}-{cell.lng:.3f}",
        center_lat=cell.lat,
        center_lng=cell.lng,
        intensity=round(intensity),
        event_count=len(cell.events),
        recent_event_count=sum(1 for e in cell.events if e.id in recent_ids),
        avg_magnitude=round(avg_magnitude, 2) if avg_magnitude is not None else None,
        max_magnitude=max_magnitude,
        last_event_date=last_event_date,
        recommendation=recommendation(intensity, len(cell.events)),
        radius_miles=round(grid_size * MILES_PER_DEGREE, 3),
        events=sorted(cell.events, key=lambda e: (e.date, e.id), reverse=True),
    )


def generate_hot_zones(
    events: Iterable[StormEvent],
    bounds: BoundingBox,
    today: date,
    limit: int = MAX_HOT_ZONES,
) -> list[HotZone]:
    """Cluster in-bounds events and return the top scoring zones, highest first."""
    in_bounds = filter_in_bounds(events, bounds)
    recent_ids = {e.id for e in filter_recent(in_bounds, RECENT_WINDOW_DAYS, today)}

    zones = [
        build_hot_zone(cell, recent_ids, today)
        for cell in cluster_into_cells(in_bounds)
        if cell_intensity(cell, today) > MIN_INTENSITY
    ]
    zones.sort(key=lambda z: (-z.intensity, z.id))
    return zones[:limit]
