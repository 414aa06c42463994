"""Fixed-grid spatial clustering of storm events.

Each event's coordinate is snapped to a 0.075 degree grid (about 5 miles at
mid-latitudes) and events sharing a cell are grouped. Grouping is deterministic
and independent of input order. Adjacent cells are never merged.
"""

import math
from datetime import date, timedelta
from typing import Iterable

from stormintel.models.storm import BoundingBox, GeographicCell, StormEvent

GRID_SIZE_DEG = 0.075


def cell_index(lat: float, lng: float, grid_size: float = GRID_SIZE_DEG) -> tuple[int, int]:
    """Grid indices for a coordinate, rounding halves up."""
    return math.floor(lat / grid_size + 0.5), math.floor(lng / grid_size + 0.5)


def filter_in_bounds(events: Iterable[StormEvent], bounds: BoundingBox) -> list[StormEvent]:
    return [e for e in events if bounds.contains(e.latitude, e.longitude)]


def filter_recent(events: Iterable[StormEvent], days: int, today: date) -> list[StormEvent]:
    cutoff = today - timedelta(days=days)
    return [e for e in events if e.date >= cutoff]


def cluster_into_cells(events: Iterable[StormEvent], grid_size: float = GRID_SIZE_DEG) -> list[GeographicCell]:
    """Group events by grid cell. Cells come back ordered by (lat, lng) index."""
    cells: dict[tuple[int, int], GeographicCell] = {}
    for event in events:
        key = cell_index(event.latitude, event.longitude, grid_size)
        cell = cells.get(key)
        if cell is None:
            cell = cells[key] = GeographicCell(
                lat=round(key[0] * grid_size, 6),
                lng=round(key[1] * grid_size, 6),
            )
        cell.events.append(event)
    return [cells[k] for k in sorted(cells)]
