"""Great-circle distance and bounding-box helpers."""

import math

from stormintel.models.storm import BoundingBox, GeoPoint

EARTH_RADIUS_MILES = 3959.0
MILES_PER_DEGREE = 69.0  # latitude; longitude shrinks by cos(lat)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def bounds_from_center(center: GeoPoint, radius_miles: float) -> BoundingBox:
    """Square-ish box around ``center`` using the 69 miles-per-degree approximation."""
    lat_delta = radius_miles / MILES_PER_DEGREE
    lng_delta = radius_miles / (MILES_PER_DEGREE * math.cos(math.radians(center.lat)))
    return BoundingBox(
        north=center.lat + lat_delta,
        south=center.lat - lat_delta,
        east=center.lng + lng_delta,
        west=center.lng - lng_delta,
    )


def covering_radius_miles(bounds: BoundingBox) -> float:
    """Distance from the box center to its farthest corner."""
    center = bounds.center
    return max(
        haversine_miles(center.lat, center.lng, lat, lng)
        for lat in (bounds.north, bounds.south)
        for lng in (bounds.east, bounds.west)
    )
