"""Hot-zone and storm warning routes."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from stormintel.api.deps import get_nws_client, get_resolver
from stormintel.api.schemas import HotZoneResponse, HotZonesResponse, WarningsResponse
from stormintel.data.nws_alerts import NWSAlertClient
from stormintel.data.resolver import StormResolver
from stormintel.models.storm import BoundingBox, GeoPoint

router = APIRouter(prefix="/api/v1/storms", tags=["storms"])


@router.get("/hot-zones", response_model=HotZonesResponse)
async def hot_zones(
    north: float | None = Query(None, ge=-90, le=90),
    south: float | None = Query(None, ge=-90, le=90),
    east: float | None = Query(None, ge=-180, le=180),
    west: float | None = Query(None, ge=-180, le=180),
    center_lat: float | None = Query(None, ge=-90, le=90),
    center_lng: float | None = Query(None, ge=-180, le=180),
    radius_miles: float = Query(50.0, gt=0),
    months: int = Query(24, ge=1, le=240),
    resolver: StormResolver = Depends(get_resolver),
):
    """Ranked canvassing zones for a bounding box, or a center and radius."""
    bounds = None
    center = None
    if None not in (north, south, east, west):
        if south > north or west > east:
            raise HTTPException(status_code=400, detail="Invalid bounding box")
        bounds = BoundingBox(north=north, south=south, east=east, west=west)
    elif center_lat is not None and center_lng is not None:
        center = GeoPoint(lat=center_lat, lng=center_lng)
    else:
        raise HTTPException(status_code=400, detail="Must provide either bounds or center coordinates")

    zones = await resolver.get_hot_zones(bounds=bounds, center=center, radius_miles=radius_miles, months=months)
    return HotZonesResponse(hot_zones=[HotZoneResponse.from_zone(z) for z in zones], count=len(zones))


@router.get("/warnings", response_model=WarningsResponse)
async def storm_warnings(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    storm_date: date = Query(...),
    nws: NWSAlertClient = Depends(get_nws_client),
):
    """NWS storm warnings and watches within a day either side of ``storm_date``."""
    alerts = await nws.fetch_storm_warnings(lat, lng, storm_date)
    return WarningsResponse(warnings=alerts, count=len(alerts))
