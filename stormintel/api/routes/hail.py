"""Hail catalog and combined storm search routes."""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from stormintel.api.deps import get_hail_maps, get_resolver
from stormintel.api.schemas import (
    AdvancedSearchRequest,
    HailStatusResponse,
    MonitorRequest,
    MonitorResponse,
    StormSearchResponse,
)
from stormintel.data.base import ConfigurationError, ProviderError
from stormintel.data.hail_maps import SOURCE_NAME, HailMapsClient
from stormintel.data.normalize import eastern_today
from stormintel.data.resolver import StormResolver, filter_by_hail_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/hail", tags=["hail"])


@router.get("/status", response_model=HailStatusResponse)
async def hail_status(hail_maps: HailMapsClient = Depends(get_hail_maps)):
    return HailStatusResponse(configured=hail_maps.is_configured, provider=SOURCE_NAME)


@router.post("/monitor", response_model=MonitorResponse)
async def create_monitor(req: MonitorRequest, hail_maps: HailMapsClient = Depends(get_hail_maps)):
    """Register an address for hail monitoring."""
    try:
        monitor = await hail_maps.create_monitor(req.street, req.city, req.state, req.zip)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except (ProviderError, httpx.HTTPError) as e:
        logger.warning("Hail monitor registration failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Hail provider error: {e}")

    return MonitorResponse(
        marker_id=monitor.marker_id,
        latitude=monitor.location.lat if monitor.location else None,
        longitude=monitor.location.lng if monitor.location else None,
    )


@router.get("/search", response_model=StormSearchResponse)
async def search(
    marker_id: str | None = None,
    street: str | None = None,
    city: str | None = None,
    state: str | None = None,
    zip: str = "",
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    months: int = Query(24, ge=1, le=240),
    radius: float = Query(10.0, gt=0),
    resolver: StormResolver = Depends(get_resolver),
):
    """Storm history by marker id, address parts, or coordinates (checked in that order)."""
    if marker_id:
        result = await resolver.search_by_marker(marker_id, months)
    elif street or city or state:
        if not (street and city and state):
            raise HTTPException(status_code=400, detail="street, city, and state are required")
        result = await resolver.search_by_address(street, city, state, zip, months, radius)
    elif lat is not None and lng is not None:
        result = await resolver.search_by_coordinates(lat, lng, months, radius)
    else:
        raise HTTPException(status_code=400, detail="Provide street/city/state/zip, marker_id, or lat/lng")

    return StormSearchResponse.from_result(result)


@router.post("/search-advanced", response_model=StormSearchResponse)
async def search_advanced(req: AdvancedSearchRequest, resolver: StormResolver = Depends(get_resolver)):
    """Search with a date window and a minimum hail size."""
    months = req.months(eastern_today())
    if req.street and req.city and req.state:
        result = await resolver.search_by_address(req.street, req.city, req.state, req.zip, months, req.radius_miles)
    elif req.latitude is not None and req.longitude is not None:
        result = await resolver.search_by_coordinates(req.latitude, req.longitude, months, req.radius_miles)
    else:
        raise HTTPException(status_code=400, detail="Must provide address or coordinates")

    events = [
        e for e in filter_by_hail_size(result.events, req.min_hail_size)
        if (req.start_date is None or e.date >= req.start_date)
        and (req.end_date is None or e.date <= req.end_date)
    ]
    response = StormSearchResponse.from_result(result)
    return response.model_copy(update={"events": events, "total_count": len(events)})
