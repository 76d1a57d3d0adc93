"""
API router for fire hotspot alerts.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Query

from carbono.api.dependencies import FireAlertServiceDep
from carbono.api.v1.models.responses import ERROR_RESPONSES, ApiResponse
from carbono.domain.models import FireHotspotReport


router = APIRouter(
    prefix="/fires",
    tags=["fires"],
)


@router.get(
    "/hotspots",
    response_model=ApiResponse[FireHotspotReport],
    summary="Active fire hotspots",
    description="""
    NASA FIRMS hotspots for Bolivia (or a custom bounding box), deduplicated
    within ~500 m and classified by severity. Use `source=ALL` to merge the
    VIIRS NOAA-20, VIIRS S-NPP and MODIS feeds.
    """,
    responses=ERROR_RESPONSES,
)
async def get_hotspots(
    fire_service: FireAlertServiceDep,
    day_range: Annotated[int, Query(alias="dayRange", ge=1, le=10)] = 1,
    source: Annotated[Optional[str], Query(description="FIRMS source or ALL")] = None,
    min_confidence: Annotated[float, Query(alias="minConfidence", ge=0, le=100)] = 0,
    west: Optional[float] = None,
    south: Optional[float] = None,
    east: Optional[float] = None,
    north: Optional[float] = None,
) -> ApiResponse[FireHotspotReport]:
    bounds = (west, south, east, north)
    bbox = bounds if all(value is not None for value in bounds) else None
    report = await fire_service.get_hotspots(
        day_range=day_range,
        source=source,
        min_confidence=min_confidence,
        bbox=bbox,
    )
    return ApiResponse(data=report)
