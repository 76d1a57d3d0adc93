"""
API router for earth-observation (GEE) endpoints.
"""
from fastapi import APIRouter

from carbono.api.dependencies import ForestServiceDep
from carbono.api.v1.models.requests import (
    AnalyzeAreaRequest,
    ForestMaskRequest,
    HistoricalTrendsRequest,
)
from carbono.api.v1.models.responses import ERROR_RESPONSES, ApiResponse
from carbono.domain.models import EarthObservationAnalysis, ForestMaskResult, HistoricalTrends


router = APIRouter(
    prefix="/gee",
    tags=["earth-observation"],
)


@router.post(
    "/analyze-area",
    response_model=ApiResponse[EarthObservationAnalysis],
    summary="Forest coverage and biomass for an area",
    responses=ERROR_RESPONSES,
)
async def analyze_area(
    request: AnalyzeAreaRequest,
    forest_service: ForestServiceDep,
) -> ApiResponse[EarthObservationAnalysis]:
    result = await forest_service.analyze_area(request.geometry, request.project_id)
    return ApiResponse(data=result)


@router.post(
    "/forest-mask",
    response_model=ApiResponse[ForestMaskResult],
    summary="Restrict a polygon to its forested parts",
    description="""
    Clip forest fragments above the tree-cover threshold to the polygon.

    The forest area never exceeds the original area; `fragmentCount` is the
    number of disjoint forest polygons.
    """,
    responses=ERROR_RESPONSES,
)
async def forest_mask(
    request: ForestMaskRequest,
    forest_service: ForestServiceDep,
) -> ApiResponse[ForestMaskResult]:
    result = await forest_service.get_forest_mask(
        request.geometry,
        threshold=request.threshold,
        simplify=request.simplify,
    )
    return ApiResponse(data=result)


@router.post(
    "/historical-trends",
    response_model=ApiResponse[HistoricalTrends],
    summary="NDVI and forest-cover trends",
    description="Date range is limited to two years.",
    responses=ERROR_RESPONSES,
)
async def historical_trends(
    request: HistoricalTrendsRequest,
    forest_service: ForestServiceDep,
) -> ApiResponse[HistoricalTrends]:
    result = await forest_service.get_historical_trends(
        request.geometry,
        request.start_date,
        request.end_date,
    )
    return ApiResponse(data=result)
