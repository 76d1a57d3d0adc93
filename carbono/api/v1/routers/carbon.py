"""
API router for carbon accounting and its admin operations.
"""
from typing import Any, Dict

from fastapi import APIRouter

from carbono.api.dependencies import (
    CarbonCalculatorDep,
    RecalculationServiceDep,
    ResultCacheDep,
)
from carbono.api.v1.models.requests import CarbonCalculationRequest
from carbono.api.v1.models.responses import (
    ERROR_RESPONSES,
    ApiResponse,
    CacheStats,
    CarbonCalculationData,
)
from carbono.domain.models import RecalculationSummary
from carbono.utils.geometry import calculate_polygon_area, validate_polygon_geometry


router = APIRouter(
    prefix="/carbon",
    tags=["carbon"],
)

admin_router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


@router.post(
    "/calculate",
    response_model=ApiResponse[CarbonCalculationData],
    summary="Calculate CO2 sequestration",
    description="""
    IPCC-style carbon accounting:
    area x biomass (tC/ha) x 0.47 x sequestration rate x 3.67.

    Give `areaHectares` or a `geometry`. With `durationYears` the response
    also carries a yearly projection and verified credit estimate.
    """,
    responses=ERROR_RESPONSES,
)
async def calculate_carbon(
    request: CarbonCalculationRequest,
    calculator: CarbonCalculatorDep,
) -> ApiResponse[CarbonCalculationData]:
    area = request.area_hectares
    if area is None:
        area = calculate_polygon_area(validate_polygon_geometry(request.geometry))

    calculation = calculator.calculate_carbon_capture(
        area,
        request.project_type,
        forest_type=request.forest_type,
        department=request.department,
        biomass_per_hectare=request.biomass_per_hectare,
        duration_years=request.duration_years,
    )

    projection = None
    credits = None
    if request.duration_years:
        projection = calculator.multi_year_projection(
            area,
            request.project_type,
            request.duration_years,
            forest_type=request.forest_type,
            department=request.department,
            biomass_per_hectare=request.biomass_per_hectare,
        )
        credits = calculator.estimate_carbon_credits(
            calculation.estimated_co2_tons_year, years=request.duration_years
        )

    return ApiResponse(
        data=CarbonCalculationData(
            calculation=calculation,
            projection=projection,
            credits=credits,
        )
    )


@admin_router.post(
    "/recalculate-carbon",
    response_model=ApiResponse[RecalculationSummary],
    summary="Recalculate CO2 estimates of all active projects",
    description="Run after changing carbon factors. Idempotent for unchanged inputs.",
    responses=ERROR_RESPONSES,
)
async def recalculate_carbon(
    recalculation_service: RecalculationServiceDep,
) -> ApiResponse[RecalculationSummary]:
    summary = await recalculation_service.recalculate_all()
    return ApiResponse(data=summary)


@admin_router.get(
    "/cache/stats",
    response_model=ApiResponse[CacheStats],
    summary="Result cache statistics",
)
async def cache_stats(cache: ResultCacheDep) -> ApiResponse[CacheStats]:
    stats: Dict[str, Any] = cache.stats()
    return ApiResponse(data=CacheStats(**stats))
