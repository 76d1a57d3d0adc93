"""
API router for the unified area analysis.
"""
from fastapi import APIRouter

from carbono.api.dependencies import AreaAnalysisServiceDep
from carbono.api.v1.models.requests import AreaAnalysisRequest
from carbono.api.v1.models.responses import ERROR_RESPONSES, ApiResponse, ErrorResponse
from carbono.domain.models import AreaAnalysisResult


router = APIRouter(
    prefix="/analysis",
    tags=["analysis"],
)


@router.post(
    "/area",
    response_model=ApiResponse[AreaAnalysisResult],
    summary="Analyze a drawn area",
    description="""
    Analyze a user-drawn polygon in Bolivia.

    This endpoint:
    1. Validates the polygon (GeoJSON Polygon, inside Bolivia, 1-100000 ha)
    2. Estimates tree counts from forest density tiers
    3. Queries communities, waterways and buildings from OpenStreetMap
    4. Optionally snaps the area to forest boundaries

    A failing data source never fails the request; its section is empty and
    it is listed in `metadata.degradedSources`.
    """,
    responses={
        **ERROR_RESPONSES,
        504: {"model": ErrorResponse, "description": "Analysis timed out"},
    },
)
async def analyze_area(
    request: AreaAnalysisRequest,
    analysis_service: AreaAnalysisServiceDep,
) -> ApiResponse[AreaAnalysisResult]:
    """
    Run the area analysis.

    Args:
        request: Polygon and snapping options
        analysis_service: Area analysis service (injected dependency)

    Returns:
        Envelope with the AreaAnalysisResult
    """
    result = await analysis_service.analyze_area(
        request.geometry,
        snap_to_forest=request.snap_to_forest,
        threshold=request.threshold,
    )
    return ApiResponse(data=result)
