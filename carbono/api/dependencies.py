"""
Dependency injection for FastAPI.
"""
from typing import Annotated

from fastapi import Depends

from carbono.infrastructure.earth_observation_client import (
    EarthObservationClient,
    get_earth_observation_client,
)
from carbono.infrastructure.firms_client import FireHotspotClient, get_firms_client
from carbono.infrastructure.overpass_client import OverpassClient, get_overpass_client
from carbono.infrastructure.project_repository import (
    InMemoryProjectRepository,
    get_project_repository,
)
from carbono.infrastructure.result_cache import ResultCache, get_result_cache
from carbono.services.application.area_analysis_service import AreaAnalysisService
from carbono.services.application.carbon_recalculation_service import (
    CarbonRecalculationService,
)
from carbono.services.application.fire_alert_service import FireAlertService
from carbono.services.application.forest_service import ForestService
from carbono.services.domain.carbon_calculator import CarbonCalculator, get_carbon_calculator


def get_forest_service(
    client: Annotated[EarthObservationClient, Depends(get_earth_observation_client)],
    cache: Annotated[ResultCache, Depends(get_result_cache)],
) -> ForestService:
    """
    Dependency factory for ForestService.

    Args:
        client: Earth-observation client (injected)
        cache: Result cache (injected)

    Returns:
        ForestService instance
    """
    return ForestService(client=client, cache=cache)


def get_area_analysis_service(
    overpass_client: Annotated[OverpassClient, Depends(get_overpass_client)],
    forest_service: Annotated[ForestService, Depends(get_forest_service)],
) -> AreaAnalysisService:
    """
    Dependency factory for AreaAnalysisService.

    Args:
        overpass_client: Overpass client (injected)
        forest_service: Forest service used for snapping (injected)

    Returns:
        AreaAnalysisService instance
    """
    return AreaAnalysisService(overpass_client=overpass_client, forest_service=forest_service)


def get_recalculation_service(
    repository: Annotated[InMemoryProjectRepository, Depends(get_project_repository)],
    calculator: Annotated[CarbonCalculator, Depends(get_carbon_calculator)],
) -> CarbonRecalculationService:
    """Dependency factory for CarbonRecalculationService."""
    return CarbonRecalculationService(repository=repository, calculator=calculator)


def get_fire_alert_service(
    client: Annotated[FireHotspotClient, Depends(get_firms_client)],
    cache: Annotated[ResultCache, Depends(get_result_cache)],
) -> FireAlertService:
    """Dependency factory for FireAlertService."""
    return FireAlertService(client=client, cache=cache)


# Type aliases for cleaner route signatures
AreaAnalysisServiceDep = Annotated[AreaAnalysisService, Depends(get_area_analysis_service)]
ForestServiceDep = Annotated[ForestService, Depends(get_forest_service)]
CarbonCalculatorDep = Annotated[CarbonCalculator, Depends(get_carbon_calculator)]
RecalculationServiceDep = Annotated[CarbonRecalculationService, Depends(get_recalculation_service)]
FireAlertServiceDep = Annotated[FireAlertService, Depends(get_fire_alert_service)]
ResultCacheDep = Annotated[ResultCache, Depends(get_result_cache)]
