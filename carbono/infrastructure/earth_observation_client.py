"""
Infrastructure layer: Client for the remote earth-observation analysis service.

The service runs the heavy raster computations (Hansen Global Forest Change,
Sentinel-2 NDVI, NASA biomass) and answers with JSON.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import pydantic

from carbono.config import settings
from carbono.domain.models import (
    EarthObservationAnalysis,
    ForestLossResult,
    NDVIDataPoint,
)
from carbono.infrastructure.api_constants import APIConstants, EarthObservationEndpoints
from carbono.infrastructure.external_api_client import (
    ConfigurationError,
    ExternalAPIClient,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class EarthObservationClient(ExternalAPIClient):
    """
    Client for the earth-observation service.

    Authenticates with an X-API-Key header; the key is required.
    """

    service_name = "earth-observation"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize the client.

        Raises:
            ConfigurationError: If no API key is configured
        """
        api_key = api_key if api_key is not None else settings.earth_engine_api_key
        if not api_key:
            raise ConfigurationError(
                "Earth observation API key is required. Set EARTH_ENGINE_API_KEY."
            )
        super().__init__(
            base_url=base_url or settings.earth_engine_base_url,
            headers={
                "X-API-Key": api_key,
                "accept": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=APIConstants.LONG_TIMEOUT,
        )

    def _parse(self, model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise UpstreamServiceError(
                self.service_name, f"Unexpected {model.__name__} payload: {e.error_count()} errors"
            )

    async def analyze_area(
        self,
        geometry: Dict[str, Any],
        project_id: Optional[str] = None,
    ) -> EarthObservationAnalysis:
        """
        Forest coverage, biomass and recent change for an area.

        Args:
            geometry: GeoJSON Polygon
            project_id: Optional project the analysis belongs to

        Returns:
            EarthObservationAnalysis
        """
        payload: Dict[str, Any] = {"geometry": geometry}
        if project_id:
            payload["projectId"] = project_id
        data = await self._request_json("POST", EarthObservationEndpoints.ANALYZE_AREA, json=payload)
        return self._parse(EarthObservationAnalysis, data)

    async def get_forest_fragments(
        self,
        geometry: Dict[str, Any],
        threshold: float,
        simplify_tolerance: float,
    ) -> Dict[str, Any]:
        """
        Vectorised forest pixels above a tree-cover threshold.

        Args:
            geometry: GeoJSON Polygon
            threshold: Tree-cover threshold in percent
            simplify_tolerance: Simplification tolerance in meters

        Returns:
            GeoJSON FeatureCollection of forest fragments
        """
        data = await self._request_json(
            "POST",
            EarthObservationEndpoints.FOREST_MASK,
            json={
                "geometry": geometry,
                "threshold": threshold,
                "simplifyTolerance": simplify_tolerance,
            },
        )
        if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
            raise UpstreamServiceError(self.service_name, "Forest mask is not a FeatureCollection")
        return data

    async def get_ndvi_time_series(
        self,
        geometry: Dict[str, Any],
        start_date: str,
        end_date: str,
    ) -> List[NDVIDataPoint]:
        """
        Monthly NDVI composites for an area.

        Args:
            geometry: GeoJSON Polygon
            start_date: ISO start date
            end_date: ISO end date

        Returns:
            NDVI data points sorted by date
        """
        data = await self._request_json(
            "POST",
            EarthObservationEndpoints.NDVI_TIME_SERIES,
            json={"geometry": geometry, "startDate": start_date, "endDate": end_date},
        )
        if not isinstance(data, dict):
            raise UpstreamServiceError(self.service_name, "NDVI response is not an object")
        points = [self._parse(NDVIDataPoint, item) for item in data.get("dataPoints", [])]
        return sorted(points, key=lambda p: p.date)

    async def detect_forest_loss(
        self,
        geometry: Dict[str, Any],
        start_year: int,
        end_year: int,
    ) -> ForestLossResult:
        """
        Forest loss between two years (inclusive).

        Returns:
            ForestLossResult with the last change year and loss percent
        """
        data = await self._request_json(
            "POST",
            EarthObservationEndpoints.FOREST_LOSS,
            json={"geometry": geometry, "startYear": start_year, "endYear": end_year},
        )
        return self._parse(ForestLossResult, data)


# Singleton instance
_earth_observation_client: Optional[EarthObservationClient] = None


def get_earth_observation_client() -> EarthObservationClient:
    """
    Get or create the singleton earth-observation client.

    Raises:
        ConfigurationError: If the API key is missing
    """
    global _earth_observation_client
    if _earth_observation_client is None:
        _earth_observation_client = EarthObservationClient()
    return _earth_observation_client
