"""
API request models using Pydantic.

Bodies accept camelCase (and snake_case) field names.
"""
from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from carbono.domain.models import CamelModel, ForestType, ProjectType


GEOMETRY_EXAMPLE = {
    "type": "Polygon",
    "coordinates": [
        [
            [-64.01, -16.50],
            [-64.00, -16.50],
            [-64.00, -16.51],
            [-64.01, -16.51],
            [-64.01, -16.50],
        ]
    ],
}


class AreaAnalysisRequest(CamelModel):
    """Request body for the unified area analysis."""
    geometry: Dict[str, Any] = Field(
        description="GeoJSON Polygon",
        examples=[GEOMETRY_EXAMPLE],
    )
    snap_to_forest: bool = Field(
        default=False,
        description="Restrict the area to its forested parts",
    )
    threshold: Optional[float] = Field(
        default=None,
        ge=10,
        le=100,
        description="Tree-cover threshold (%) used when snapping",
    )


class AnalyzeAreaRequest(CamelModel):
    """Request body for the earth-observation area analysis."""
    geometry: Dict[str, Any] = Field(description="GeoJSON Polygon or MultiPolygon")
    project_id: Optional[str] = None


class ForestMaskRequest(CamelModel):
    """Request body for the forest mask."""
    geometry: Dict[str, Any] = Field(description="GeoJSON Polygon")
    threshold: float = Field(default=70, ge=10, le=100, description="Tree-cover threshold (%)")
    simplify: float = Field(default=50, ge=0, description="Simplification tolerance in meters")


class HistoricalTrendsRequest(CamelModel):
    """Request body for historical NDVI / forest-cover trends."""
    geometry: Dict[str, Any] = Field(description="GeoJSON Polygon or MultiPolygon")
    start_date: str = Field(description="ISO date", examples=["2022-01-01"])
    end_date: str = Field(description="ISO date, at most two years after startDate", examples=["2023-12-31"])


class CarbonCalculationRequest(CamelModel):
    """Request body for the carbon calculator. Give an area or a geometry."""
    area_hectares: Optional[float] = Field(default=None, ge=0)
    geometry: Optional[Dict[str, Any]] = Field(default=None, description="GeoJSON Polygon")
    project_type: ProjectType
    forest_type: Optional[ForestType] = None
    department: Optional[str] = None
    biomass_per_hectare: Optional[float] = Field(default=None, ge=0, description="tC/ha override")
    duration_years: Optional[int] = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def check_area_source(self) -> "CarbonCalculationRequest":
        if self.area_hectares is None and self.geometry is None:
            raise ValueError("Either areaHectares or geometry is required")
        return self
