"""
Domain models for carbon, land-cover and geodata entities.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.). Python
attributes are snake_case; JSON payloads use camelCase aliases.
"""
import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================================
# Enumerations
# ============================================================

class ProjectType(str, Enum):
    REDD_PLUS = "REDD_PLUS"
    REFORESTATION = "REFORESTATION"
    RENEWABLE_ENERGY = "RENEWABLE_ENERGY"
    REGENERATIVE_AGRICULTURE = "REGENERATIVE_AGRICULTURE"
    COMMUNITY_CONSERVATION = "COMMUNITY_CONSERVATION"


class ForestType(str, Enum):
    AMAZONIA = "AMAZONIA"
    CHIQUITANIA = "CHIQUITANIA"
    YUNGAS = "YUNGAS"
    ALTIPLANO = "ALTIPLANO"
    MIXED = "MIXED"
    UNKNOWN = "UNKNOWN"


class DensityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class CoverageSource(str, Enum):
    """Whether a forest-coverage figure was measured or sampled."""
    OBSERVED = "observed"
    SIMULATED = "simulated"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# ============================================================
# Estimators
# ============================================================

class TreeEstimation(CamelModel):
    """Tree-count estimate for an area. An estimate, never a measurement."""
    min_trees: int
    max_trees: int
    average_trees: int
    confidence: int = Field(ge=0, le=100)
    density_level: DensityLevel
    density_description: str
    trees_per_hectare: int
    coverage_percent: float = Field(description="Forest coverage used for the estimate")
    coverage_source: CoverageSource


class RevenueEstimate(CamelModel):
    """Carbon-credit revenue under three market-price scenarios."""
    conservative: float
    realistic: float
    optimistic: float
    currency: str = "USD"
    per_year: bool = Field(description="True for annual figures, False for project totals")


class CarbonCalculationResult(CamelModel):
    estimated_co2_tons_year: float = Field(ge=0)
    total_co2_tons: Optional[float] = None
    carbon_stock_tons: float
    biomass_used: float = Field(description="Biomass density used, tC/ha")
    biomass_source: str
    fallback_applied: bool = False
    conversion_factor: float = Field(description="CO2/C conversion factor")
    sequestration_rate: float
    area_hectares: float
    project_type: ProjectType
    forest_type: ForestType
    duration_years: Optional[int] = None
    methodology: str
    revenue_estimate: RevenueEstimate
    total_revenue_estimate: Optional[RevenueEstimate] = None


class CarbonProjectionYear(CamelModel):
    year: int
    sequestration_rate: float
    co2_tons_year: float
    cumulative_co2_tons: float
    revenue_estimate: RevenueEstimate


class CarbonCredits(CamelModel):
    annual_credits: float
    total_credits: float
    verification_rate: float


# ============================================================
# Earth observation
# ============================================================

class EarthObservationAnalysis(CamelModel):
    """Forest metrics for an area from the earth-observation service."""
    forest_coverage_percent: float = Field(ge=0, le=100)
    biomass_per_hectare: float = Field(ge=0, description="tC/ha")
    forest_type: ForestType = ForestType.UNKNOWN
    confidence: float = Field(default=0, ge=0, le=100)
    last_change_detected: Optional[dt.date] = None
    change_percent: float = 0.0
    verified: bool = False
    analysis_date: Optional[dt.datetime] = None
    data_source: str = "Google Earth Engine"


class NDVIDataPoint(CamelModel):
    date: dt.date
    ndvi: float
    quality: float = 100.0


class ForestLossResult(CamelModel):
    has_loss: bool
    last_change_year: Optional[int] = None
    loss_percent: float = 0.0


class ForestCoverDataPoint(CamelModel):
    date: dt.date
    coverage_percent: float
    area_hectares: float


class DeforestationEvent(CamelModel):
    date: dt.date
    area_lost_hectares: float
    severity: Severity
    confidence: float


class NDVITrend(CamelModel):
    slope_per_year: float
    r_squared: float
    direction: str


class HistoricalTrends(CamelModel):
    ndvi_time_series: List[NDVIDataPoint]
    forest_cover_time_series: List[ForestCoverDataPoint]
    deforestation_events: List[DeforestationEvent]
    ndvi_trend: Optional[NDVITrend] = None


class ForestMaskMetadata(CamelModel):
    threshold: float
    simplify_tolerance: float
    processed_at: dt.datetime
    source: str


class ForestMaskResult(CamelModel):
    original_area_hectares: float
    forest_area_hectares: float
    excluded_area_hectares: float
    reduction_percent: float
    fragment_count: int
    forest_polygons: List[Dict[str, Any]] = Field(description="GeoJSON Polygons")
    metadata: ForestMaskMetadata


# ============================================================
# OpenStreetMap features
# ============================================================

class CommunityRecord(CamelModel):
    id: str
    name: Optional[str] = None
    type: str
    population: Optional[int] = None
    estimated_population: int
    latitude: float
    longitude: float
    distance_km: Optional[float] = Field(default=None, description="Distance from the analysed area centroid")


class WaterwayRecord(CamelModel):
    id: str
    name: Optional[str] = None
    type: str
    length_km: Optional[float] = None


class BuildingRecord(CamelModel):
    id: str
    building_type: Optional[str] = None
    category: str
    latitude: float
    longitude: float


# ============================================================
# Fire hotspots
# ============================================================

class HotspotAlert(CamelModel):
    latitude: float
    longitude: float
    brightness: float
    confidence: float = Field(description="Normalised to 0-100")
    acquisition_date: dt.datetime
    satellite: str
    instrument: str
    frp: float = Field(description="Fire radiative power, MW")
    day_night: str
    department: Optional[str] = None
    severity: Severity


class AlertStats(CamelModel):
    total: int
    by_department: Dict[str, int]
    by_severity: Dict[str, int]
    avg_confidence: float
    avg_frp: float


# ============================================================
# Area analysis
# ============================================================

class AreaSection(CamelModel):
    original: float
    adjusted: float
    unit: str = "hectares"
    centroid: List[float] = Field(description="[longitude, latitude]")
    perimeter_km: float


class CommunitiesSection(CamelModel):
    total: int
    items: List[CommunityRecord]


class WaterwaysSection(CamelModel):
    total: int
    items: List[WaterwayRecord]


class BuildingsSection(CamelModel):
    total: int


class SnappedSummary(CamelModel):
    geometry: Optional[Dict[str, Any]] = Field(description="Forest geometry; null when no forest was found")
    forest_area_hectares: float
    forest_coverage_percent: float
    fragment_count: int
    reduction_percent: float
    adjustment_made: bool


class AnalysisSummary(CamelModel):
    is_populated: bool
    has_water_access: bool


class AnalysisMetadata(CamelModel):
    analyzed_at: dt.datetime
    processing_time_ms: int
    data_source: Dict[str, str]
    degraded_sources: List[str]


class AreaAnalysisResult(CamelModel):
    area: AreaSection
    trees: TreeEstimation
    communities: CommunitiesSection
    waterways: WaterwaysSection
    buildings: BuildingsSection
    snapped: Optional[SnappedSummary] = None
    summary: AnalysisSummary
    metadata: AnalysisMetadata


# ============================================================
# Projects (persistence collaborator shapes)
# ============================================================

class ProjectRecord(CamelModel):
    id: str
    name: str
    project_type: ProjectType
    department: str
    area_hectares: float
    estimated_co2_tons_year: float
    duration_years: Optional[int] = None
    active: bool = True


class RecalculationEntry(CamelModel):
    project_id: str
    name: str
    department: str
    area_hectares: float
    old_co2_tons_year: float
    new_co2_tons_year: float
    change_percent: Optional[float]


class RecalculationFailure(CamelModel):
    project_id: str
    name: str
    error: str


class RecalculationSummary(CamelModel):
    total_projects: int
    successful_updates: int
    failed_updates: int
    updates: List[RecalculationEntry]
    errors: List[RecalculationFailure]


class FireHotspotReport(CamelModel):
    source: str
    day_range: int
    bbox: List[float] = Field(description="[west, south, east, north]")
    alerts: List[HotspotAlert]
    stats: AlertStats
