"""
Application service: Unified analysis of a user-drawn polygon.

Validates the polygon eagerly, then fans out to the independent data
sources concurrently. A failing source only degrades its own section of
the result.
"""
import asyncio
import datetime as dt
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Generic, List, Optional, TypeVar

import numpy as np

from carbono.config import settings
from carbono.domain.errors import (
    AnalysisTimeoutError,
    AreaOutOfRangeError,
    DegradedSourceError,
    GeometryError,
    OutOfTerritoryError,
    ValidationError,
)
from carbono.domain.models import (
    AnalysisMetadata,
    AnalysisSummary,
    AreaAnalysisResult,
    AreaSection,
    BuildingsSection,
    CommunitiesSection,
    CoverageSource,
    ForestMaskResult,
    SnappedSummary,
    WaterwaysSection,
)
from carbono.infrastructure.overpass_client import OverpassClient
from carbono.services.application.forest_service import (
    MAX_FOREST_THRESHOLD,
    MIN_FOREST_THRESHOLD,
    ForestService,
)
from carbono.services.domain.tree_estimator import estimate_trees, estimate_trees_simple
from carbono.utils.geometry import (
    calculate_distance_km,
    calculate_perimeter_km,
    calculate_polygon_area,
    get_centroid,
    is_polygon_in_bolivia,
    validate_polygon_coordinates,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Buildings above this count mark an area as populated
POPULATED_BUILDING_COUNT = 10

DATA_SOURCES = {
    "communities": "OpenStreetMap",
    "waterways": "OpenStreetMap",
    "buildings": "OpenStreetMap",
    "forest": "Google Earth Engine (Hansen Global Forest Change)",
}


@dataclass
class BranchOutcome(Generic[T]):
    """Result of one fan-out branch: a value or the captured failure."""
    name: str
    value: Optional[T] = None
    error: Optional[DegradedSourceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_branch(name: str, operation: Awaitable[T]) -> BranchOutcome[T]:
    """Await one branch and capture its failure instead of raising it."""
    try:
        return BranchOutcome(name=name, value=await operation)
    except Exception as e:
        logger.warning(f"Data source '{name}' degraded: {type(e).__name__}: {e}")
        return BranchOutcome(name=name, error=DegradedSourceError(name, e))


def _snapped_geometry(mask: ForestMaskResult) -> Optional[Dict[str, Any]]:
    if not mask.forest_polygons:
        return None
    if len(mask.forest_polygons) == 1:
        return mask.forest_polygons[0]
    return {
        "type": "MultiPolygon",
        "coordinates": [polygon["coordinates"] for polygon in mask.forest_polygons],
    }


class AreaAnalysisService:
    """
    Application service orchestrating the area analysis.

    No estimation logic lives here, only validation, coordination of the
    independent branches and assembly of the result.
    """

    def __init__(
        self,
        overpass_client: OverpassClient,
        forest_service: Optional[ForestService] = None,
        rng: Optional[np.random.Generator] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            overpass_client: OpenStreetMap feature client
            forest_service: Forest mask provider for snapping
            rng: Random source for simulated coverage (seed for tests)
            timeout_seconds: Wall-clock budget of one analysis
        """
        self.overpass_client = overpass_client
        self.forest_service = forest_service
        self.rng = rng
        self.timeout_seconds = timeout_seconds or settings.analysis_timeout_seconds

    def validate_request(self, geometry: Any, threshold: float) -> tuple[Dict[str, Any], float]:
        """
        Reject invalid input before any remote work starts.

        Returns:
            (normalised polygon, area in hectares)

        Raises:
            GeometryError: Not a Polygon, or malformed coordinates
            OutOfTerritoryError: Polygon outside Bolivia
            AreaOutOfRangeError: Area below minimum or above maximum
            ValidationError: Threshold out of range
        """
        if not isinstance(geometry, Mapping) or geometry.get("type") != "Polygon":
            raise GeometryError("Invalid geometry. Expected GeoJSON Polygon.")

        polygon = {
            "type": "Polygon",
            "coordinates": validate_polygon_coordinates(geometry.get("coordinates")),
        }

        if not is_polygon_in_bolivia(polygon):
            raise OutOfTerritoryError("Polygon must be within Bolivia")

        area = calculate_polygon_area(polygon)
        if area < settings.min_analysis_area_hectares:
            raise AreaOutOfRangeError(
                f"Area too small ({area} ha). Minimum {settings.min_analysis_area_hectares} hectare"
            )
        if area > settings.max_analysis_area_hectares:
            raise AreaOutOfRangeError(
                f"Area too large ({area} ha). Maximum {settings.max_analysis_area_hectares} hectares"
            )

        if not MIN_FOREST_THRESHOLD <= threshold <= MAX_FOREST_THRESHOLD:
            raise ValidationError(
                f"Threshold must be between {MIN_FOREST_THRESHOLD:.0f} and {MAX_FOREST_THRESHOLD:.0f}"
            )

        return polygon, area

    async def analyze_area(
        self,
        geometry: Any,
        snap_to_forest: bool = False,
        threshold: Optional[float] = None,
    ) -> AreaAnalysisResult:
        """
        Analyze a polygon.

        This method orchestrates:
        1. Eager validation (type, coordinates, territory, area, threshold)
        2. Concurrent fan-out: communities, waterways, buildings and
           optionally the forest snap
        3. Assembly of one result naming the data source per category

        Args:
            geometry: GeoJSON Polygon
            snap_to_forest: Restrict the area to its forested parts
            threshold: Tree-cover threshold for the snap (10-100)

        Returns:
            AreaAnalysisResult

        Raises:
            ValidationError: For invalid input (see validate_request)
            AnalysisTimeoutError: If the fan-out exceeds its budget
        """
        started = time.perf_counter()
        threshold = settings.default_forest_threshold if threshold is None else threshold
        polygon, area = self.validate_request(geometry, threshold)

        logger.info(f"Analyzing area: {area:.2f} ha (snap to forest: {snap_to_forest})")

        snap_requested = snap_to_forest and self.forest_service is not None
        if snap_to_forest and self.forest_service is None:
            logger.warning("Forest snap requested but no forest service is configured")

        try:
            async with asyncio.timeout(self.timeout_seconds):
                async with asyncio.TaskGroup() as group:
                    communities_task = group.create_task(
                        run_branch("communities", self.overpass_client.query_communities(polygon))
                    )
                    waterways_task = group.create_task(
                        run_branch("waterways", self.overpass_client.query_waterways(polygon))
                    )
                    buildings_task = group.create_task(
                        run_branch("buildings", self.overpass_client.query_buildings(polygon))
                    )
                    forest_task = None
                    if snap_requested:
                        forest_task = group.create_task(
                            run_branch(
                                "forest",
                                self.forest_service.get_forest_mask(polygon, threshold),
                            )
                        )
        except TimeoutError:
            logger.error(f"Area analysis exceeded {self.timeout_seconds}s")
            raise AnalysisTimeoutError(self.timeout_seconds)

        communities = communities_task.result()
        waterways = waterways_task.result()
        buildings = buildings_task.result()
        forest = forest_task.result() if forest_task else None

        outcomes: List[BranchOutcome] = [communities, waterways, buildings]
        if forest is not None:
            outcomes.append(forest)
        if snap_to_forest and forest is None:
            outcomes.append(BranchOutcome(name="forest", error=DegradedSourceError("forest")))
        degraded = [outcome.name for outcome in outcomes if not outcome.ok]

        snapped = None
        adjusted_area = area
        trees = estimate_trees_simple(area, self.rng)
        if forest is not None and forest.ok:
            mask: ForestMaskResult = forest.value
            adjusted_area = mask.forest_area_hectares
            coverage = min(max(mask.forest_area_hectares / area * 100, 0.0), 100.0)
            trees = estimate_trees(area, coverage, CoverageSource.OBSERVED)
            snapped = SnappedSummary(
                geometry=_snapped_geometry(mask),
                forest_area_hectares=mask.forest_area_hectares,
                forest_coverage_percent=round(coverage, 2),
                fragment_count=mask.fragment_count,
                reduction_percent=mask.reduction_percent,
                adjustment_made=mask.reduction_percent > 0,
            )

        centroid = get_centroid(polygon)
        community_items = [
            community.model_copy(update={
                "distance_km": calculate_distance_km(
                    centroid, (community.longitude, community.latitude)
                )
            })
            for community in (communities.value if communities.ok else [])
        ]
        waterway_items = waterways.value if waterways.ok else []
        building_items = buildings.value if buildings.ok else []

        data_source = {
            "trees": (
                "Estimated from forest density (observed forest coverage)"
                if trees.coverage_source == CoverageSource.OBSERVED
                else "Estimated from forest density (simulated coverage)"
            ),
            "communities": DATA_SOURCES["communities"],
            "waterways": DATA_SOURCES["waterways"],
            "buildings": DATA_SOURCES["buildings"],
        }
        if snap_to_forest:
            data_source["forest"] = DATA_SOURCES["forest"]

        processing_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"Analysis completed in {processing_ms}ms: trees {trees.min_trees}-{trees.max_trees}, "
            f"communities {len(community_items)}, waterways {len(waterway_items)}, "
            f"buildings {len(building_items)}, degraded {degraded or 'none'}"
        )

        return AreaAnalysisResult(
            area=AreaSection(
                original=area,
                adjusted=adjusted_area,
                centroid=list(centroid),
                perimeter_km=calculate_perimeter_km(polygon),
            ),
            trees=trees,
            communities=CommunitiesSection(total=len(community_items), items=community_items),
            waterways=WaterwaysSection(total=len(waterway_items), items=waterway_items),
            buildings=BuildingsSection(total=len(building_items)),
            snapped=snapped,
            summary=AnalysisSummary(
                is_populated=(
                    len(community_items) > 0 or len(building_items) > POPULATED_BUILDING_COUNT
                ),
                has_water_access=len(waterway_items) > 0,
            ),
            metadata=AnalysisMetadata(
                analyzed_at=dt.datetime.now(dt.timezone.utc),
                processing_time_ms=processing_ms,
                data_source=data_source,
                degraded_sources=degraded,
            ),
        )
