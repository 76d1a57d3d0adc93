"""
Application service: Earth-observation analyses with caching and local post-processing.
"""
import asyncio
import datetime as dt
import logging
import math
from typing import Any, Dict, List, Optional, Union

from scipy.stats import linregress
from shapely.ops import unary_union

from carbono.config import settings
from carbono.domain.errors import ValidationError
from carbono.domain.models import (
    DeforestationEvent,
    EarthObservationAnalysis,
    ForestCoverDataPoint,
    ForestLossResult,
    ForestMaskMetadata,
    ForestMaskResult,
    HistoricalTrends,
    NDVIDataPoint,
    NDVITrend,
    Severity,
)
from carbono.infrastructure.earth_observation_client import EarthObservationClient
from carbono.infrastructure.result_cache import CacheSource, ResultCache
from carbono.utils.geometry import (
    calculate_polygon_area,
    explode_polygons,
    geometry_to_geojson,
    iter_polygons,
    to_shapely_polygon,
    validate_geometry,
    validate_polygon_geometry,
)

logger = logging.getLogger(__name__)

FOREST_MASK_SOURCE = "Hansen Global Forest Change"
MIN_FOREST_THRESHOLD = 10.0
MAX_FOREST_THRESHOLD = 100.0

# Slope (NDVI units per year) below which the trend counts as stable
NDVI_STABLE_SLOPE = 0.01
DEFORESTATION_EVENT_CONFIDENCE = 85.0


def _parse_date(value: Union[str, dt.date], field: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date format for {field}: {value!r}")


def loss_severity(loss_percent: float) -> Severity:
    if loss_percent > 10:
        return Severity.HIGH
    if loss_percent > 5:
        return Severity.MEDIUM
    return Severity.LOW


def build_forest_cover_series(
    loss: ForestLossResult,
    start_year: int,
    end_year: int,
    area_hectares: float,
) -> List[ForestCoverDataPoint]:
    """
    One mid-year coverage point per year, losing loss_percent linearly.
    """
    span = end_year - start_year
    points = []
    for year in range(start_year, end_year + 1):
        progress = (year - start_year) / span if span > 0 else 1.0
        coverage = round(max(100.0 - loss.loss_percent * progress, 0.0), 2)
        points.append(
            ForestCoverDataPoint(
                date=dt.date(year, 6, 15),
                coverage_percent=coverage,
                area_hectares=round(area_hectares * coverage / 100, 2),
            )
        )
    return points


def compute_ndvi_trend(points: List[NDVIDataPoint]) -> Optional[NDVITrend]:
    """
    Least-squares NDVI trend; None with fewer than 3 distinct dates.
    """
    if len(points) < 3:
        return None

    origin = points[0].date
    years = [(p.date - origin).days / 365.25 for p in points]
    if len(set(years)) < 2:
        return None

    fit = linregress(years, [p.ndvi for p in points])
    slope = float(fit.slope) if math.isfinite(fit.slope) else 0.0
    r_value = float(fit.rvalue) if math.isfinite(fit.rvalue) else 0.0

    if slope > NDVI_STABLE_SLOPE:
        direction = "improving"
    elif slope < -NDVI_STABLE_SLOPE:
        direction = "declining"
    else:
        direction = "stable"

    return NDVITrend(
        slope_per_year=round(slope, 4),
        r_squared=round(r_value ** 2, 4),
        direction=direction,
    )


class ForestService:
    """
    Application service for forest analyses.

    Remote calls go through the result cache; clipping, dissolving and
    measuring forest fragments happens locally.
    """

    def __init__(self, client: EarthObservationClient, cache: ResultCache):
        """
        Initialize the service with dependencies.

        Args:
            client: Earth-observation client
            cache: Result cache shared by the process
        """
        self.client = client
        self.cache = cache

    async def analyze_area(
        self,
        geometry: Dict[str, Any],
        project_id: Optional[str] = None,
    ) -> EarthObservationAnalysis:
        """
        Forest coverage and biomass for an area (cached).

        Raises:
            GeometryError: If the geometry is not a valid (Multi)Polygon
            UpstreamServiceError: If the service fails
        """
        geometry = validate_geometry(geometry)
        payload = {"geometry": geometry, "projectId": project_id}
        logger.info(f"Analyzing area (project: {project_id or 'N/A'})")
        return await self.cache.get_or_compute(
            CacheSource.GEE_ANALYZE_AREA,
            payload,
            lambda: self.client.analyze_area(geometry, project_id),
        )

    async def get_forest_mask(
        self,
        geometry: Dict[str, Any],
        threshold: Optional[float] = None,
        simplify: Optional[float] = None,
    ) -> ForestMaskResult:
        """
        Restrict a polygon to its forested parts.

        Args:
            geometry: GeoJSON Polygon
            threshold: Tree-cover threshold in percent (10-100)
            simplify: Simplification tolerance in meters

        Returns:
            ForestMaskResult whose forest area never exceeds the original

        Raises:
            ValidationError: If threshold/simplify are out of range or the
                geometry is invalid
            UpstreamServiceError: If the service fails
        """
        threshold = settings.default_forest_threshold if threshold is None else threshold
        simplify = settings.default_simplify_tolerance_meters if simplify is None else simplify

        if not MIN_FOREST_THRESHOLD <= threshold <= MAX_FOREST_THRESHOLD:
            raise ValidationError(
                f"Threshold must be between {MIN_FOREST_THRESHOLD:.0f} and "
                f"{MAX_FOREST_THRESHOLD:.0f}, got {threshold}"
            )
        if simplify < 0:
            raise ValidationError(f"Simplify tolerance must be non-negative, got {simplify}")

        polygon = validate_polygon_geometry(geometry)
        original_area = calculate_polygon_area(polygon)

        collection = await self.cache.get_or_compute(
            CacheSource.GEE_FOREST_MASK,
            {"geometry": polygon, "threshold": threshold, "simplify": simplify},
            lambda: self.client.get_forest_fragments(polygon, threshold, simplify),
        )

        fragments = self._clip_fragments(collection, polygon)
        forest_polygons = [geometry_to_geojson(fragment) for fragment in fragments]

        forest_area = sum(calculate_polygon_area(p) for p in forest_polygons)
        forest_area = round(min(forest_area, original_area), 2)
        excluded_area = round(original_area - forest_area, 2)
        reduction = round(excluded_area / original_area * 100, 2) if original_area > 0 else 0.0

        logger.info(
            f"Forest mask: {forest_area} of {original_area} ha forested "
            f"in {len(forest_polygons)} fragments (threshold {threshold}%)"
        )

        return ForestMaskResult(
            original_area_hectares=original_area,
            forest_area_hectares=forest_area,
            excluded_area_hectares=excluded_area,
            reduction_percent=reduction,
            fragment_count=len(forest_polygons),
            forest_polygons=forest_polygons,
            metadata=ForestMaskMetadata(
                threshold=threshold,
                simplify_tolerance=simplify,
                processed_at=dt.datetime.now(dt.timezone.utc),
                source=FOREST_MASK_SOURCE,
            ),
        )

    @staticmethod
    def _clip_fragments(collection: Dict[str, Any], polygon: Dict[str, Any]) -> list:
        """Clip fragments to the polygon, dissolve overlaps, split into disjoint parts."""
        boundary = to_shapely_polygon(polygon)
        if not boundary.is_valid:
            boundary = boundary.buffer(0)

        geometries = [
            feature["geometry"]
            for feature in collection.get("features", [])
            if feature.get("geometry")
            and feature["geometry"].get("type") in ("Polygon", "MultiPolygon")
        ]
        clipped = [fragment.intersection(boundary) for fragment in iter_polygons(geometries)]
        if not clipped:
            return []
        return explode_polygons(unary_union(clipped))

    async def get_historical_trends(
        self,
        geometry: Dict[str, Any],
        start_date: Union[str, dt.date],
        end_date: Union[str, dt.date],
    ) -> HistoricalTrends:
        """
        NDVI series, yearly forest cover and deforestation events (cached).

        Args:
            geometry: GeoJSON Polygon or MultiPolygon
            start_date: ISO start date
            end_date: ISO end date (at most two years after start)

        Raises:
            ValidationError: For unparsable, inverted or too long ranges
            UpstreamServiceError: If the service fails
        """
        start = _parse_date(start_date, "startDate")
        end = _parse_date(end_date, "endDate")
        if start >= end:
            raise ValidationError("startDate must be before endDate")
        if (end - start).days > settings.max_trend_range_days:
            raise ValidationError(
                f"Date range too large. Maximum {settings.max_trend_range_days} days allowed"
            )

        geometry = validate_geometry(geometry)
        payload = {
            "geometry": geometry,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
        }
        logger.info(f"Fetching historical trends from {start} to {end}")

        return await self.cache.get_or_compute(
            CacheSource.GEE_HISTORICAL_TRENDS,
            payload,
            lambda: self._compute_trends(geometry, start, end),
        )

    async def _compute_trends(
        self,
        geometry: Dict[str, Any],
        start: dt.date,
        end: dt.date,
    ) -> HistoricalTrends:
        ndvi_series, loss = await asyncio.gather(
            self.client.get_ndvi_time_series(geometry, start.isoformat(), end.isoformat()),
            self.client.detect_forest_loss(geometry, start.year, end.year),
        )

        area = calculate_polygon_area(geometry)

        events = []
        if loss.has_loss and loss.last_change_year:
            events.append(
                DeforestationEvent(
                    date=dt.date(loss.last_change_year, 12, 31),
                    area_lost_hectares=round(area * loss.loss_percent / 100, 2),
                    severity=loss_severity(loss.loss_percent),
                    confidence=DEFORESTATION_EVENT_CONFIDENCE,
                )
            )

        trends = HistoricalTrends(
            ndvi_time_series=ndvi_series,
            forest_cover_time_series=build_forest_cover_series(loss, start.year, end.year, area),
            deforestation_events=events,
            ndvi_trend=compute_ndvi_trend(ndvi_series),
        )
        logger.info(f"Retrieved {len(ndvi_series)} NDVI data points")
        return trends
