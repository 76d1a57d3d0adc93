"""
Polygon helper functions.

Provides utilities for:
- GeoJSON polygon validation (precondition checks before any arithmetic)
- Equal-area polygon measurement in hectares
- National territory containment
- Simplification, centroids, bounding boxes, perimeters
"""
import logging
import math
from collections.abc import Mapping
from typing import Any, Iterable, List, Sequence, Tuple

import numpy as np
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon, mapping, shape
from shapely.geometry.base import BaseGeometry

from carbono.domain.bolivia import BOLIVIA_BBOX, BoundingBox
from carbono.domain.errors import GeometryError
from carbono.utils.geo_projection import (
    geodesic_distance_km,
    geodesic_line_length_km,
    get_equal_area_transformer,
    normalize_longitude,
    project_ring_to_meters,
    unwrap_longitudes,
)

logger = logging.getLogger(__name__)

SQUARE_METERS_PER_HECTARE = 10_000.0

Ring = List[List[float]]


# ============================================================
# Validation
# ============================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_ring(ring: Any, index: int) -> Ring:
    if not isinstance(ring, (list, tuple)):
        raise GeometryError(f"Ring {index} must be an array of positions")
    if len(ring) < 4:
        raise GeometryError(
            f"Ring {index} must have at least 4 positions "
            f"(3 vertices + closing point), got {len(ring)}"
        )

    positions = []
    for position in ring:
        if not isinstance(position, (list, tuple)) or len(position) not in (2, 3):
            raise GeometryError(
                f"Ring {index} contains an element that is not a [longitude, latitude] position"
            )
        if not all(_is_number(value) for value in position):
            raise GeometryError(f"Ring {index} contains a non-numeric coordinate")

        lon, lat = float(position[0]), float(position[1])
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise GeometryError(f"Ring {index} contains a non-finite coordinate")
        if not -90.0 <= lat <= 90.0:
            raise GeometryError(f"Ring {index} has latitude {lat} outside [-90, 90]")
        positions.append([lon, lat])

    if positions[0] != positions[-1]:
        raise GeometryError(
            f"Ring {index} is not closed (first and last positions must be identical)"
        )
    return positions


def validate_polygon_coordinates(coordinates: Any) -> List[Ring]:
    """
    Validate GeoJSON Polygon coordinates.

    Args:
        coordinates: Array of linear rings, exterior first

    Returns:
        Rings as lists of [longitude, latitude] float pairs

    Raises:
        GeometryError: If the input is not an array of closed rings of at
            least 4 finite [lon, lat] positions
    """
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) == 0:
        raise GeometryError("Polygon coordinates must be a non-empty array of rings")
    return [_validate_ring(ring, index) for index, ring in enumerate(coordinates)]


def geometry_type(geometry: Any) -> Any:
    """GeoJSON type of a dict or shapely geometry (None if unknown)."""
    if isinstance(geometry, BaseGeometry):
        return geometry.geom_type
    if isinstance(geometry, Mapping):
        return geometry.get("type")
    return None


def _polygon_coordinate_sets(geometry: Any) -> List[List[Ring]]:
    """Validated rings of every polygon in a Polygon/MultiPolygon geometry."""
    if isinstance(geometry, BaseGeometry):
        geometry = mapping(geometry)

    if not isinstance(geometry, Mapping):
        raise GeometryError("Geometry must be a GeoJSON object")

    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if geometry_type == "Polygon":
        return [validate_polygon_coordinates(coordinates)]
    if geometry_type == "MultiPolygon":
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) == 0:
            raise GeometryError("MultiPolygon coordinates must be a non-empty array of polygons")
        return [validate_polygon_coordinates(polygon) for polygon in coordinates]

    raise GeometryError(
        f"Geometry type must be Polygon or MultiPolygon, got {geometry_type!r}"
    )


def validate_geometry(geometry: Any) -> dict:
    """
    Validate a GeoJSON Polygon or MultiPolygon object.

    Returns:
        Normalised GeoJSON dict of the same type

    Raises:
        GeometryError: If the geometry is of another type or malformed
    """
    polygons = _polygon_coordinate_sets(geometry)
    if len(polygons) == 1 and geometry_type(geometry) == "Polygon":
        return {"type": "Polygon", "coordinates": polygons[0]}
    return {"type": "MultiPolygon", "coordinates": polygons}


def validate_polygon_geometry(geometry: Any) -> dict:
    """
    Validate a GeoJSON Polygon object.

    Returns:
        Normalised GeoJSON Polygon dict

    Raises:
        GeometryError: If the geometry is missing, not a Polygon, or malformed
    """
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Polygon":
        raise GeometryError("Invalid geometry. Expected GeoJSON Polygon.")
    rings = validate_polygon_coordinates(geometry.get("coordinates"))
    return {"type": "Polygon", "coordinates": rings}


# ============================================================
# Conversion
# ============================================================

def normalize_ring_longitudes(ring: Sequence[Sequence[float]]) -> Ring:
    """
    Unwrap a ring so consecutive vertices never jump by more than 180 degrees.

    Args:
        ring: Positions as [longitude, latitude]

    Returns:
        New ring with continuous longitudes
    """
    lons = unwrap_longitudes([p[0] for p in ring])
    return [[lon, float(p[1])] for lon, p in zip(lons, ring)]


def _unwrap_rings(rings: List[Ring]) -> List[Ring]:
    """Make every ring longitude-continuous and keep holes next to the shell."""
    unwrapped = []
    reference = None
    for ring in rings:
        ring = normalize_ring_longitudes(ring)
        if reference is None:
            reference = ring[0][0]
        else:
            shift = round((reference - ring[0][0]) / 360.0) * 360.0
            ring = [[lon + shift, lat] for lon, lat in ring]
        unwrapped.append(ring)
    return unwrapped


def to_shapely_polygon(geometry: Any) -> BaseGeometry:
    """
    Build a shapely Polygon or MultiPolygon from a GeoJSON geometry.

    Raises:
        GeometryError: If the geometry is malformed
    """
    polygons = _polygon_coordinate_sets(geometry)
    if len(polygons) == 1:
        rings = polygons[0]
        return Polygon(rings[0], rings[1:])
    return MultiPolygon([Polygon(rings[0], rings[1:]) for rings in polygons])


def _to_lists(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_to_lists(v) for v in value]
    return value


def geometry_to_geojson(geometry: BaseGeometry) -> dict:
    """GeoJSON dict (with JSON-friendly lists) for a shapely geometry."""
    geojson = mapping(geometry)
    return {"type": geojson["type"], "coordinates": _to_lists(geojson["coordinates"])}


def explode_polygons(geometry: BaseGeometry) -> List[Polygon]:
    """
    Split a geometry into its non-empty polygon parts.

    Lines and points (e.g. from touching intersections) are dropped.
    """
    if geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts = []
        for part in geometry.geoms:
            parts.extend(explode_polygons(part))
        return parts
    return []


# ============================================================
# Measurement
# ============================================================

def _ring_center(ring: Ring) -> Tuple[float, float]:
    vertices = ring[:-1]
    lon = sum(p[0] for p in vertices) / len(vertices)
    lat = sum(p[1] for p in vertices) / len(vertices)
    return lon, lat


def _planar_ring_area(ring: Ring, transformer) -> float:
    """Shoelace area of a closed ring after equal-area projection, in m²."""
    xy = np.asarray(project_ring_to_meters(ring, transformer), dtype=float)
    x, y = xy[:, 0], xy[:, 1]
    return 0.5 * abs(float(np.dot(x[:-1], y[1:]) - np.dot(x[1:], y[:-1])))


def calculate_polygon_area(geometry: Any) -> float:
    """
    Calculate the area of a polygon or multipolygon in hectares.

    Each polygon is projected to a Lambert azimuthal equal-area plane centred
    on its exterior ring, and ring areas are integrated with the shoelace
    formula (exterior minus holes). Longitudes are unwrapped first so rings
    crossing the antimeridian are measured along their short edges.

    Args:
        geometry: GeoJSON Polygon/MultiPolygon dict or shapely geometry

    Returns:
        Non-negative area in hectares, rounded to 2 decimals

    Raises:
        GeometryError: If the geometry is malformed
    """
    total_m2 = 0.0
    for rings in _polygon_coordinate_sets(geometry):
        rings = _unwrap_rings(rings)
        center_lon, center_lat = _ring_center(rings[0])
        transformer = get_equal_area_transformer(center_lon, center_lat)

        exterior = _planar_ring_area(rings[0], transformer)
        holes = sum(_planar_ring_area(ring, transformer) for ring in rings[1:])
        total_m2 += max(exterior - holes, 0.0)

    return round(total_m2 / SQUARE_METERS_PER_HECTARE, 2)


def get_bounding_box(geometry: Any) -> Tuple[float, float, float, float]:
    """
    Bounding box of the exterior rings.

    Returns:
        (min_lon, min_lat, max_lon, max_lat) with longitudes in [-180, 180)
    """
    lons, lats = [], []
    for rings in _polygon_coordinate_sets(geometry):
        for lon, lat in rings[0]:
            lons.append(normalize_longitude(lon))
            lats.append(lat)
    return (min(lons), min(lats), max(lons), max(lats))


def get_centroid(geometry: Any) -> Tuple[float, float]:
    """
    Area-weighted centroid as (longitude, latitude), rounded to 6 decimals.
    """
    centroid = to_shapely_polygon(geometry).centroid
    return (round(centroid.x, 6), round(centroid.y, 6))


def calculate_distance_km(
    point1: Tuple[float, float],
    point2: Tuple[float, float],
) -> float:
    """Geodesic distance between two [lon, lat] points, rounded to 2 decimals."""
    return round(geodesic_distance_km(tuple(point1), tuple(point2)), 2)


def calculate_perimeter_km(geometry: Any) -> float:
    """Geodesic length of the exterior ring(s) in kilometers."""
    total = 0.0
    for rings in _polygon_coordinate_sets(geometry):
        total += geodesic_line_length_km([(p[0], p[1]) for p in rings[0]])
    return round(total, 2)


# ============================================================
# Territory and simplification
# ============================================================

def is_polygon_in_bolivia(geometry: Any, envelope: BoundingBox = BOLIVIA_BBOX) -> bool:
    """
    Check whether a polygon lies within the national envelope.

    Args:
        geometry: GeoJSON Polygon/MultiPolygon
        envelope: National bounding envelope

    Returns:
        True if the polygon's bounding box is inside the envelope

    Raises:
        GeometryError: If the geometry is malformed
    """
    min_lon, min_lat, max_lon, max_lat = get_bounding_box(geometry)
    return envelope.contains_box(
        BoundingBox(west=min_lon, south=min_lat, east=max_lon, north=max_lat)
    )


def simplify_polygon(geometry: Any, tolerance: float = 0.001) -> dict:
    """
    Reduce the number of vertices while keeping the shape.

    Args:
        geometry: GeoJSON Polygon/MultiPolygon
        tolerance: Douglas-Peucker tolerance in degrees (0.001 is ~110 m);
            the forest-mask ``simplify`` parameter is in meters instead and is
            applied by the earth-observation service

    Returns:
        Simplified GeoJSON geometry; the original geometry when
        simplification would collapse it
    """
    original = to_shapely_polygon(geometry)
    simplified = original.simplify(tolerance, preserve_topology=True)

    if simplified.is_empty or not simplified.is_valid:
        logger.warning(f"Simplification with tolerance {tolerance} collapsed geometry; keeping original")
        return geometry_to_geojson(original)

    return geometry_to_geojson(simplified)


def exterior_ring(geometry: Any) -> Ring:
    """Validated exterior ring of a GeoJSON Polygon."""
    return _polygon_coordinate_sets(geometry)[0][0]


def iter_polygons(geometries: Iterable[Any]) -> Iterable[Polygon]:
    """Yield polygon parts of every GeoJSON geometry; invalid ones are repaired."""
    for geometry in geometries:
        shapely_geometry = shape(geometry)
        if not shapely_geometry.is_valid:
            shapely_geometry = shapely_geometry.buffer(0)
        yield from explode_polygons(shapely_geometry)
