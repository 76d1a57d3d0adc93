"""
Unit tests for polygon helpers and national reference data.

Tests cover:
- Coordinate validation
- Equal-area measurement (holes, antimeridian)
- Territory containment
- Simplification, centroids, bounding boxes, distances
- Department lookups
"""
import math

import pytest

from carbono.domain.bolivia import (
    BOLIVIA_BBOX,
    get_department_from_coordinates,
    resolve_department,
)
from carbono.domain.errors import GeometryError
from carbono.utils.geo_projection import normalize_longitude, unwrap_longitudes
from carbono.utils.geometry import (
    calculate_distance_km,
    calculate_perimeter_km,
    calculate_polygon_area,
    explode_polygons,
    get_bounding_box,
    get_centroid,
    is_polygon_in_bolivia,
    normalize_ring_longitudes,
    simplify_polygon,
    to_shapely_polygon,
    validate_geometry,
    validate_polygon_coordinates,
    validate_polygon_geometry,
)

from helpers import square_polygon


# ============================================================
# Validation Tests
# ============================================================

class TestCoordinateValidation:
    """Tests for the precondition checks on GeoJSON coordinates."""

    def test_valid_square_passes(self, santa_cruz_polygon):
        rings = validate_polygon_coordinates(santa_cruz_polygon["coordinates"])

        assert len(rings) == 1
        assert len(rings[0]) == 5

    def test_empty_coordinates_rejected(self):
        with pytest.raises(GeometryError):
            validate_polygon_coordinates([])

    def test_not_a_list_rejected(self):
        with pytest.raises(GeometryError):
            validate_polygon_coordinates("-64,-16 -63,-16")

    def test_too_few_positions_rejected(self):
        ring = [[-64.0, -16.5], [-63.9, -16.5], [-64.0, -16.5]]

        with pytest.raises(GeometryError, match="at least 4 positions"):
            validate_polygon_coordinates([ring])

    def test_open_ring_rejected(self):
        ring = [[-64.0, -16.5], [-63.9, -16.5], [-63.9, -16.4], [-64.0, -16.4]]

        with pytest.raises(GeometryError, match="not closed"):
            validate_polygon_coordinates([ring])

    def test_mismatched_depth_rejected(self):
        """A bare ring (one level too shallow) is not a polygon."""
        ring = [[-64.0, -16.5], [-63.9, -16.5], [-63.9, -16.4], [-64.0, -16.5]]

        with pytest.raises(GeometryError):
            validate_polygon_coordinates(ring)

    def test_nan_coordinate_rejected(self):
        ring = [[-64.0, -16.5], [math.nan, -16.5], [-63.9, -16.4], [-64.0, -16.5]]

        with pytest.raises(GeometryError, match="non-finite"):
            validate_polygon_coordinates([ring])

    def test_string_coordinate_rejected(self):
        ring = [[-64.0, -16.5], ["-63.9", -16.5], [-63.9, -16.4], [-64.0, -16.5]]

        with pytest.raises(GeometryError, match="non-numeric"):
            validate_polygon_coordinates([ring])

    def test_latitude_out_of_range_rejected(self):
        ring = [[-64.0, -16.5], [-63.9, -96.5], [-63.9, -16.4], [-64.0, -16.5]]

        with pytest.raises(GeometryError, match="latitude"):
            validate_polygon_coordinates([ring])

    def test_geometry_error_is_value_error(self):
        """Validation errors are mapped to HTTP 400 as ValueErrors."""
        assert issubclass(GeometryError, ValueError)


class TestGeometryValidation:
    """Tests for whole-geometry validation."""

    def test_polygon_only_rejects_multipolygon(self, santa_cruz_polygon):
        multi = {"type": "MultiPolygon", "coordinates": [santa_cruz_polygon["coordinates"]]}

        with pytest.raises(GeometryError, match="Expected GeoJSON Polygon"):
            validate_polygon_geometry(multi)

    def test_polygon_only_rejects_missing_geometry(self):
        with pytest.raises(GeometryError):
            validate_polygon_geometry(None)

    def test_validate_geometry_accepts_multipolygon(self, santa_cruz_polygon):
        multi = {"type": "MultiPolygon", "coordinates": [santa_cruz_polygon["coordinates"]]}

        result = validate_geometry(multi)

        assert result["type"] == "MultiPolygon"
        assert len(result["coordinates"]) == 1

    def test_validate_geometry_rejects_point(self):
        with pytest.raises(GeometryError, match="Polygon or MultiPolygon"):
            validate_geometry({"type": "Point", "coordinates": [-64.0, -16.5]})


# ============================================================
# Area Tests
# ============================================================

class TestPolygonArea:
    """Tests for equal-area measurement."""

    def test_sample_square_area(self, santa_cruz_polygon):
        """0.01 x 0.01 degrees at 16.5 S is roughly 118 ha."""
        area = calculate_polygon_area(santa_cruz_polygon)

        assert 110 < area < 125

    def test_area_rounded_to_two_decimals(self, santa_cruz_polygon):
        area = calculate_polygon_area(santa_cruz_polygon)

        assert area == round(area, 2)

    def test_area_independent_of_winding(self, santa_cruz_polygon):
        ring = santa_cruz_polygon["coordinates"][0]
        reversed_polygon = {"type": "Polygon", "coordinates": [list(reversed(ring))]}

        assert calculate_polygon_area(reversed_polygon) == calculate_polygon_area(santa_cruz_polygon)

    def test_hole_is_subtracted(self):
        outer = square_polygon(-64.02, -16.52, 0.02)["coordinates"][0]
        hole = square_polygon(-64.015, -16.515, 0.01)["coordinates"][0]
        with_hole = {"type": "Polygon", "coordinates": [outer, hole]}

        full = calculate_polygon_area({"type": "Polygon", "coordinates": [outer]})
        holed = calculate_polygon_area(with_hole)

        assert holed == pytest.approx(full * 0.75, rel=0.01)

    def test_multipolygon_sums_parts(self):
        a = square_polygon(-64.02, -16.52, 0.01)["coordinates"]
        b = square_polygon(-63.90, -16.52, 0.01)["coordinates"]

        total = calculate_polygon_area({"type": "MultiPolygon", "coordinates": [a, b]})
        single = calculate_polygon_area({"type": "Polygon", "coordinates": a})

        assert total == pytest.approx(single * 2, rel=0.001)

    def test_antimeridian_square_matches_equator_square(self):
        """A ring crossing 180 degrees is measured along its short edges."""
        crossing = {
            "type": "Polygon",
            "coordinates": [[
                [179.99, 0.0], [-179.99, 0.0], [-179.99, 0.02], [179.99, 0.02], [179.99, 0.0],
            ]],
        }
        reference = square_polygon(-0.01, 0.0, 0.02)

        assert calculate_polygon_area(crossing) == pytest.approx(
            calculate_polygon_area(reference), rel=0.001
        )

    def test_malformed_geometry_raises(self):
        with pytest.raises(GeometryError):
            calculate_polygon_area({"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]})


# ============================================================
# Longitude Handling Tests
# ============================================================

class TestLongitudes:
    """Tests for longitude normalisation."""

    def test_normalize_longitude(self):
        assert normalize_longitude(190.0) == pytest.approx(-170.0)
        assert normalize_longitude(-64.0) == pytest.approx(-64.0)

    def test_unwrap_removes_jumps(self):
        assert unwrap_longitudes([179.9, -179.9]) == pytest.approx([179.9, 180.1])

    def test_normalize_ring_longitudes(self):
        ring = [[179.9, 0.0], [-179.9, 0.0], [-179.9, 1.0], [179.9, 0.0]]

        result = normalize_ring_longitudes(ring)

        assert result[1][0] == pytest.approx(180.1)
        assert result[1][1] == 0.0


# ============================================================
# Territory and Shape Tests
# ============================================================

class TestTerritory:
    """Tests for the national envelope check."""

    def test_polygon_in_bolivia(self, santa_cruz_polygon):
        assert is_polygon_in_bolivia(santa_cruz_polygon) is True

    def test_polygon_in_peru(self, peru_polygon):
        assert is_polygon_in_bolivia(peru_polygon) is False

    def test_polygon_straddling_border(self):
        """Envelope containment requires the whole bounding box inside."""
        straddling = square_polygon(BOLIVIA_BBOX.west - 0.05, -16.5, 0.1)

        assert is_polygon_in_bolivia(straddling) is False


class TestShapeHelpers:
    """Tests for bounding boxes, centroids, distances and simplification."""

    def test_bounding_box(self, santa_cruz_polygon):
        min_lon, min_lat, max_lon, max_lat = get_bounding_box(santa_cruz_polygon)

        assert min_lon == pytest.approx(-64.01)
        assert min_lat == pytest.approx(-16.51)
        assert max_lon == pytest.approx(-64.0)
        assert max_lat == pytest.approx(-16.5)

    def test_centroid(self, santa_cruz_polygon):
        lon, lat = get_centroid(santa_cruz_polygon)

        assert lon == pytest.approx(-64.005, abs=1e-6)
        assert lat == pytest.approx(-16.505, abs=1e-6)

    def test_distance_la_paz_santa_cruz(self):
        distance = calculate_distance_km((-68.15, -16.5), (-63.18, -17.78))

        assert 500 < distance < 600

    def test_perimeter(self, santa_cruz_polygon):
        perimeter = calculate_perimeter_km(santa_cruz_polygon)

        assert 4.2 < perimeter < 4.5

    def test_simplify_reduces_collinear_vertices(self):
        ring = [
            [-64.0, -16.5], [-63.995, -16.5], [-63.99, -16.5],
            [-63.99, -16.49], [-64.0, -16.49], [-64.0, -16.5],
        ]
        polygon = {"type": "Polygon", "coordinates": [ring]}

        simplified = simplify_polygon(polygon, tolerance=0.0001)

        assert simplified["type"] == "Polygon"
        assert len(simplified["coordinates"][0]) == 5

    @pytest.mark.parametrize("radius", [0.02, 0.002, 0.0006])
    def test_simplify_preserves_area(self, radius):
        # 64-vertex circle from ~1480 ha down to ~1.3 ha
        ring = [
            [-64.0 + radius * math.cos(2 * math.pi * i / 64),
             -16.5 + radius * math.sin(2 * math.pi * i / 64)]
            for i in range(64)
        ]
        ring.append(ring[0])
        polygon = {"type": "Polygon", "coordinates": [ring]}
        original = calculate_polygon_area(polygon)

        simplified = simplify_polygon(polygon, tolerance=radius / 100)

        assert original >= 1
        assert len(simplified["coordinates"][0]) < len(ring)
        assert calculate_polygon_area(simplified) == pytest.approx(original, rel=0.01)

    def test_simplify_never_returns_empty(self, tiny_polygon):
        simplified = simplify_polygon(tiny_polygon, tolerance=1.0)

        assert simplified["type"] == "Polygon"
        assert calculate_polygon_area(simplified) > 0

    def test_explode_multipolygon(self):
        a = square_polygon(-64.02, -16.52, 0.01)
        b = square_polygon(-63.90, -16.52, 0.01)
        multi = to_shapely_polygon(
            {"type": "MultiPolygon", "coordinates": [a["coordinates"], b["coordinates"]]}
        )

        assert len(explode_polygons(multi)) == 2


# ============================================================
# Department Tests
# ============================================================

class TestDepartments:
    """Tests for department lookups."""

    def test_nearest_capital(self):
        assert get_department_from_coordinates(-17.8, -63.2) == "Santa Cruz"
        assert get_department_from_coordinates(-11.1, -68.7) == "Pando"

    def test_outside_envelope(self):
        assert get_department_from_coordinates(-12.0, -77.0) is None

    @pytest.mark.parametrize("name", ["potosi", "POTOSÍ", " Potosí "])
    def test_resolve_department_accent_insensitive(self, name):
        assert resolve_department(name) == "Potosí"

    def test_resolve_unknown_department(self):
        assert resolve_department("Lima") is None
