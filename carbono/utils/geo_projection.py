"""
Geospatial projection utilities for coordinate transformations.
"""
from functools import lru_cache
from typing import List, Sequence, Tuple

from pyproj import CRS, Geod, Transformer


WGS84 = "EPSG:4326"

# Geodesic calculations on the WGS84 ellipsoid
GEOD = Geod(ellps="WGS84")


def normalize_longitude(longitude: float) -> float:
    """
    Wrap a longitude into [-180, 180).

    Args:
        longitude: Longitude in degrees (any range)

    Returns:
        Equivalent longitude in [-180, 180)
    """
    return ((longitude + 180.0) % 360.0) - 180.0


def unwrap_longitudes(longitudes: Sequence[float]) -> List[float]:
    """
    Remove 360-degree jumps between consecutive longitudes.

    A ring crossing the antimeridian (e.g. 179.9 -> -179.9) becomes
    continuous (179.9 -> 180.1) so planar formulas see the short edge.

    Args:
        longitudes: Longitudes in degrees, in ring order

    Returns:
        Continuous longitudes starting from the normalised first value
    """
    if not longitudes:
        return []

    unwrapped = [normalize_longitude(longitudes[0])]
    for lon in longitudes[1:]:
        previous = unwrapped[-1]
        delta = normalize_longitude(lon - previous)
        unwrapped.append(previous + delta)
    return unwrapped


@lru_cache(maxsize=256)
def get_equal_area_crs(longitude: float, latitude: float) -> CRS:
    """
    Lambert azimuthal equal-area CRS centred on a location.

    Centring on the geometry keeps distortion of shape low while area is
    preserved exactly, whatever latitude band the geometry sits in.

    Args:
        longitude: Central longitude in degrees
        latitude: Central latitude in degrees

    Returns:
        pyproj CRS instance
    """
    return CRS.from_proj4(
        f"+proj=laea +lat_0={latitude:.6f} +lon_0={longitude:.6f} "
        f"+x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    )


def get_equal_area_transformer(longitude: float, latitude: float) -> Transformer:
    """
    Transformer from WGS84 (lon, lat) to an equal-area plane in meters.

    The centre is rounded to 0.01 degrees so nearby requests share cached CRS
    objects; the projection remains exactly equal-area.
    """
    crs = get_equal_area_crs(round(longitude, 2), round(latitude, 2))
    return Transformer.from_crs(WGS84, crs, always_xy=True)


def project_ring_to_meters(
    ring: Sequence[Sequence[float]],
    transformer: Transformer,
) -> List[Tuple[float, float]]:
    """
    Project a ring of [lon, lat] positions to planar (x, y) meters.

    Args:
        ring: Positions as [longitude, latitude] (extra ordinates ignored)
        transformer: Transformer from get_equal_area_transformer

    Returns:
        List of (x, y) coordinates in meters
    """
    lons = [position[0] for position in ring]
    lats = [position[1] for position in ring]
    xs, ys = transformer.transform(lons, lats)
    return list(zip(xs, ys))


def geodesic_distance_km(
    point1: Tuple[float, float],
    point2: Tuple[float, float],
) -> float:
    """
    Geodesic distance between two (lon, lat) points in kilometers.
    """
    _, _, meters = GEOD.inv(point1[0], point1[1], point2[0], point2[1])
    return meters / 1000.0


def geodesic_line_length_km(positions: Sequence[Tuple[float, float]]) -> float:
    """
    Geodesic length of a polyline of (lon, lat) positions in kilometers.
    """
    if len(positions) < 2:
        return 0.0
    lons = [p[0] for p in positions]
    lats = [p[1] for p in positions]
    return GEOD.line_length(lons, lats) / 1000.0
