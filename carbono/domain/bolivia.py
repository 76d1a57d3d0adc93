"""
National reference data for Bolivia: bounding envelope and department capitals.
"""
import math
import unicodedata
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BoundingBox:
    """Geographic envelope in degrees."""
    west: float
    south: float
    east: float
    north: float

    def contains(self, longitude: float, latitude: float) -> bool:
        return (
            self.south <= latitude <= self.north
            and self.west <= longitude <= self.east
        )

    def contains_box(self, other: "BoundingBox") -> bool:
        return (
            other.west >= self.west
            and other.east <= self.east
            and other.south >= self.south
            and other.north <= self.north
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)


@dataclass(frozen=True)
class DepartmentCapital:
    name: str
    capital: str
    latitude: float
    longitude: float


BOLIVIA_BBOX = BoundingBox(west=-69.6, south=-23.0, east=-57.5, north=-10.0)

BOLIVIA_CENTER = (-64.5, -16.5)

BOLIVIA_DEPARTMENTS: dict[str, DepartmentCapital] = {
    "La Paz": DepartmentCapital("La Paz", "La Paz", -16.5, -68.15),
    "Santa Cruz": DepartmentCapital("Santa Cruz", "Santa Cruz de la Sierra", -17.78, -63.18),
    "Cochabamba": DepartmentCapital("Cochabamba", "Cochabamba", -17.39, -66.16),
    "Potosí": DepartmentCapital("Potosí", "Potosí", -19.58, -65.75),
    "Oruro": DepartmentCapital("Oruro", "Oruro", -17.98, -67.13),
    "Chuquisaca": DepartmentCapital("Chuquisaca", "Sucre", -19.03, -65.26),
    "Tarija": DepartmentCapital("Tarija", "Tarija", -21.53, -64.73),
    "Beni": DepartmentCapital("Beni", "Trinidad", -14.83, -64.90),
    "Pando": DepartmentCapital("Pando", "Cobija", -11.03, -68.76),
}


def normalize_name(name: str) -> str:
    """Case- and accent-insensitive key for department lookups."""
    decomposed = unicodedata.normalize("NFKD", name.strip())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def resolve_department(name: Optional[str]) -> Optional[str]:
    """
    Return the canonical department name for a loosely spelled one.

    Args:
        name: Department name, e.g. "potosi" or "Potosí"

    Returns:
        Canonical name or None if it is not a Bolivian department
    """
    if not name:
        return None
    key = normalize_name(name)
    for canonical in BOLIVIA_DEPARTMENTS:
        if normalize_name(canonical) == key:
            return canonical
    return None


def get_department_from_coordinates(latitude: float, longitude: float) -> Optional[str]:
    """
    Approximate reverse geocoding: the department whose capital is nearest.

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees

    Returns:
        Department name, or None when the point is outside the national envelope
    """
    if not BOLIVIA_BBOX.contains(longitude, latitude):
        return None

    closest = None
    min_distance = math.inf
    for name, capital in BOLIVIA_DEPARTMENTS.items():
        distance = math.hypot(capital.latitude - latitude, capital.longitude - longitude)
        if distance < min_distance:
            min_distance = distance
            closest = name
    return closest
