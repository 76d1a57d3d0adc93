"""
Infrastructure layer: OpenStreetMap feature queries through the Overpass API.
"""
import logging
from typing import Any, Dict, List, Optional

from carbono.config import settings
from carbono.domain.models import BuildingRecord, CommunityRecord, WaterwayRecord
from carbono.infrastructure.api_constants import APIConstants, OverpassQueries
from carbono.infrastructure.external_api_client import ExternalAPIClient
from carbono.utils.geo_projection import geodesic_line_length_km
from carbono.utils.geometry import exterior_ring

logger = logging.getLogger(__name__)

# Population guess per place type when OSM has no population tag
ESTIMATED_POPULATION = {
    "town": 5000,
    "village": 500,
    "hamlet": 100,
    "isolated_dwelling": 10,
}
DEFAULT_ESTIMATED_POPULATION = 200

BUILDING_CATEGORIES = {
    "house": "residential",
    "residential": "residential",
    "apartments": "residential",
    "dwelling": "residential",
    "detached": "residential",
    "commercial": "commercial",
    "retail": "commercial",
    "shop": "commercial",
    "school": "public",
    "hospital": "public",
    "public": "public",
    "government": "public",
}


def polygon_filter(geometry: Dict[str, Any]) -> str:
    """Overpass poly filter ("lat lon" pairs) for a polygon's exterior ring."""
    points = " ".join(f"{lat} {lon}" for lon, lat in exterior_ring(geometry))
    return f'poly:"{points}"'


def _element_id(element: Dict[str, Any]) -> str:
    return f"{element.get('type', 'node')}/{element.get('id')}"


def _element_position(element: Dict[str, Any]) -> Optional[tuple]:
    """(lat, lon) of a node, or the centre of a way/relation."""
    if "lat" in element and "lon" in element:
        return element["lat"], element["lon"]
    center = element.get("center")
    if center and "lat" in center and "lon" in center:
        return center["lat"], center["lon"]
    return None


def _parse_population(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    digits = "".join(c for c in value if c.isdigit())
    return int(digits) if digits else None


def _line_length_km(element: Dict[str, Any]) -> Optional[float]:
    """Geodesic length from `out geom` output (ways, or relation members)."""
    segments = []
    if element.get("geometry"):
        segments.append(element["geometry"])
    for member in element.get("members", []):
        if member.get("geometry"):
            segments.append(member["geometry"])

    if not segments:
        return None
    total = sum(
        geodesic_line_length_km([(p["lon"], p["lat"]) for p in segment])
        for segment in segments
    )
    return round(total, 2)


def parse_communities(elements: List[Dict[str, Any]]) -> List[CommunityRecord]:
    communities = []
    for element in elements:
        position = _element_position(element)
        if position is None:
            continue
        tags = element.get("tags", {})
        place = tags.get("place", "unknown")
        population = _parse_population(tags.get("population"))
        communities.append(
            CommunityRecord(
                id=_element_id(element),
                name=tags.get("name"),
                type=place,
                population=population,
                estimated_population=(
                    population
                    if population is not None
                    else ESTIMATED_POPULATION.get(place, DEFAULT_ESTIMATED_POPULATION)
                ),
                latitude=position[0],
                longitude=position[1],
            )
        )
    return communities


def parse_waterways(elements: List[Dict[str, Any]]) -> List[WaterwayRecord]:
    waterways = []
    for element in elements:
        tags = element.get("tags", {})
        waterway_type = tags.get("waterway")
        if waterway_type not in ("river", "stream", "canal"):
            continue
        waterways.append(
            WaterwayRecord(
                id=_element_id(element),
                name=tags.get("name"),
                type=waterway_type,
                length_km=_line_length_km(element),
            )
        )
    return waterways


def parse_buildings(elements: List[Dict[str, Any]]) -> List[BuildingRecord]:
    buildings = []
    for element in elements:
        position = _element_position(element)
        if position is None:
            continue
        tags = element.get("tags", {})
        building_type = tags.get("building:type") or tags.get("building")
        buildings.append(
            BuildingRecord(
                id=_element_id(element),
                building_type=building_type,
                category=BUILDING_CATEGORIES.get(building_type, "other"),
                latitude=position[0],
                longitude=position[1],
            )
        )
    return buildings


class OverpassClient(ExternalAPIClient):
    """
    Client for the Overpass API.

    Each query is independent so that the orchestrator can degrade one
    category without losing the others.
    """

    service_name = "overpass"

    def __init__(self):
        """Initialize the client with configuration."""
        self.interpreter_url = settings.overpass_api_url
        self.query_timeout = settings.overpass_query_timeout
        super().__init__(
            base_url=self.interpreter_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON},
            timeout=APIConstants.LONG_TIMEOUT,
        )

    async def _run_query(self, template: str, geometry: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = template.format(timeout=self.query_timeout, poly=polygon_filter(geometry))
        data = await self._request_json("POST", self.interpreter_url, data={"data": query})
        return data.get("elements", [])

    async def query_communities(self, geometry: Dict[str, Any]) -> List[CommunityRecord]:
        """
        Fetch settlements (towns, villages, hamlets) within a polygon.

        Raises:
            UpstreamServiceError: If the query fails after retries
        """
        elements = await self._run_query(OverpassQueries.COMMUNITIES, geometry)
        communities = parse_communities(elements)
        logger.info(f"Overpass returned {len(communities)} communities")
        return communities

    async def query_waterways(self, geometry: Dict[str, Any]) -> List[WaterwayRecord]:
        """
        Fetch rivers, streams and canals within a polygon.

        Raises:
            UpstreamServiceError: If the query fails after retries
        """
        elements = await self._run_query(OverpassQueries.WATERWAYS, geometry)
        waterways = parse_waterways(elements)
        logger.info(f"Overpass returned {len(waterways)} waterways")
        return waterways

    async def query_buildings(self, geometry: Dict[str, Any]) -> List[BuildingRecord]:
        """
        Fetch buildings within a polygon.

        Raises:
            UpstreamServiceError: If the query fails after retries
        """
        elements = await self._run_query(OverpassQueries.BUILDINGS, geometry)
        buildings = parse_buildings(elements)
        logger.info(f"Overpass returned {len(buildings)} buildings")
        return buildings


# Singleton instance
_overpass_client: Optional[OverpassClient] = None


def get_overpass_client() -> OverpassClient:
    """
    Get or create the singleton Overpass client instance.

    Returns:
        OverpassClient instance
    """
    global _overpass_client
    if _overpass_client is None:
        _overpass_client = OverpassClient()
    return _overpass_client
