"""
Infrastructure layer: NASA FIRMS (Fire Information for Resource Management System) client.

https://firms.modaps.eosdis.nasa.gov/api/
"""
import asyncio
import logging
from typing import List, Optional, Tuple

from carbono.config import settings
from carbono.domain.bolivia import BOLIVIA_BBOX
from carbono.domain.errors import ValidationError
from carbono.infrastructure.api_constants import FirmsEndpoints
from carbono.infrastructure.external_api_client import (
    ConfigurationError,
    ExternalAPIClient,
    UpstreamServiceError,
)

logger = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


class FireHotspotClient(ExternalAPIClient):
    """
    Client for the FIRMS area CSV API.

    Distinguishes invalid credentials, rate limiting and transport failures
    through the typed errors of ExternalAPIClient.
    """

    service_name = "nasa-firms"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize the client.

        Raises:
            ConfigurationError: If no FIRMS map key is configured
        """
        self.api_key = api_key if api_key is not None else settings.nasa_firms_api_key
        if not self.api_key:
            raise ConfigurationError("NASA FIRMS API key is required. Set NASA_FIRMS_API_KEY.")
        super().__init__(base_url=base_url or settings.nasa_firms_base_url)

    async def fetch_fires(
        self,
        bbox: BBox,
        day_range: int = 1,
        source: Optional[str] = None,
        date: Optional[str] = None,
    ) -> str:
        """
        Fetch active fires for a bounding box.

        Args:
            bbox: (west, south, east, north)
            day_range: Number of days to fetch (1-10)
            source: Sensor source (defaults to the configured one)
            date: Optional start date YYYY-MM-DD

        Returns:
            CSV text

        Raises:
            ValidationError: If day_range is outside 1-10
            InvalidCredentialsError: If the map key is rejected
            RateLimitExceededError: If FIRMS keeps rate-limiting after retries
            UpstreamServiceError: On any other failure
        """
        if not FirmsEndpoints.MIN_DAY_RANGE <= day_range <= FirmsEndpoints.MAX_DAY_RANGE:
            raise ValidationError(
                f"day_range must be between {FirmsEndpoints.MIN_DAY_RANGE} "
                f"and {FirmsEndpoints.MAX_DAY_RANGE}, got {day_range}"
            )
        source = source or settings.nasa_firms_default_source
        path = FirmsEndpoints.area(self.api_key, source, bbox, day_range, date)
        return await self._request_text("GET", f"{self.base_url}{path}")

    async def fetch_country_fires(self, day_range: int = 1, source: Optional[str] = None) -> str:
        """Fires within the national envelope."""
        return await self.fetch_fires(BOLIVIA_BBOX.as_tuple(), day_range, source)

    async def fetch_fires_multi_source(self, bbox: BBox, day_range: int = 1) -> List[str]:
        """
        Query every sensor concurrently and keep the successful answers.

        Returns:
            CSV bodies from the sources that answered

        Raises:
            UpstreamServiceError: The first failure, when every source failed
        """
        results = await asyncio.gather(
            *(self.fetch_fires(bbox, day_range, source) for source in FirmsEndpoints.ALL_SOURCES),
            return_exceptions=True,
        )
        bodies = []
        failures = []
        for source, result in zip(FirmsEndpoints.ALL_SOURCES, results):
            if isinstance(result, UpstreamServiceError):
                logger.warning(f"FIRMS source {source} failed: {result}")
                failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            bodies.append(result)

        if not bodies and failures:
            raise failures[0]
        return bodies


# Singleton instance
_firms_client: Optional[FireHotspotClient] = None


def get_firms_client() -> FireHotspotClient:
    """
    Get or create the singleton FIRMS client.

    Raises:
        ConfigurationError: If the map key is missing
    """
    global _firms_client
    if _firms_client is None:
        _firms_client = FireHotspotClient()
    return _firms_client
