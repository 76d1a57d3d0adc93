"""
Application service: Fire hotspot alerts from NASA FIRMS.
"""
import logging
from typing import List, Optional, Tuple

from carbono.config import settings
from carbono.domain.bolivia import BOLIVIA_BBOX
from carbono.domain.errors import ValidationError
from carbono.domain.models import FireHotspotReport, HotspotAlert
from carbono.infrastructure.firms_client import FireHotspotClient
from carbono.infrastructure.result_cache import CacheSource, ResultCache
from carbono.services.domain.firms_parser import (
    deduplicate_alerts,
    filter_by_confidence,
    get_alert_stats,
    parse_firms_csv,
)

logger = logging.getLogger(__name__)

ALL_SOURCES = "ALL"

BBox = Tuple[float, float, float, float]


def validate_bbox(bbox: BBox) -> BBox:
    """
    Raises:
        ValidationError: If the box is inverted or outside valid degrees
    """
    west, south, east, north = bbox
    if not (-180 <= west < east <= 180 and -90 <= south < north <= 90):
        raise ValidationError(
            f"Invalid bounding box {bbox}: expected west < east and south < north in degrees"
        )
    return bbox


class FireAlertService:
    """
    Application service for hotspot retrieval.

    Downloads are cached per (bbox, day range, source); filtering happens
    after the cache so different confidence thresholds share one download.
    """

    def __init__(self, client: FireHotspotClient, cache: ResultCache):
        """
        Initialize the service with dependencies.

        Args:
            client: FIRMS client
            cache: Result cache shared by the process
        """
        self.client = client
        self.cache = cache

    async def _fetch_alerts(self, bbox: BBox, day_range: int, source: str) -> List[HotspotAlert]:
        if source == ALL_SOURCES:
            bodies = await self.client.fetch_fires_multi_source(bbox, day_range)
        else:
            bodies = [await self.client.fetch_fires(bbox, day_range, source)]

        alerts = []
        for body in bodies:
            alerts.extend(parse_firms_csv(body))
        return deduplicate_alerts(alerts)

    async def get_hotspots(
        self,
        day_range: int = 1,
        source: Optional[str] = None,
        min_confidence: float = 0.0,
        bbox: Optional[BBox] = None,
    ) -> FireHotspotReport:
        """
        Deduplicated hotspot alerts with severity and summary statistics.

        Args:
            day_range: Number of days (1-10)
            source: FIRMS sensor source, or "ALL" to merge every sensor
            min_confidence: Minimum normalised confidence (0-100)
            bbox: (west, south, east, north); defaults to the national envelope

        Returns:
            FireHotspotReport

        Raises:
            ValidationError: For an invalid bounding box or confidence
            UpstreamServiceError: If FIRMS fails
        """
        if not 0 <= min_confidence <= 100:
            raise ValidationError("min_confidence must be between 0 and 100")
        bbox = validate_bbox(tuple(bbox) if bbox else BOLIVIA_BBOX.as_tuple())
        source = source or settings.nasa_firms_default_source

        alerts = await self.cache.get_or_compute(
            CacheSource.NASA_FIRMS,
            {"bbox": list(bbox), "dayRange": day_range, "source": source},
            lambda: self._fetch_alerts(bbox, day_range, source),
        )
        alerts = filter_by_confidence(alerts, min_confidence)

        logger.info(f"FIRMS {source}: {len(alerts)} hotspots over {day_range} day(s)")

        return FireHotspotReport(
            source=source,
            day_range=day_range,
            bbox=list(bbox),
            alerts=alerts,
            stats=get_alert_stats(alerts),
        )
