"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


class EarthObservationEndpoints:
    """Earth-observation analysis service endpoint paths."""

    V1_BASE = "/v1"

    ANALYZE_AREA = f"{V1_BASE}/analyze-area"
    FOREST_MASK = f"{V1_BASE}/forest-mask"
    NDVI_TIME_SERIES = f"{V1_BASE}/ndvi-time-series"
    FOREST_LOSS = f"{V1_BASE}/forest-loss"


class FirmsEndpoints:
    """NASA FIRMS area API path segments."""

    AREA_PATH = "/{api_key}/{source}/{west},{south},{east},{north}/{day_range}"

    SOURCE_VIIRS_NOAA20 = "VIIRS_NOAA20_NRT"
    SOURCE_VIIRS_SNPP = "VIIRS_SNPP_NRT"
    SOURCE_MODIS = "MODIS_NRT"

    ALL_SOURCES = (SOURCE_VIIRS_NOAA20, SOURCE_VIIRS_SNPP, SOURCE_MODIS)

    MIN_DAY_RANGE = 1
    MAX_DAY_RANGE = 10

    @classmethod
    def area(
        cls,
        api_key: str,
        source: str,
        bbox: tuple[float, float, float, float],
        day_range: int,
        date: str | None = None,
    ) -> str:
        """
        Build the area CSV path.

        Args:
            api_key: FIRMS map key
            source: Sensor source, e.g. VIIRS_NOAA20_NRT
            bbox: (west, south, east, north)
            day_range: Number of days (1-10)
            date: Optional start date YYYY-MM-DD

        Returns:
            Path relative to the FIRMS base URL
        """
        west, south, east, north = bbox
        path = cls.AREA_PATH.format(
            api_key=api_key,
            source=source,
            west=west,
            south=south,
            east=east,
            north=north,
            day_range=day_range,
        )
        if date:
            path = f"{path}/{date}"
        return path


class OverpassQueries:
    """Overpass QL templates; {poly} is a poly:"lat lon ..." filter."""

    COMMUNITIES = """
[out:json][timeout:{timeout}];
(
  node["place"~"^(village|town|hamlet|isolated_dwelling)$"]({poly});
  way["place"~"^(village|town|hamlet)$"]({poly});
  relation["place"~"^(village|town)$"]({poly});
);
out center;
"""

    WATERWAYS = """
[out:json][timeout:{timeout}];
(
  way["waterway"~"^(river|stream|canal)$"]({poly});
  relation["waterway"~"^(river|stream)$"]({poly});
);
out geom;
"""

    BUILDINGS = """
[out:json][timeout:{timeout}];
(
  way["building"]({poly});
  relation["building"]({poly});
);
out center;
"""


class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    USER_AGENT = "CARBONO-Bolivia/1.0"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0
    LONG_TIMEOUT = 90.0
