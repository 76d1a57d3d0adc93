"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Overpass (OpenStreetMap) Configuration
    overpass_api_url: str = Field(
        default="https://overpass-api.de/api/interpreter",
        description="Overpass API interpreter endpoint"
    )
    overpass_query_timeout: int = Field(
        default=60,
        description="Server-side timeout (seconds) embedded in Overpass QL queries"
    )

    # Earth Observation Service Configuration
    earth_engine_base_url: str = Field(
        default="https://earth-observation.carbono.bo",
        description="Base URL of the earth-observation analysis service"
    )
    earth_engine_api_key: str = Field(
        default="",
        description="API key for the earth-observation analysis service"
    )

    # NASA FIRMS Configuration
    nasa_firms_base_url: str = Field(
        default="https://firms.modaps.eosdis.nasa.gov/api/area/csv",
        description="Base URL for the NASA FIRMS area CSV API"
    )
    nasa_firms_api_key: str = Field(
        default="",
        description="NASA FIRMS map key"
    )
    nasa_firms_default_source: str = Field(
        default="VIIRS_NOAA20_NRT",
        description="Default FIRMS sensor source"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Area Analysis Parameters
    analysis_timeout_seconds: float = Field(
        default=60.0,
        description="Wall-clock budget for a complete area analysis"
    )
    min_analysis_area_hectares: float = Field(
        default=1.0,
        description="Smallest polygon area accepted for analysis"
    )
    max_analysis_area_hectares: float = Field(
        default=100_000.0,
        description="Largest polygon area accepted for analysis"
    )
    default_forest_threshold: float = Field(
        default=70.0,
        description="Default tree-cover threshold (%) for forest masks"
    )
    default_simplify_tolerance_meters: float = Field(
        default=50.0,
        description="Default simplification tolerance for forest mask polygons"
    )
    max_trend_range_days: int = Field(
        default=730,
        description="Longest date range accepted by the historical trends query"
    )

    # Result Cache
    cache_max_entries: int = Field(
        default=1024,
        description="Maximum number of cached results (LRU eviction beyond this)"
    )
    cache_ttl_analyze_area_seconds: int = Field(
        default=24 * 60 * 60,
        description="TTL for earth-observation area analyses"
    )
    cache_ttl_forest_mask_seconds: int = Field(
        default=24 * 60 * 60,
        description="TTL for forest mask fragments"
    )
    cache_ttl_historical_trends_seconds: int = Field(
        default=24 * 60 * 60,
        description="TTL for historical NDVI / forest loss trends"
    )
    cache_ttl_fire_hotspots_seconds: int = Field(
        default=3 * 60 * 60,
        description="TTL for NASA FIRMS hotspot downloads"
    )

    # Carbon Accounting Constants
    carbon_fraction: float = Field(
        default=0.47,
        description="Fraction of dry biomass that is carbon (IPCC default)"
    )
    co2_conversion_factor: float = Field(
        default=3.67,
        description="CO2/C molecular weight ratio (44/12)"
    )
    price_conservative_usd: float = Field(
        default=5.0,
        description="Conservative carbon price, USD per tCO2"
    )
    price_realistic_usd: float = Field(
        default=15.0,
        description="Realistic carbon price, USD per tCO2"
    )
    price_optimistic_usd: float = Field(
        default=50.0,
        description="Optimistic carbon price, USD per tCO2"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Whether per-client rate limiting is active"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="CARBONO Bolivia Geo Engine",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
