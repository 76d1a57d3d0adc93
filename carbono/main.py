"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from carbono.api.rate_limit import limiter
from carbono.api.v1.routers import analysis, carbon, fires, forest
from carbono.config import settings
from carbono.infrastructure.earth_observation_client import get_earth_observation_client
from carbono.infrastructure.firms_client import get_firms_client
from carbono.infrastructure.overpass_client import get_overpass_client
from carbono.middleware.error_handler import ErrorHandlerMiddleware, error_response

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Builds every external adapter on startup, so a missing API key aborts
    the process instead of failing each request, and closes them on shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(
        f"Analysis config: timeout={settings.analysis_timeout_seconds}s, "
        f"area={settings.min_analysis_area_hectares}-{settings.max_analysis_area_hectares} ha, "
        f"forest_threshold={settings.default_forest_threshold}%"
    )
    logger.info(
        f"Carbon config: carbon_fraction={settings.carbon_fraction}, "
        f"co2_factor={settings.co2_conversion_factor}"
    )
    logger.info(f"Cache: max_entries={settings.cache_max_entries}")
    if settings.rate_limit_enabled:
        logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")
    else:
        logger.info("Rate limit: disabled")

    clients = [
        get_overpass_client(),
        get_earth_observation_client(),
        get_firms_client(),
    ]

    yield

    # Shutdown
    logger.info("Shutting down application...")
    for client in clients:
        await client.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Geospatial carbon and land-cover engine for CARBONO Bolivia

    Analyzes user-drawn polygons in Bolivia for the carbon-offset platform.

    ## Features

    - **Area Analysis**: Tree estimates, communities, waterways and buildings
      for a polygon, with graceful degradation when a data source fails
    - **Forest Snapping**: Restrict a polygon to its forested parts using a
      tree-cover mask
    - **Historical Trends**: NDVI and forest-cover evolution with
      deforestation events
    - **Carbon Accounting**: IPCC-style CO2 sequestration, revenue scenarios
      and multi-year projections
    - **Fire Alerts**: NASA FIRMS hotspots with severity classification
    - **Result Cache**: Expensive upstream results are cached and shared
      between concurrent identical requests
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query parameters are 400s."""
    logger.warning(
        f"Request validation failed: {exc.errors()}",
        extra={"path": request.url.path, "method": request.method},
    )
    detail = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", detail)


# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Apply the default per-client limit to every route
app.add_middleware(SlowAPIMiddleware)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(analysis.router, prefix="/api/v1")
app.include_router(forest.router, prefix="/api/v1")
app.include_router(carbon.router, prefix="/api/v1")
app.include_router(carbon.admin_router, prefix="/api/v1")
app.include_router(fires.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
