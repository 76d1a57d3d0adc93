"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Test configuration (set before the application is imported)
- Sample polygons inside and outside Bolivia
- Sample FIRMS CSV and Overpass payloads
- Result cache with a controllable clock
- FastAPI test client
"""
import os

# Settings and retry decorators read configuration at import time
os.environ.setdefault("EARTH_ENGINE_API_KEY", "test-key")
os.environ.setdefault("NASA_FIRMS_API_KEY", "test-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"

import pytest
from fastapi.testclient import TestClient

from carbono.main import app
from carbono.infrastructure.result_cache import ResultCache

from helpers import FakeClock, square_polygon


# ============================================================
# Sample Geometry Fixtures
# ============================================================

@pytest.fixture
def santa_cruz_polygon() -> dict:
    """~118 ha square east of Santa Cruz de la Sierra."""
    return square_polygon(-64.01, -16.51, 0.01)


@pytest.fixture
def tiny_polygon() -> dict:
    """Well under one hectare."""
    return square_polygon(-64.0, -16.5, 0.0005)


@pytest.fixture
def peru_polygon() -> dict:
    """Square around Lima, outside the national envelope."""
    return square_polygon(-77.1, -12.1, 0.05)


# ============================================================
# Sample Upstream Payloads
# ============================================================

@pytest.fixture
def firms_csv() -> str:
    """VIIRS CSV with two near-duplicate hotspots and one isolated one."""
    return (
        "latitude,longitude,bright_ti4,scan,track,acq_date,acq_time,satellite,"
        "instrument,confidence,version,bright_ti5,frp,daynight\n"
        "-17.7800,-63.1800,345.2,0.39,0.36,2024-08-20,1742,N20,VIIRS,h,2.0NRT,295.1,120.5,D\n"
        "-17.7820,-63.1810,330.1,0.39,0.36,2024-08-20,1742,N20,VIIRS,n,2.0NRT,290.3,40.2,D\n"
        "-14.8300,-64.9000,310.0,0.40,0.37,2024-08-20,0530,N20,VIIRS,l,2.0NRT,285.0,5.0,N\n"
    )


@pytest.fixture
def overpass_communities() -> dict:
    return {
        "elements": [
            {
                "type": "node",
                "id": 101,
                "lat": -16.505,
                "lon": -64.005,
                "tags": {"place": "village", "name": "San Pedro", "population": "1,250"},
            },
            {
                "type": "way",
                "id": 202,
                "center": {"lat": -16.503, "lon": -64.002},
                "tags": {"place": "hamlet"},
            },
        ]
    }


@pytest.fixture
def forest_fragments() -> dict:
    """Two forest fragments; one extends past the sample polygon."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {},
                "geometry": square_polygon(-64.01, -16.51, 0.005),
            },
            {
                "type": "Feature",
                "properties": {},
                "geometry": square_polygon(-64.0025, -16.5025, 0.005),
            },
        ],
    }


# ============================================================
# Infrastructure Fixtures
# ============================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> ResultCache:
    """Small cache with short TTLs driven by the fake clock."""
    return ResultCache(
        maxsize=8,
        ttls={"GEE_FOREST_MASK": 100, "NASA_FIRMS": 10},
        default_ttl=50,
        timer=clock,
    )


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    yield
    app.dependency_overrides.clear()
