"""
API response models using Pydantic.

Every successful response is wrapped as {"success": true, "data": ...};
errors are {"success": false, "error": ..., "detail": ...}.
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from carbono.domain.models import (
    CamelModel,
    CarbonCalculationResult,
    CarbonCredits,
    CarbonProjectionYear,
)

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""
    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """Error envelope."""
    success: bool = False
    error: str = Field(description="Short error category")
    detail: Optional[Any] = Field(default=None, description="Human-readable detail")

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "Invalid request",
                "detail": "Polygon must be within Bolivia",
            }
        }


class CarbonCalculationData(CamelModel):
    """Carbon calculation with optional projection and credits."""
    calculation: CarbonCalculationResult
    projection: Optional[List[CarbonProjectionYear]] = None
    credits: Optional[CarbonCredits] = None


class CacheStats(BaseModel):
    entries: int
    max_entries: int
    hits: int
    misses: int
    coalesced: int
    in_flight: int
    by_source: Dict[str, int]


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"description": "Too many requests from this client"},
    500: {"model": ErrorResponse, "description": "Internal or upstream service error"},
    503: {"model": ErrorResponse, "description": "Upstream provider rate limit exceeded"},
}
