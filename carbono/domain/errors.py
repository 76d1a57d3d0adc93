"""
Domain error taxonomy.

Validation errors derive from ValueError so that the global error handler
maps them to HTTP 400 without knowing every concrete type.
"""
from typing import Optional


class ValidationError(ValueError):
    """User input is wrong: never retried, surfaced as HTTP 400."""
    pass


class GeometryError(ValidationError):
    """Malformed geometry (bad nesting, too few positions, open ring, NaN)."""
    pass


class OutOfTerritoryError(ValidationError):
    """Polygon lies outside the national territory."""
    pass


class AreaOutOfRangeError(ValidationError):
    """Polygon area is below the minimum or above the maximum analysable area."""
    pass


class DegradedSourceError(Exception):
    """
    Failure of one optional data source.

    Recorded in result metadata by the orchestrator; never raised past the
    fan-out join.
    """

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        self.source = source
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"Data source '{source}' degraded ({reason})")


class AnalysisTimeoutError(Exception):
    """The analysis exceeded its wall-clock budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Analysis did not complete within {timeout_seconds:.0f}s")
