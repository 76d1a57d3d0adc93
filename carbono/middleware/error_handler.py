"""
Global error handling middleware.
"""
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from carbono.domain.errors import AnalysisTimeoutError
from carbono.infrastructure.external_api_client import (
    ConfigurationError,
    InvalidCredentialsError,
    RateLimitExceededError,
    UpstreamServiceError,
)


logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    error: str,
    detail: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the {"success": false, ...} error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "detail": detail,
        },
        headers=headers,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Catches unhandled exceptions and returns consistent error responses.
    Provider credentials and internal details never reach the client.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and handle any exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        extra = {"path": request.url.path, "method": request.method}
        try:
            response = await call_next(request)
            return response

        except AnalysisTimeoutError as e:
            logger.warning(f"Analysis timed out: {e}", extra=extra)
            return error_response(
                status.HTTP_504_GATEWAY_TIMEOUT,
                "Analysis timed out",
                str(e),
            )

        except RateLimitExceededError as e:
            logger.warning(f"Upstream rate limit: {e}", extra=extra)
            headers = None
            if e.retry_after is not None:
                headers = {"Retry-After": str(int(e.retry_after))}
            return error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Upstream rate limit exceeded",
                f"{e.service} is throttling requests, try again later",
                headers=headers,
            )

        except (InvalidCredentialsError, ConfigurationError) as e:
            logger.error(f"Service misconfigured: {e}", extra=extra)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Service misconfigured",
                "A data provider is not configured correctly",
            )

        except UpstreamServiceError as e:
            logger.error(
                f"Upstream service error: {e}",
                extra={**extra, "status_code": e.status_code},
            )
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Upstream service error",
                f"{e.service} is unavailable",
            )

        except ValueError as e:
            logger.warning(f"Validation error: {e}", extra=extra)
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                "Invalid request",
                str(e),
            )

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=extra)
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
