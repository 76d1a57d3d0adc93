"""
Infrastructure layer: Base HTTP client with retry logic and typed upstream errors.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from carbono.config import settings
from carbono.infrastructure.api_constants import APIConstants

logger = logging.getLogger(__name__)


class UpstreamServiceError(Exception):
    """An external data provider failed, was unreachable, or answered badly."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class InvalidCredentialsError(UpstreamServiceError):
    """The provider rejected our credentials (HTTP 401/403)."""
    pass


class RateLimitExceededError(UpstreamServiceError):
    """The provider rate-limited us (HTTP 429). Retryable with backoff."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(service, message, status_code)


class ConfigurationError(Exception):
    """Required configuration (e.g. an API key) is missing."""
    pass


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _is_retryable(error: BaseException) -> bool:
    """Retry on server errors (5xx), transport errors and rate limiting."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, (httpx.RequestError, RateLimitExceededError))


class ExternalAPIClient:
    """
    Base client for the external geodata providers.
    Implements retry logic with exponential backoff.
    """

    service_name = "external"

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = APIConstants.DEFAULT_TIMEOUT,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: Provider base URL
            headers: Extra default headers (e.g. authentication)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"User-Agent": APIConstants.USER_AGENT, **(headers or {})},
            timeout=timeout,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        response = await self.client.request(method, endpoint, **kwargs)

        if response.status_code in (401, 403):
            raise InvalidCredentialsError(
                self.service_name,
                f"Credentials rejected ({response.status_code})",
                response.status_code,
            )
        if response.status_code == 429:
            logger.warning(f"{self.service_name} rate limit hit")
            raise RateLimitExceededError(
                self.service_name,
                "Rate limit exceeded",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        response.raise_for_status()
        return response

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Successful httpx.Response

        Raises:
            InvalidCredentialsError: On 401/403
            RateLimitExceededError: On 429 after retries
            UpstreamServiceError: On any other failure after retries
        """
        try:
            return await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise UpstreamServiceError(
                self.service_name,
                f"Request failed: {e.response.status_code} - {e.response.text[:200]}",
                e.response.status_code,
            )
        except httpx.RequestError as e:
            raise UpstreamServiceError(self.service_name, f"Request error: {str(e)}")

    async def _request_json(self, method: str, endpoint: str, **kwargs) -> Any:
        response = await self._make_request(method, endpoint, **kwargs)
        try:
            return response.json()
        except ValueError:
            raise UpstreamServiceError(
                self.service_name, "Response is not valid JSON", response.status_code
            )

    async def _request_text(self, method: str, endpoint: str, **kwargs) -> str:
        response = await self._make_request(method, endpoint, **kwargs)
        return response.text
