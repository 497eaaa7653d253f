"""Base events source abstraction.

This module defines the interface for event feeds and the error types they
raise. Sources translate their API payloads into the canonical
``connpass_watcher.models.event.Event`` model.

## Supported Sources

### connpass (connpass.com)
- Endpoint: https://connpass.com/api/v2/events/
- Auth: ``X-API-Key`` header
- Rate limit: roughly one request per second; we space requests 2 s apart
- Paging: ``start`` (1-based) and ``count`` (max 100)
- Key response path: events[]
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from connpass_watcher import __version__
from connpass_watcher.models.event import Event
from connpass_watcher.utils.rate_limiter import RateLimiter


class ProviderError(Exception):
    """Base exception for events source errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(ProviderError):
    """Raised when provider rate limit is exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(
            f"Rate limit exceeded for {provider}",
            provider=provider,
            status_code=status_code,
        )
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """Raised when the API key is rejected."""


class EventSource(ABC):
    """Abstract base class for event feeds.

    Attributes:
        name: Human-readable source name
        base_url: Base URL for the API

    Example:
        ```python
        class MySource(EventSource):
            name = "my_source"
            base_url = "https://api.example.com/events"

            async def get_events(self):
                response = await self._fetch(self.base_url)
                return [Event.from_api(e) for e in response.json()["events"]]
        ```
    """

    name: str
    base_url: str

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        user_agent: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the source.

        Args:
            limiter: Rate limiter shared by every request to this source
            user_agent: User-Agent string for requests
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.limiter = limiter or RateLimiter(self.name)
        self.user_agent = user_agent or f"connpass-watcher/{__version__}"
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> EventSource:
        """Enter async context manager."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def _get_default_headers(self) -> dict[str, str]:
        """Get default headers for requests."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _fetch(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Fetch data from the API with retry logic.

        Each attempt waits for a slot on the source's rate limiter.

        Args:
            url: Full URL to fetch
            params: Query parameters
            headers: Additional headers

        Returns:
            HTTP response

        Raises:
            ProviderError: If request fails after retries
            RateLimitError: If rate limit is exceeded
        """
        client = self._get_client()
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        response = await self.limiter.schedule(
            client.get, url, params=params, headers=request_headers
        )

        # Handle rate limiting
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                status_code=429,
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"API key rejected: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        # Handle other errors
        if response.status_code >= 400:
            raise ProviderError(
                f"API request failed: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        return response

    @abstractmethod
    async def get_events(self) -> list[Event]:
        """Get upcoming events in the configured search window.

        Returns:
            Deduplicated, enriched and filtered events in fetch order

        Raises:
            ProviderError: If the feed cannot be retrieved
        """
        pass
