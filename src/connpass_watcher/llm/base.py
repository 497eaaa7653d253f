"""Base LLM provider abstraction.

Every provider exposes a single capability, ``generate_text(prompt)``, and
nothing outside this package branches on provider identity. The concrete
provider is built once at startup by ``create_llm_provider``.

## Supported Providers

### Anthropic
- Endpoint: https://api.anthropic.com/v1/messages
- Auth: ``x-api-key`` header plus ``anthropic-version``
- Response path: content[0].text

### OpenAI (and compatible APIs)
- Endpoint: {base_url}/chat/completions (default https://api.openai.com/v1)
- Auth: Bearer token
- Response path: choices[0].message.content

### OpenRouter
- OpenAI-compatible, base URL https://openrouter.ai/api/v1
- Extra headers: HTTP-Referer, X-Title

### Google Generative AI (Gemini)
- Endpoint: https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent
- Auth: ``key`` query parameter
- Response path: candidates[0].content.parts[].text

### Ollama
- Endpoint: {base_url}/api/generate (default http://localhost:11434)
- Auth: none
- Response path: response
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from connpass_watcher.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when an LLM call fails or returns no text."""

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


class LLMProvider(ABC):
    """Abstract base class for LLM text generation backends.

    Attributes:
        name: Provider identifier used in configuration
        default_base_url: API base URL when none is configured
    """

    name: str
    default_base_url: str = ""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        limiter: RateLimiter | None = None,
        timeout: float = 60.0,
        max_tokens: int = 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the provider.

        Args:
            model: Model identifier
            api_key: API key if required by the provider
            base_url: Override for the API base URL
            limiter: Rate limiter shared by all calls to this provider
            timeout: Request timeout in seconds
            max_tokens: Maximum response tokens
            transport: Custom httpx transport (used in tests)
        """
        self.model = model
        self.api_key = api_key
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.limiter = limiter
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._transport = transport

    async def generate_text(self, prompt: str) -> str:
        """Generate a completion for a single user prompt.

        Raises:
            LLMError: If the request fails or the response holds no text
        """
        if self.limiter is not None:
            return await self.limiter.schedule(self._generate, prompt)
        return await self._generate(prompt)

    @abstractmethod
    async def _generate(self, prompt: str) -> str:
        """Provider-specific request and response extraction."""

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON payload with retry on transient network errors."""
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=request_headers, params=params)

        if response.status_code >= 400:
            raise LLMError(
                f"{self.name} API error: {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise LLMError(
                f"Failed to parse {self.name} response: {e}",
                provider=self.name,
                response_body=response.text,
            ) from e

    def _empty_response(self) -> LLMError:
        return LLMError(f"Empty response from {self.name}", provider=self.name)
