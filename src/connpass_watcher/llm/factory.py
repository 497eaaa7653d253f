"""LLM provider construction from configuration."""

from __future__ import annotations

import logging

from connpass_watcher.config import Settings
from connpass_watcher.llm.anthropic import AnthropicProvider
from connpass_watcher.llm.base import LLMProvider
from connpass_watcher.llm.google import GoogleProvider
from connpass_watcher.llm.ollama import OllamaProvider
from connpass_watcher.llm.openai import OpenAIProvider, OpenRouterProvider
from connpass_watcher.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "google": GoogleProvider,
    "ollama": OllamaProvider,
    "openrouter": OpenRouterProvider,
}

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "google": "gemini-1.5-flash",
    "ollama": "llama3.2",
    "openrouter": "xiaomi/mimo-v2-flash:free",
}


def get_default_model(provider: str) -> str:
    return DEFAULT_MODELS.get(provider, "gpt-4o")


def create_llm_provider(
    settings: Settings,
    limiter: RateLimiter | None = None,
) -> LLMProvider | None:
    """Build the configured LLM provider.

    Returns:
        The provider, or None when the LLM is disabled
    """
    llm = settings.llm
    if not llm.enabled:
        logger.info("LLM classification disabled")
        return None

    provider_cls = PROVIDERS[llm.provider]
    model = llm.model or get_default_model(llm.provider)

    logger.debug(f"Creating LLM provider {llm.provider} (model={model})")

    return provider_cls(
        model=model,
        api_key=settings.llm_api_key,
        base_url=llm.base_url,
        limiter=limiter,
    )
