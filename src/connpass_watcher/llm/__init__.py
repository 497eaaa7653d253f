"""LLM providers behind a single ``generate_text`` capability."""

from connpass_watcher.llm.base import LLMError, LLMProvider
from connpass_watcher.llm.anthropic import AnthropicProvider
from connpass_watcher.llm.google import GoogleProvider
from connpass_watcher.llm.ollama import OllamaProvider
from connpass_watcher.llm.openai import OpenAIProvider, OpenRouterProvider
from connpass_watcher.llm.factory import create_llm_provider, get_default_model

__all__ = [
    "LLMError",
    "LLMProvider",
    "AnthropicProvider",
    "GoogleProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "create_llm_provider",
    "get_default_model",
]
