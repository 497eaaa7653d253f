"""Event feed providers."""

from connpass_watcher.providers.base import (
    AuthenticationError,
    EventSource,
    ProviderError,
    RateLimitError,
)
from connpass_watcher.providers.connpass import ConnpassProvider

__all__ = [
    "EventSource",
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ConnpassProvider",
]
