"""Shared utilities."""

from connpass_watcher.utils.rate_limiter import RateLimiter, RateLimiters

__all__ = ["RateLimiter", "RateLimiters"]
