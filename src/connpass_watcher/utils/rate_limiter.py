"""Rate limiting for external API calls.

Each external dependency gets its own ``RateLimiter`` which enforces a
minimum spacing between call starts and a ceiling on outstanding calls.
Limiters are built once per process from configuration and handed to the
components that issue the calls.

| Dependency | Default spacing | Max concurrent |
|------------|-----------------|----------------|
| connpass | 2 s | 1 |
| Google Calendar | 0.5 s | 2 |
| Anthropic | 12 s | 1 |
| other LLMs | 1 s | 1 |
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from connpass_watcher.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Anthropic free tier allows 5 requests per minute
LLM_MIN_INTERVALS: dict[str, float] = {
    "anthropic": 12.0,
}
DEFAULT_LLM_MIN_INTERVAL = 1.0


class RateLimiter:
    """Minimum spacing plus concurrency ceiling.

    Example:
        ```python
        limiter = RateLimiter("connpass", min_interval=2.0, max_concurrent=1)
        response = await limiter.schedule(client.get, url)
        ```
    """

    def __init__(self, name: str, min_interval: float = 0.0, max_concurrent: int = 1):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.name = name
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self._semaphore: asyncio.Semaphore | None = None
        self._lock: asyncio.Lock | None = None
        self._last_start: float | None = None

    def _primitives(self) -> tuple[asyncio.Semaphore, asyncio.Lock]:
        # Created lazily so the limiter can be built outside a running loop
        if self._semaphore is None or self._lock is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            self._lock = asyncio.Lock()
        return self._semaphore, self._lock

    async def _wait_for_slot(self, lock: asyncio.Lock) -> None:
        """Enforce minimum delay between call starts."""
        async with lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            if self._last_start is not None:
                wait = self.min_interval - (now - self._last_start)
                if wait > 0:
                    logger.debug(f"Rate limiter {self.name}: waiting {wait:.2f}s")
                    await asyncio.sleep(wait)
            self._last_start = loop.time()

    async def schedule(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``func(*args, **kwargs)`` once spacing and concurrency allow."""
        semaphore, lock = self._primitives()
        async with semaphore:
            await self._wait_for_slot(lock)
            return await func(*args, **kwargs)


@dataclass
class RateLimiters:
    """One limiter per external dependency."""

    connpass: RateLimiter
    calendar: RateLimiter
    llm: RateLimiter

    @classmethod
    def from_settings(cls, settings: Settings) -> RateLimiters:
        limits = settings.rate_limits
        llm_interval = limits.llm_min_interval
        if llm_interval is None:
            llm_interval = LLM_MIN_INTERVALS.get(
                settings.llm.provider, DEFAULT_LLM_MIN_INTERVAL
            )
        return cls(
            connpass=RateLimiter(
                "connpass",
                min_interval=limits.connpass_min_interval,
                max_concurrent=limits.connpass_max_concurrent,
            ),
            calendar=RateLimiter(
                "google_calendar",
                min_interval=limits.calendar_min_interval,
                max_concurrent=limits.calendar_max_concurrent,
            ),
            llm=RateLimiter(
                f"llm:{settings.llm.provider}",
                min_interval=llm_interval,
                max_concurrent=limits.llm_max_concurrent,
            ),
        )
