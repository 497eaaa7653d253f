"""connpass events source.

## API Documentation Summary
Source: https://connpass.com/about/api/v2/

## Endpoint
- Base URL: https://connpass.com/api/v2/events/
- Full URL example:
  https://connpass.com/api/v2/events/?ymd=20250401&prefecture=tokyo,online&count=100&start=1&order=2

## Authentication
- ``X-API-Key`` header, issued per account

## Query Parameters Used
| Parameter | Value | Notes |
|-----------|-------|-------|
| ymd | yyyymmdd | One day per request series |
| prefecture | tokyo,online | Comma-joined; ``online`` added when online events are wanted |
| count | 100 | API maximum |
| start | 1, 101, ... | 1-based paging offset |
| order | 2 | By start time |

Requesting several days at once silently drops events beyond the 100 result
cap, so each day in the search window gets its own request series. A day is
capped at 500 results; hitting the cap is logged as a truncation.

## Response Format
```json
{
  "results_returned": 1,
  "results_available": 1,
  "results_start": 1,
  "events": [
    {
      "id": 364,
      "title": "BPStudy#56",
      "catch": "株式会社ビープラウドが主催するWeb系技術討論の会",
      "description": "<p>...</p>",
      "url": "https://bpstudy.connpass.com/event/364/",
      "started_at": "2012-04-17T18:30:00+09:00",
      "ended_at": "2012-04-17T20:30:00+09:00",
      "limit": 80,
      "accepted": 80,
      "updated_at": "2012-03-20T12:07:32+09:00",
      "place": "BPオフィス",
      "address": "東京都豊島区東池袋1-7-1"
    }
  ]
}
```
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from connpass_watcher.config import ConnpassSettings
from connpass_watcher.matching.text import is_local_event, is_online_event
from connpass_watcher.models.event import Event
from connpass_watcher.providers.base import EventSource, ProviderError
from connpass_watcher.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_RESULTS_PER_DAY = 500
ORDER_BY_START = 2


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


class ConnpassProvider(EventSource):
    """connpass API v2 client.

    Example:
        ```python
        async with ConnpassProvider(settings.connpass, limiters.connpass) as source:
            events = await source.get_events()
        ```
    """

    name = "connpass"
    base_url = "https://connpass.com/api/v2/events/"

    def __init__(
        self,
        settings: ConnpassSettings,
        limiter: RateLimiter | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the provider.

        Args:
            settings: connpass section of the configuration
            limiter: Rate limiter for connpass requests
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        super().__init__(limiter=limiter, timeout=timeout, transport=transport)
        self.settings = settings

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        headers["X-API-Key"] = self.settings.api_key
        return headers

    def get_target_dates(self, now: datetime | None = None) -> list[str]:
        """Days in the search window as ``yyyymmdd`` strings.

        Window priority: hours_ahead > weeks_ahead > months_ahead (default
        one month). The window starts at today's midnight.
        """
        now = now or datetime.now().astimezone()
        today = _start_of_day(now)

        if self.settings.hours_ahead is not None:
            end = now + timedelta(hours=self.settings.hours_ahead)
        elif self.settings.weeks_ahead is not None:
            end = today + timedelta(weeks=self.settings.weeks_ahead)
        else:
            end = _add_months(today, self.settings.months_ahead or 1)

        dates = []
        current = today
        while current < end:
            dates.append(current.strftime("%Y%m%d"))
            current += timedelta(days=1)
        return dates

    def get_target_prefectures(self) -> list[str]:
        prefectures = list(self.settings.prefectures)
        if self.settings.include_online and "online" not in prefectures:
            prefectures.append("online")
        return prefectures

    async def _fetch_page(self, date: str, prefectures: list[str], start: int) -> dict[str, Any]:
        params = {
            "ymd": date,
            "prefecture": ",".join(prefectures),
            "count": PAGE_SIZE,
            "start": start,
            "order": ORDER_BY_START,
        }
        response = await self._fetch(self.base_url, params=params)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Failed to parse response: {e}",
                provider=self.name,
                response_body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                "Unexpected response shape",
                provider=self.name,
                response_body=response.text,
            )

        logger.debug(
            f"connpass {date} start={start}: "
            f"{data.get('results_returned', 0)} of {data.get('results_available', 0)}"
        )
        return data

    async def _fetch_day(self, date: str, prefectures: list[str]) -> list[dict[str, Any]]:
        """Fetch every page for one day, up to the per-day cap."""
        items: list[dict[str, Any]] = []
        start = 1
        while True:
            data = await self._fetch_page(date, prefectures, start)
            items.extend(data.get("events") or [])

            if (data.get("results_returned") or 0) < PAGE_SIZE:
                break

            start += PAGE_SIZE
            if start > MAX_RESULTS_PER_DAY:
                logger.warning(
                    f"Reached {MAX_RESULTS_PER_DAY} event limit for {date}, "
                    "remaining events are skipped"
                )
                break
        return items

    def _translate_event(self, data: dict[str, Any]) -> Event | None:
        try:
            event = Event.from_api(data)
        except (KeyError, ValidationError) as e:
            logger.warning(f"Skipping malformed event {data.get('id')}: {e}")
            return None

        event.is_online = is_online_event(event.place, event.address, event.title)
        event.is_local = is_local_event(event.place, event.address)
        return event

    def _filter_events(self, events: list[Event], now: datetime) -> list[Event]:
        """Drop events that started before today and unwanted online events."""
        today = _start_of_day(now)
        return [
            event
            for event in events
            if event.started_at >= today
            and (self.settings.include_online or not event.is_online)
        ]

    async def get_events(self, now: datetime | None = None) -> list[Event]:
        """Fetch, deduplicate, enrich and filter upcoming events.

        Raises:
            ProviderError: If any request fails after retries
        """
        now = now or datetime.now().astimezone()
        dates = self.get_target_dates(now)
        prefectures = self.get_target_prefectures()
        if not dates:
            return []

        logger.info(
            f"Fetching connpass events {dates[0]} - {dates[-1]} "
            f"for {', '.join(prefectures)}"
        )

        raw_events: list[dict[str, Any]] = []
        for date in dates:
            raw_events.extend(await self._fetch_day(date, prefectures))

        logger.info(f"Fetched {len(raw_events)} events")

        # Later duplicates replace earlier ones but keep the first position
        unique: dict[int, dict[str, Any]] = {}
        for item in raw_events:
            if "id" in item:
                unique[item["id"]] = item

        events = [
            event
            for event in (self._translate_event(item) for item in unique.values())
            if event is not None
        ]
        filtered = self._filter_events(events, now)

        logger.info(f"{len(unique)} unique events, {len(filtered)} after filtering")
        return filtered
