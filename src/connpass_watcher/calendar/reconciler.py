"""Calendar reconciliation.

Mirrors a classified event into Google Calendar, searching for an existing
entry first so repeated runs update instead of duplicating.

## Matching

Google Calendar has no field for the connpass event ID, so an existing entry
is recognised by title and time: entries overlapping the event's time window
are searched with the title as query, and the first one whose summary
contains the title wins.

## Colors

| Signal | Color |
|--------|-------|
| Speaking opportunity | ``color_speaker`` (default 9, Blueberry) |
| Popular event | ``color_popular`` (default 6, Tangerine) |
| Otherwise | calendar default |
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from connpass_watcher.calendar.google_calendar import GoogleCalendarClient
from connpass_watcher.config import GoogleCalendarSettings
from connpass_watcher.models.event import Event
from connpass_watcher.models.verdict import Classification
from connpass_watcher.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SPEAKER_MARKER = "🎤 登壇可能性: あり"
SOURCE_TITLE = "connpass"


class UpsertAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class CalendarReconciler:
    """Create or update calendar entries for matched events.

    Example:
        ```python
        reconciler = CalendarReconciler(settings.google_calendar, client, limiters.calendar)

        color_id = reconciler.get_color_id(has_speaker_opportunity=True, is_popular=False)
        calendar_id, action = await reconciler.upsert_event(event, classification, color_id)
        ```
    """

    def __init__(
        self,
        settings: GoogleCalendarSettings,
        client: GoogleCalendarClient,
        limiter: RateLimiter | None = None,
    ):
        """Initialize the reconciler.

        Args:
            settings: google_calendar section of the configuration
            client: Blocking calendar client
            limiter: Rate limiter for calendar API calls
        """
        self.settings = settings
        self.client = client
        self.limiter = limiter or RateLimiter("google_calendar")

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def _call(self, func, *args: Any, **kwargs: Any) -> Any:
        """Run a blocking client call in a worker thread behind the limiter."""
        return await self.limiter.schedule(asyncio.to_thread, func, *args, **kwargs)

    async def is_authenticated(self) -> bool:
        return await self._call(self.client.is_authenticated)

    def get_color_id(self, has_speaker_opportunity: bool, is_popular: bool) -> str | None:
        """Pick the event color: speaker > popular > default (None)."""
        if has_speaker_opportunity:
            return self.settings.color_speaker
        if is_popular:
            return self.settings.color_popular
        return None

    def build_description(self, event: Event, classification: Classification) -> str:
        """Assemble the calendar description.

        The URL line always comes first; the speaker marker and the LLM reason
        follow after a blank line when present.
        """
        details = []
        if classification.speaker.has_opportunity:
            details.append(SPEAKER_MARKER)
        if classification.interest.llm_reason:
            details.append(f"興味マッチング理由: {classification.interest.llm_reason}")

        lines = [f"connpass URL: {event.url}"]
        if details:
            lines.append("")
            lines.extend(details)
        return "\n".join(lines)

    def build_event_body(
        self,
        event: Event,
        classification: Classification,
        color_id: str | None = None,
    ) -> dict[str, Any]:
        """Build the Calendar API event resource."""
        body: dict[str, Any] = {
            "summary": event.title,
            "description": self.build_description(event, classification),
            "location": event.place,
            "start": {
                "dateTime": event.started_at.isoformat(),
                "timeZone": self.settings.timezone,
            },
            "end": {
                "dateTime": event.ended_at.isoformat(),
                "timeZone": self.settings.timezone,
            },
            "source": {
                "title": SOURCE_TITLE,
                "url": event.url,
            },
        }
        if color_id:
            body["colorId"] = color_id
        return body

    async def find_existing_event(self, event: Event) -> str | None:
        """Find a calendar entry for this event by time window and title.

        Errors propagate so a failed lookup never turns into a duplicate insert.
        """
        entries = await self._call(
            self.client.list_events,
            time_min=event.started_at.isoformat(),
            time_max=event.ended_at.isoformat(),
            query=event.title,
            max_results=10,
        )
        for entry in entries:
            if event.title in (entry.summary or ""):
                logger.debug(f"Found existing calendar entry {entry.id} for event {event.id}")
                return entry.id
        return None

    async def upsert_event(
        self,
        event: Event,
        classification: Classification,
        color_id: str | None = None,
    ) -> tuple[str | None, UpsertAction]:
        """Create or update the calendar entry for an event.

        Returns:
            Tuple of (calendar event ID, action). Disabled integration yields
            (None, SKIPPED).
        """
        if not self.enabled:
            logger.debug(f"Calendar integration disabled, skipping event {event.id}")
            return None, UpsertAction.SKIPPED

        body = self.build_event_body(event, classification, color_id)
        existing_id = await self.find_existing_event(event)

        if existing_id:
            await self._call(self.client.update_event, existing_id, body)
            logger.info(f"Updated calendar entry {existing_id} for event {event.id}")
            return existing_id, UpsertAction.UPDATED

        created = await self._call(self.client.insert_event, body)
        logger.info(f"Added event {event.id} to calendar as {created.id}")
        return created.id, UpsertAction.CREATED
