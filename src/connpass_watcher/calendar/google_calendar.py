"""Google Calendar API client.

Provides the calls the reconciler needs on one calendar:
- Check that a usable token exists
- Search events in a time window
- Insert events
- Update events

## API Documentation

https://developers.google.com/calendar/api/v3/reference

## Authentication

Uses the authorized user token written by ``connpass-watcher auth``.
Tokens are refreshed when expired.

## Rate Limits

Google Calendar API has quotas:
- 1,000,000 queries per day (default)
- 500 queries per 100 seconds per user

The client itself is blocking; callers run it in a worker thread behind the
calendar rate limiter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from connpass_watcher.calendar.auth import CalendarAuthError, load_credentials

logger = logging.getLogger(__name__)


@dataclass
class CalendarEvent:
    """A calendar event."""

    id: str
    summary: str
    description: str | None = None
    location: str | None = None
    color_id: str | None = None
    html_link: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CalendarEvent:
        """Create from Google Calendar API response."""
        return cls(
            id=data["id"],
            summary=data.get("summary", ""),
            description=data.get("description"),
            location=data.get("location"),
            color_id=data.get("colorId"),
            html_link=data.get("htmlLink"),
            raw_data=data,
        )


class GoogleCalendarClient:
    """Client for one Google Calendar.

    Example:
        ```python
        client = GoogleCalendarClient(settings.app_dir, calendar_id="primary")

        if client.is_authenticated():
            events = client.list_events(time_min, time_max, query="PyCon")
            created = client.insert_event(body)
        ```
    """

    def __init__(
        self,
        app_dir: Path,
        calendar_id: str = "primary",
        service: Any | None = None,
    ):
        """Initialize the client.

        Args:
            app_dir: Directory holding the OAuth token
            calendar_id: Target calendar ('primary' for the user's calendar)
            service: Prebuilt API resource (used by tests)
        """
        self.app_dir = app_dir
        self.calendar_id = calendar_id
        self._credentials: Credentials | None = None
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            self._credentials = load_credentials(self.app_dir)
            self._service = build(
                "calendar", "v3", credentials=self._credentials, cache_discovery=False
            )
        return self._service

    def is_authenticated(self) -> bool:
        """Check that a token can be loaded and refreshed."""
        if self._service is not None:
            return True
        try:
            self._get_service()
        except CalendarAuthError as e:
            logger.warning(f"Google Calendar not authenticated: {e}")
            return False
        return True

    def list_events(
        self,
        time_min: str,
        time_max: str,
        query: str | None = None,
        max_results: int = 10,
    ) -> list[CalendarEvent]:
        """List events overlapping a time window.

        Args:
            time_min: RFC 3339 lower bound (exclusive, on end time)
            time_max: RFC 3339 upper bound (exclusive, on start time)
            query: Free text search terms
            max_results: Maximum events to return

        Returns:
            List of CalendarEvent
        """
        params: dict[str, Any] = {
            "calendarId": self.calendar_id,
            "timeMin": time_min,
            "timeMax": time_max,
            "maxResults": max_results,
            "singleEvents": True,
        }
        if query:
            params["q"] = query

        result = self._get_service().events().list(**params).execute()
        return [CalendarEvent.from_api(item) for item in result.get("items", [])]

    def insert_event(self, body: dict[str, Any]) -> CalendarEvent:
        """Create an event and return it with its new ID."""
        result = (
            self._get_service()
            .events()
            .insert(calendarId=self.calendar_id, body=body)
            .execute()
        )
        return CalendarEvent.from_api(result)

    def update_event(self, event_id: str, body: dict[str, Any]) -> CalendarEvent:
        """Replace an event's fields with ``body``."""
        result = (
            self._get_service()
            .events()
            .update(calendarId=self.calendar_id, eventId=event_id, body=body)
            .execute()
        )
        return CalendarEvent.from_api(result)
