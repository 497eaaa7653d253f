"""Calendar integration module.

Mirrors matched connpass events into Google Calendar.

## Google Calendar API

Uses the Google Calendar API v3:
- https://developers.google.com/calendar/api/v3/reference

## Event Processing

1. Pick a color from the classification
2. Look for an existing entry with the same title in the event's time window
3. Update it, or insert a new entry
"""

from connpass_watcher.calendar.auth import (
    CalendarAuthError,
    authenticate,
    load_credentials,
)
from connpass_watcher.calendar.google_calendar import (
    CalendarEvent,
    GoogleCalendarClient,
)
from connpass_watcher.calendar.reconciler import (
    CalendarReconciler,
    UpsertAction,
)

__all__ = [
    "CalendarAuthError",
    "authenticate",
    "load_credentials",
    "GoogleCalendarClient",
    "CalendarEvent",
    "CalendarReconciler",
    "UpsertAction",
]
