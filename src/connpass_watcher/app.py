"""Application wiring.

Builds the scanner and its collaborators from settings, and owns the
lifetime of the database connection and HTTP clients.

## Usage

```python
from connpass_watcher.app import open_scanner

async with open_scanner(settings) as scanner:
    report = await scanner.scan()
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from connpass_watcher.calendar.google_calendar import GoogleCalendarClient
from connpass_watcher.calendar.reconciler import CalendarReconciler
from connpass_watcher.config import Settings
from connpass_watcher.database.connection import close_db, create_tables, init_db
from connpass_watcher.database.store import EventStore
from connpass_watcher.llm.factory import create_llm_provider
from connpass_watcher.matching.classifier import HybridClassifier
from connpass_watcher.providers.connpass import ConnpassProvider
from connpass_watcher.scanner import Scanner
from connpass_watcher.utils.rate_limiter import RateLimiters

logger = logging.getLogger(__name__)


def build_reconciler(settings: Settings, limiters: RateLimiters) -> CalendarReconciler:
    client = GoogleCalendarClient(
        settings.app_dir,
        calendar_id=settings.google_calendar.calendar_id,
    )
    return CalendarReconciler(settings.google_calendar, client, limiters.calendar)


@asynccontextmanager
async def open_scanner(
    settings: Settings,
    limiters: RateLimiters | None = None,
) -> AsyncGenerator[Scanner, None]:
    """Open the database and build a ready-to-use Scanner.

    Handles startup and shutdown:
    - Initialize database connection and schema
    - Build rate limiters, events source, classifier and reconciler
    - Close HTTP client and database on exit

    Args:
        settings: Application settings
        limiters: Rate limiters to share across scans (daemon mode)
    """
    limiters = limiters or RateLimiters.from_settings(settings)

    session_factory = await init_db(settings.resolved_database_url, echo=settings.database_echo)
    source = ConnpassProvider(settings.connpass, limiters.connpass)
    try:
        await create_tables()

        classifier = HybridClassifier(
            settings.interests,
            llm=create_llm_provider(settings, limiters.llm),
        )
        scanner = Scanner(
            source=source,
            store=EventStore(session_factory),
            classifier=classifier,
            reconciler=build_reconciler(settings, limiters),
        )
        yield scanner
    finally:
        await source.close()
        await close_db()
