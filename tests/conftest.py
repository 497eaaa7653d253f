"""Pytest fixtures for connpass-watcher tests.

This module provides test fixtures that ensure:
1. No external API calls are made (connpass, LLM providers, Google APIs)
2. Each store test gets its own temporary SQLite file
3. Isolated test environment with controlled configuration
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("CONNPASS_API_KEY", "test-connpass-key")

from connpass_watcher.calendar.google_calendar import CalendarEvent
from connpass_watcher.config import Settings
from connpass_watcher.database.connection import close_db, create_tables, init_db
from connpass_watcher.database.store import EventStore
from connpass_watcher.models.event import Event
from connpass_watcher.utils.rate_limiter import RateLimiter

JST = timezone(timedelta(hours=9))


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with an isolated app directory and LLM disabled."""
    return Settings(
        app_dir=tmp_path,
        connpass={"api_key": "test-connpass-key", "prefectures": ["tokyo"]},
        interests={
            "keywords": ["Python", "Rust"],
            "exclude_keywords": ["book club"],
            "profile": "Backend engineer",
            "min_participants": 50,
        },
        llm={"enabled": False},
    )


@pytest.fixture
def no_delay_limiter() -> RateLimiter:
    """Rate limiter that never waits."""
    return RateLimiter("test", min_interval=0.0, max_concurrent=1)


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def make_event():
    """Factory for events with sensible defaults."""

    def _make(event_id: int = 1, **overrides) -> Event:
        start = overrides.pop("started_at", datetime(2030, 5, 10, 19, 0, tzinfo=JST))
        data = {
            "id": event_id,
            "title": f"Python勉強会 #{event_id}",
            "catch": "みんなで学ぶ",
            "description": "<p>Webアプリ開発について話します</p>",
            "url": f"https://example.connpass.com/event/{event_id}/",
            "started_at": start,
            "ended_at": start + timedelta(hours=2),
            "place": "渋谷ヒカリエ",
            "address": "東京都渋谷区渋谷2-21-1",
            "accepted": 10,
            "limit": 30,
            "updated_at": "2030-04-01T12:00:00+09:00",
            "is_online": False,
            "is_local": True,
        }
        data.update(overrides)
        return Event(**data)

    return _make


@pytest.fixture
def sample_event(make_event) -> Event:
    """A small Python event below the popularity threshold."""
    return make_event(1)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def session_factory(tmp_path: Path):
    """Session factory bound to a fresh SQLite file."""
    factory = await init_db(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables()
    yield factory
    await close_db()


@pytest.fixture
async def store(session_factory) -> EventStore:
    return EventStore(session_factory)


# =============================================================================
# Collaborator Mocks
# =============================================================================


@pytest.fixture
def mock_llm():
    """Mock LLM provider returning a positive interest verdict."""
    llm = MagicMock()
    llm.name = "mock"
    llm.generate_text = AsyncMock(
        return_value=(
            '{"interest": {"is_match": true, "score": 70, "reason": "Python topic"}, '
            '"speaker": {"has_opportunity": false, "has_lt_slot": false, "has_cfp": false}}'
        )
    )
    return llm


@pytest.fixture
def mock_calendar_client():
    """Mock blocking Google Calendar client with an empty calendar."""
    client = MagicMock()
    client.calendar_id = "primary"
    client.is_authenticated.return_value = True
    client.list_events.return_value = []
    client.insert_event.return_value = CalendarEvent(id="cal-new", summary="created")
    client.update_event.return_value = CalendarEvent(id="cal-existing", summary="updated")
    return client
