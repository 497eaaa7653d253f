"""Event store.

Durable record of every seen event and its last processing outcome. This is
the system of record for idempotence across runs: an event is reprocessed
only when its connpass ``updated_at`` differs from the one stored when it
was last classified.

## Write semantics

- ``save_events`` upserts a whole batch in one transaction
- ``mark_processed`` upserts a single row using SQLite's
  ``INSERT ... ON CONFLICT DO UPDATE``; ``calendar_event_id`` is coalesced so
  a write without an id keeps the stored one
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connpass_watcher.database.models import EventRecord, ProcessedEvent
from connpass_watcher.models.event import Event

logger = logging.getLogger(__name__)


@dataclass
class ProcessedParams:
    """Values written by ``EventStore.mark_processed``."""

    event_id: int
    has_speaker_opportunity: bool
    has_interest_match: bool
    interest_score: int | None = None
    calendar_event_id: str | None = None
    connpass_updated_at: str | None = None


class EventStore:
    """Async access to the events and processed_events tables.

    Example:
        ```python
        store = EventStore(session_factory)

        await store.save_events(events)
        if await store.is_processed(event.id):
            ...
        ```
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize the store.

        Args:
            session_factory: Factory for database sessions
        """
        self._session_factory = session_factory

    async def save_events(self, events: list[Event]) -> None:
        """Upsert a batch of events atomically."""
        if not events:
            return

        async with self._session_factory() as session:
            async with session.begin():
                for event in events:
                    await session.execute(self._upsert_event_stmt(event))

        logger.debug(f"Saved {len(events)} events")

    @staticmethod
    def _upsert_event_stmt(event: Event):
        values = {
            "event_id": event.id,
            "title": event.title,
            "event_url": event.url,
            "started_at": event.started_at,
            "ended_at": event.ended_at,
            "place": event.place,
            "address": event.address,
            "is_online": event.is_online,
            "is_local": event.is_local,
            "accepted": event.accepted,
            "connpass_updated_at": event.updated_at,
        }
        stmt = insert(EventRecord).values(**values)
        update = {key: stmt.excluded[key] for key in values if key != "event_id"}
        update["updated_at"] = func.now()
        return stmt.on_conflict_do_update(index_elements=["event_id"], set_=update)

    async def get_event(self, event_id: int) -> EventRecord | None:
        async with self._session_factory() as session:
            return await session.get(EventRecord, event_id)

    async def get_processed_record(self, event_id: int) -> ProcessedEvent | None:
        """Get the processing outcome stored for an event."""
        async with self._session_factory() as session:
            return await session.get(ProcessedEvent, event_id)

    async def is_processed(self, event_id: int) -> bool:
        return await self.get_processed_record(event_id) is not None

    async def needs_reprocessing(self, event_id: int, current_updated_at: str | None) -> bool:
        """Check whether a processed event changed upstream.

        Returns False for events never processed; ``is_processed`` covers
        that case.
        """
        record = await self.get_processed_record(event_id)
        if record is None:
            return False
        if not record.connpass_updated_at:
            # Rows written before the marker was stored
            return True
        return record.connpass_updated_at != current_updated_at

    async def mark_processed(self, params: ProcessedParams) -> None:
        """Insert or replace the processing outcome for an event."""
        stmt = insert(ProcessedEvent).values(
            event_id=params.event_id,
            has_speaker_opportunity=params.has_speaker_opportunity,
            has_interest_match=params.has_interest_match,
            interest_score=params.interest_score,
            calendar_event_id=params.calendar_event_id,
            connpass_updated_at=params.connpass_updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["event_id"],
            set_={
                "has_speaker_opportunity": stmt.excluded.has_speaker_opportunity,
                "has_interest_match": stmt.excluded.has_interest_match,
                "interest_score": stmt.excluded.interest_score,
                "calendar_event_id": func.coalesce(
                    stmt.excluded.calendar_event_id,
                    ProcessedEvent.calendar_event_id,
                ),
                "connpass_updated_at": stmt.excluded.connpass_updated_at,
                "processed_at": func.now(),
            },
        )

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(stmt)

        logger.debug(f"Event {params.event_id} marked as processed")

    async def get_unprocessed_ids(self) -> list[int]:
        """Ids of stored events that have no processing record."""
        stmt = (
            select(EventRecord.event_id)
            .outerjoin(ProcessedEvent, EventRecord.event_id == ProcessedEvent.event_id)
            .where(ProcessedEvent.event_id.is_(None))
            .order_by(EventRecord.started_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
