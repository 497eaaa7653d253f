"""Database models for connpass-watcher.

## Schema Overview

```
events              one row per connpass event, refreshed every scan
processed_events    one row per classified event (0..1 per event)
```

``processed_events.connpass_updated_at`` holds the freshness marker seen when
the event was last classified. ``calendar_event_id`` is coalesced on write:
once set it survives later upserts that carry no id.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ISODateTime(TypeDecorator):
    """Timezone-aware datetime stored as ISO 8601 text.

    SQLite has no native datetime type and SQLAlchemy's default storage
    drops the UTC offset, which connpass times always carry.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> str | None:
        return value.isoformat() if value is not None else None

    def process_result_value(self, value: str | None, dialect) -> datetime | None:
        return datetime.fromisoformat(value) if value is not None else None


class Base(DeclarativeBase):
    """Base class for all database models."""


class EventRecord(Base):
    """Snapshot of a connpass event as last fetched."""

    __tablename__ = "events"

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    event_url: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Time
    started_at: Mapped[datetime] = mapped_column(ISODateTime, nullable=False)
    ended_at: Mapped[datetime] = mapped_column(ISODateTime, nullable=False)

    # Location
    place: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_local: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    accepted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    connpass_updated_at: Mapped[str | None] = mapped_column(String(64))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_events_started_at", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<EventRecord {self.event_id} {self.title[:30]}>"


class ProcessedEvent(Base):
    """Outcome of the last classification of an event."""

    __tablename__ = "processed_events"

    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.event_id"), primary_key=True, autoincrement=False
    )

    # Classification
    has_speaker_opportunity: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_interest_match: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    interest_score: Mapped[int | None] = mapped_column(Integer)

    # Sync state
    calendar_event_id: Mapped[str | None] = mapped_column(String(255))
    connpass_updated_at: Mapped[str | None] = mapped_column(String(64))

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("idx_processed_events_processed_at", "processed_at"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedEvent {self.event_id}>"
