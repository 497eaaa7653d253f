"""Tests for the SQLite event store."""

import pytest
from sqlalchemy.exc import IntegrityError

from connpass_watcher.database.store import EventStore, ProcessedParams


class TestSaveEvents:
    """Tests for event upserts."""

    async def test_round_trip(self, store: EventStore, sample_event):
        """Saved events come back with identical mutable fields."""
        await store.save_events([sample_event])

        record = await store.get_event(sample_event.id)

        assert record is not None
        assert record.title == sample_event.title
        assert record.event_url == sample_event.url
        assert record.started_at == sample_event.started_at
        assert record.ended_at == sample_event.ended_at
        assert record.started_at.utcoffset() == sample_event.started_at.utcoffset()
        assert record.place == sample_event.place
        assert record.address == sample_event.address
        assert record.is_online is False
        assert record.is_local is True
        assert record.accepted == sample_event.accepted
        assert record.connpass_updated_at == sample_event.updated_at

    async def test_upsert_refreshes_fields(self, store: EventStore, make_event):
        """Saving the same id again updates the row."""
        await store.save_events([make_event(7, title="Old title", accepted=3)])
        await store.save_events([make_event(7, title="New title", accepted=42)])

        record = await store.get_event(7)

        assert record.title == "New title"
        assert record.accepted == 42

    async def test_batch_is_atomic(self, store: EventStore, make_event):
        """A failing row rolls back the whole batch."""
        broken = make_event(2).model_copy(update={"title": None})

        with pytest.raises(IntegrityError):
            await store.save_events([make_event(1), broken])

        assert await store.get_event(1) is None
        assert await store.get_event(2) is None

    async def test_empty_batch(self, store: EventStore):
        """An empty batch is a no-op."""
        await store.save_events([])
        assert await store.get_unprocessed_ids() == []

    async def test_missing_event(self, store: EventStore):
        """Unknown ids return None."""
        assert await store.get_event(999) is None


class TestProcessedRecords:
    """Tests for processing outcomes and freshness markers."""

    async def test_is_processed(self, store: EventStore, sample_event):
        """An event is processed once a record exists."""
        await store.save_events([sample_event])
        assert await store.is_processed(sample_event.id) is False

        await store.mark_processed(
            ProcessedParams(
                event_id=sample_event.id,
                has_speaker_opportunity=False,
                has_interest_match=True,
                interest_score=50,
                connpass_updated_at=sample_event.updated_at,
            )
        )

        assert await store.is_processed(sample_event.id) is True
        record = await store.get_processed_record(sample_event.id)
        assert record.has_interest_match is True
        assert record.interest_score == 50
        assert record.processed_at is not None

    async def test_needs_reprocessing(self, store: EventStore, sample_event):
        """Only a changed marker triggers reprocessing."""
        await store.save_events([sample_event])
        assert await store.needs_reprocessing(sample_event.id, "anything") is False

        await store.mark_processed(
            ProcessedParams(
                event_id=sample_event.id,
                has_speaker_opportunity=False,
                has_interest_match=False,
                connpass_updated_at="2030-04-01T12:00:00+09:00",
            )
        )

        assert await store.needs_reprocessing(sample_event.id, "2030-04-01T12:00:00+09:00") is False
        assert await store.needs_reprocessing(sample_event.id, "2030-04-02T08:00:00+09:00") is True

    async def test_null_marker_needs_reprocessing(self, store: EventStore, sample_event):
        """Records without a stored marker are always reprocessed."""
        await store.save_events([sample_event])
        await store.mark_processed(
            ProcessedParams(
                event_id=sample_event.id,
                has_speaker_opportunity=False,
                has_interest_match=False,
            )
        )

        assert await store.needs_reprocessing(sample_event.id, sample_event.updated_at) is True

    async def test_calendar_id_is_coalesced(self, store: EventStore, sample_event):
        """Writing no calendar id keeps the stored one."""
        await store.save_events([sample_event])
        await store.mark_processed(
            ProcessedParams(
                event_id=sample_event.id,
                has_speaker_opportunity=True,
                has_interest_match=True,
                interest_score=80,
                calendar_event_id="cal-123",
                connpass_updated_at="v1",
            )
        )
        await store.mark_processed(
            ProcessedParams(
                event_id=sample_event.id,
                has_speaker_opportunity=False,
                has_interest_match=True,
                interest_score=60,
                calendar_event_id=None,
                connpass_updated_at="v2",
            )
        )

        record = await store.get_processed_record(sample_event.id)

        assert record.calendar_event_id == "cal-123"
        assert record.has_speaker_opportunity is False
        assert record.interest_score == 60
        assert record.connpass_updated_at == "v2"

    async def test_calendar_id_can_be_replaced(self, store: EventStore, sample_event):
        """An explicit new calendar id replaces the old one."""
        await store.save_events([sample_event])
        for calendar_id in ("cal-1", "cal-2"):
            await store.mark_processed(
                ProcessedParams(
                    event_id=sample_event.id,
                    has_speaker_opportunity=False,
                    has_interest_match=True,
                    calendar_event_id=calendar_id,
                )
            )

        record = await store.get_processed_record(sample_event.id)
        assert record.calendar_event_id == "cal-2"

    async def test_unprocessed_ids(self, store: EventStore, make_event):
        """Only events without a processing record are listed."""
        await store.save_events([make_event(1), make_event(2), make_event(3)])
        await store.mark_processed(
            ProcessedParams(event_id=2, has_speaker_opportunity=False, has_interest_match=False)
        )

        assert sorted(await store.get_unprocessed_ids()) == [1, 3]
