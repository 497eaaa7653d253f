"""Scan orchestration.

One scan pulls upcoming events from connpass, stores them, and walks them in
fetch order through a small state machine. Each event ends in exactly one
terminal state:

| Action | When |
|--------|------|
| excluded | Title contains an exclude keyword (checked first) |
| already_processed | Processed before and ``updated_at`` unchanged |
| no_match | Classifier negative on both interest and speaker |
| registered | Matched, calendar entry created |
| updated | Matched, existing calendar entry updated |
| skipped | Matched, calendar not written (dry run, disabled, not authenticated, or failed) |

The processing record of one event is committed before the next event
starts, so an interrupted scan resumes where it stopped.

## Failure Handling

- Feed errors (``ProviderError``) abort the scan
- LLM errors are absorbed by the classifier as a negative verdict
- Calendar API, auth and transport errors are logged per event; the event
  becomes ``skipped`` and its classification is still recorded. Other
  exceptions propagate
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from connpass_watcher.calendar.auth import CalendarAuthError
from connpass_watcher.calendar.reconciler import CalendarReconciler, UpsertAction
from connpass_watcher.database.store import EventStore, ProcessedParams
from connpass_watcher.matching.classifier import HybridClassifier
from connpass_watcher.models.event import Event
from connpass_watcher.models.scan import ScanAction, ScanResult
from connpass_watcher.models.verdict import Classification
from connpass_watcher.providers.base import EventSource

logger = logging.getLogger(__name__)

# Remote failures absorbed per event during calendar sync
CALENDAR_ERRORS = (HttpError, GoogleAuthError, CalendarAuthError, HttpLib2Error, OSError)

UPSERT_ACTIONS = {
    UpsertAction.CREATED: ScanAction.REGISTERED,
    UpsertAction.UPDATED: ScanAction.UPDATED,
    UpsertAction.SKIPPED: ScanAction.SKIPPED,
}


@dataclass
class ScanReport:
    """Result of one scan."""

    results: list[ScanResult] = field(default_factory=list)
    dry_run: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def count(self, action: ScanAction) -> int:
        return sum(1 for result in self.results if result.action == action)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def matched(self) -> list[ScanResult]:
        return [result for result in self.results if result.is_matched]

    @property
    def counts(self) -> dict[str, int]:
        counter = Counter(result.action.value for result in self.results)
        return {action.value: counter.get(action.value, 0) for action in ScanAction}

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable summary used by ``scan --json``."""
        return {
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total": self.total,
            "counts": self.counts,
            "results": [result.model_dump(mode="json") for result in self.results],
        }


class Scanner:
    """Runs scans over an event source.

    Example:
        ```python
        scanner = Scanner(source, store, classifier, reconciler)

        report = await scanner.scan(dry_run=True)
        print(report.counts)
        ```
    """

    def __init__(
        self,
        source: EventSource,
        store: EventStore,
        classifier: HybridClassifier,
        reconciler: CalendarReconciler | None = None,
    ):
        """Initialize the scanner.

        Args:
            source: Events feed
            store: Event store
            classifier: Hybrid classifier
            reconciler: Calendar reconciler, or None to never write the calendar
        """
        self.source = source
        self.store = store
        self.classifier = classifier
        self.reconciler = reconciler

    async def scan(self, dry_run: bool = False) -> ScanReport:
        """Run one scan pass.

        Raises:
            ProviderError: If the events feed cannot be fetched
        """
        report = ScanReport(dry_run=dry_run)

        calendar_ready = await self._check_calendar(dry_run)

        events = await self.source.get_events()
        await self.store.save_events(events)
        logger.info(f"Processing {len(events)} events")

        for event in events:
            result = await self.process_event(event, calendar_ready)
            report.results.append(result)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Scan finished: {len(report.matched)} matched, "
            f"{report.count(ScanAction.ALREADY_PROCESSED)} already processed, "
            f"{report.count(ScanAction.NO_MATCH)} no match, "
            f"{report.count(ScanAction.EXCLUDED)} excluded"
        )
        return report

    async def _check_calendar(self, dry_run: bool) -> bool:
        """Whether matched events may be written to the calendar this scan."""
        if dry_run or self.reconciler is None or not self.reconciler.enabled:
            return False
        if not await self.reconciler.is_authenticated():
            logger.warning(
                "Google Calendar not authenticated. Run 'connpass-watcher auth' first."
            )
            return False
        return True

    async def process_event(self, event: Event, calendar_ready: bool = False) -> ScanResult:
        """Drive one event to its terminal state and record the outcome."""
        if self.classifier.is_excluded(event):
            await self._record_excluded(event)
            return ScanResult(
                event=event,
                action=ScanAction.EXCLUDED,
                classification=Classification.negative(excluded=True),
            )

        if await self.store.is_processed(event.id) and not await self.store.needs_reprocessing(
            event.id, event.updated_at
        ):
            return ScanResult(event=event, action=ScanAction.ALREADY_PROCESSED)

        classification = await self.classifier.classify(event)

        if not classification.is_match:
            await self.store.mark_processed(
                ProcessedParams(
                    event_id=event.id,
                    has_speaker_opportunity=False,
                    has_interest_match=False,
                    interest_score=classification.interest.score,
                    connpass_updated_at=event.updated_at,
                )
            )
            return ScanResult(
                event=event, action=ScanAction.NO_MATCH, classification=classification
            )

        calendar_event_id = None
        action = ScanAction.SKIPPED
        if calendar_ready and self.reconciler is not None:
            calendar_event_id, action = await self._sync_calendar(event, classification)

        await self.store.mark_processed(
            ProcessedParams(
                event_id=event.id,
                has_speaker_opportunity=classification.speaker.has_opportunity,
                has_interest_match=classification.interest.is_match,
                interest_score=classification.interest.score,
                calendar_event_id=calendar_event_id,
                connpass_updated_at=event.updated_at,
            )
        )
        return ScanResult(
            event=event,
            action=action,
            classification=classification,
            calendar_event_id=calendar_event_id,
        )

    async def _record_excluded(self, event: Event) -> None:
        record = await self.store.get_processed_record(event.id)
        if (
            record is not None
            and record.connpass_updated_at
            and record.connpass_updated_at == event.updated_at
        ):
            return
        await self.store.mark_processed(
            ProcessedParams(
                event_id=event.id,
                has_speaker_opportunity=False,
                has_interest_match=False,
                interest_score=0,
                connpass_updated_at=event.updated_at,
            )
        )

    async def _sync_calendar(
        self,
        event: Event,
        classification: Classification,
    ) -> tuple[str | None, ScanAction]:
        color_id = self.reconciler.get_color_id(
            has_speaker_opportunity=classification.speaker.has_opportunity,
            is_popular=classification.is_popular,
        )
        try:
            calendar_event_id, upsert_action = await self.reconciler.upsert_event(
                event, classification, color_id
            )
        except CALENDAR_ERRORS as e:
            logger.error(f"Failed to sync event {event.id} to calendar: {e}")
            return None, ScanAction.SKIPPED
        return calendar_event_id, UPSERT_ACTIONS[upsert_action]
