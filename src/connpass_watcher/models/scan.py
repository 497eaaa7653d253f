"""Scan result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from connpass_watcher.models.event import Event
from connpass_watcher.models.verdict import Classification


class ScanAction(str, Enum):
    """Terminal state reached by an event during one scan."""

    ALREADY_PROCESSED = "already_processed"
    EXCLUDED = "excluded"
    NO_MATCH = "no_match"
    REGISTERED = "registered"
    UPDATED = "updated"
    SKIPPED = "skipped"


MATCHED_ACTIONS = frozenset({ScanAction.REGISTERED, ScanAction.UPDATED, ScanAction.SKIPPED})


class ScanResult(BaseModel):
    """Outcome of processing one event."""

    event: Event
    action: ScanAction
    classification: Classification | None = None
    calendar_event_id: str | None = None

    @property
    def is_matched(self) -> bool:
        return self.action in MATCHED_ACTIONS
