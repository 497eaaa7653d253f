"""Domain models for connpass-watcher."""

from connpass_watcher.models.event import Event
from connpass_watcher.models.verdict import (
    Classification,
    InterestVerdict,
    SpeakerVerdict,
)
from connpass_watcher.models.scan import (
    MATCHED_ACTIONS,
    ScanAction,
    ScanResult,
)

__all__ = [
    # Event
    "Event",
    # Verdicts
    "Classification",
    "InterestVerdict",
    "SpeakerVerdict",
    # Scan
    "MATCHED_ACTIONS",
    "ScanAction",
    "ScanResult",
]
