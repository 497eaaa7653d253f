"""Database module for connpass-watcher.

This module provides:
- SQLAlchemy async SQLite connection
- Event and processing-outcome models
- The EventStore used by the scanner
"""

from connpass_watcher.database.connection import (
    close_db,
    create_tables,
    get_session_factory,
    init_db,
)
from connpass_watcher.database.models import (
    Base,
    EventRecord,
    ProcessedEvent,
)
from connpass_watcher.database.store import EventStore, ProcessedParams

__all__ = [
    # Connection
    "init_db",
    "close_db",
    "create_tables",
    "get_session_factory",
    # Models
    "Base",
    "EventRecord",
    "ProcessedEvent",
    # Store
    "EventStore",
    "ProcessedParams",
]
