"""Database connection management.

Provides an async SQLite connection using SQLAlchemy with aiosqlite.

## Configuration

- DATABASE_URL: Full connection string
  (default: sqlite+aiosqlite:///~/.connpass-watcher/events.db)
- DATABASE_ECHO: Log SQL statements

SQLite databases are opened in WAL mode.

## Usage

```python
from connpass_watcher.database import init_db, create_tables, get_session_factory

await init_db(settings.resolved_database_url)
await create_tables()
store = EventStore(get_session_factory())
```
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from connpass_watcher.database.models import Base

logger = logging.getLogger(__name__)

# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


async def init_db(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Initialize the database connection.

    Creates the async engine and session factory. Should be called once on
    startup.

    Returns:
        The session factory
    """
    global _engine, _session_factory

    logger.info("Initializing database connection")

    _ensure_sqlite_directory(database_url)

    _engine = create_async_engine(database_url, echo=echo)

    if _engine.dialect.name == "sqlite":
        event.listen(_engine.sync_engine, "connect", _enable_sqlite_pragmas)

    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("Database connection initialized")
    return _session_factory


async def close_db() -> None:
    """Close the database connection."""
    global _engine, _session_factory

    if _engine:
        logger.info("Closing database connection")
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def create_tables() -> None:
    """Create all database tables that do not exist yet."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.debug("Database tables ready")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory created by init_db()."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
