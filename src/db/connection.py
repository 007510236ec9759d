"""Async database engine management for the durable conversation store.

Engines are created explicitly from a URL and owned by the store that
uses them; nothing is created at import time.

Usage:
    from src.db.connection import create_engine_for_url, create_session_factory, init_schema

    engine = create_engine_for_url("sqlite+aiosqlite:///./conversations.db")
    await init_schema(engine)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        ...
    await engine.dispose()
"""

import logging
import os
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.db.models import Base

logger = logging.getLogger(__name__)


def get_async_database_url(url: str) -> str:
    """Convert a sync SQLite URL to its aiosqlite form.

    Converts sqlite:/// to sqlite+aiosqlite:///; other URLs are returned
    unchanged and must already name an async driver.
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def _ensure_sqlite_parent(url: str) -> None:
    database = make_url(url).database
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas for correctness and concurrency.

    Enables:
    - foreign_keys=ON: Referential integrity, needed for ON DELETE CASCADE.
    - journal_mode=WAL: Concurrent readers alongside a single writer.
    - synchronous=NORMAL: Commits are durable after WAL fsync.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def create_engine_for_url(url: str, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine, applying SQLite pragmas when relevant.

    Args:
        url: Database URL; plain sqlite:/// URLs are upgraded to aiosqlite.
        echo: Log SQL statements. Defaults to the SQL_ECHO env var.
    """
    url = get_async_database_url(url)
    if echo is None:
        echo = os.environ.get("SQL_ECHO", "").lower() == "true"

    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        _ensure_sqlite_parent(url)

    engine = create_async_engine(url, echo=echo)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragma)
    logger.debug("Created database engine for %s", make_url(url).render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables. Safe to call multiple times."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
