"""SQLite-backed store for user-supplied event source URLs."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.event_source_store import IEventSourceStore
from src.models.user import EventSource
from src.utils.errors import DuplicateSourceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS event_sources (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL,
    url         TEXT    NOT NULL,
    name        TEXT,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(user_id, url)
);
"""

_SELECT_COLUMNS = "id, user_id, url, name, created_at"


class SQLiteEventSourceStore(IEventSourceStore):
    """SQLite-backed event source persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the event_sources table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("event_sources_db_initialized", path=str(self._db_path))

    async def list_sources(self, user_id: int) -> list[EventSource]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM event_sources "
                "WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [EventSource(**dict(r)) for r in rows]

    async def add_source(self, user_id: int, url: str, name: str | None = None) -> EventSource:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            try:
                cursor = await db.execute(
                    "INSERT INTO event_sources (user_id, url, name) VALUES (?, ?, ?)",
                    (user_id, url, name),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateSourceError(provider_name="sqlite") from exc
            source_id = cursor.lastrowid
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM event_sources WHERE id = ?", (source_id,)
            )
            row = await cursor.fetchone()

        logger.info("event_source_added", user_id=user_id, source_id=source_id)
        return EventSource(**dict(row))

    async def delete_source(self, user_id: int, source_id: int) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM event_sources WHERE id = ? AND user_id = ?",
                (source_id, user_id),
            )
            await db.commit()
        return cursor.rowcount > 0

    def get_provider_name(self) -> str:
        return "sqlite_event_sources"
