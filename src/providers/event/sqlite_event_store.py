"""SQLite-backed event table.

Persists discovered events to the shared application database (default
``data/events.db``).  Uses ``aiosqlite`` for async I/O.

(title, event_date, location) is the operational identity used by the
upsert stage.  It is indexed but not a UNIQUE constraint:
the identity is matched exactly by the caller, and the table tolerates
historic rows that predate a normalization change.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.event_store import IEventStore
from src.models.event import StoredEvent
from src.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS events (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    title        TEXT    NOT NULL,
    event_date   TEXT    NOT NULL,
    location     TEXT    NOT NULL,
    description  TEXT,
    time         TEXT,
    category     TEXT,
    source_url   TEXT,
    image_url    TEXT,
    score        INTEGER,
    organizer    TEXT,
    artist       TEXT,
    venue        TEXT,
    created_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_events_identity ON events(title, event_date, location);",
    "CREATE INDEX IF NOT EXISTS idx_events_date ON events(event_date);",
]

_SELECT_COLUMNS = (
    "id, title, event_date, location, description, time, category, source_url, "
    "image_url, score, organizer, artist, venue, created_at, updated_at"
)

# Columns a caller may write; id and timestamps are managed here.
_WRITABLE_COLUMNS = (
    "title",
    "event_date",
    "location",
    "description",
    "time",
    "category",
    "source_url",
    "image_url",
    "score",
    "organizer",
    "artist",
    "venue",
)


def _to_db(column: str, value: Any) -> Any:
    if column == "event_date" and isinstance(value, date):
        return value.isoformat()
    return value


class SQLiteEventStore(IEventStore):
    """SQLite-backed event persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the events table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("events_db_initialized", path=str(self._db_path))

    async def find_by_identity(
        self, title: str, event_date: date, location: str
    ) -> StoredEvent | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events "
                "WHERE title = ? AND event_date = ? AND location = ? "
                "ORDER BY id LIMIT 1",
                (title, event_date.isoformat(), location),
            )
            row = await cursor.fetchone()
        return StoredEvent(**dict(row)) if row else None

    async def create(self, values: dict[str, Any]) -> StoredEvent:
        for required in ("title", "event_date", "location"):
            if not values.get(required):
                msg = f"Cannot create event without {required}"
                raise ValueError(msg)

        columns = [c for c in _WRITABLE_COLUMNS if c in values]
        placeholders = ", ".join("?" for _ in columns)
        params = tuple(_to_db(c, values[c]) for c in columns)

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"INSERT INTO events ({', '.join(columns)}) VALUES ({placeholders})",
                params,
            )
            event_id = cursor.lastrowid
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events WHERE id = ?", (event_id,)
            )
            row = await cursor.fetchone()

        logger.debug("event_created", event_id=event_id, title=values["title"])
        return StoredEvent(**dict(row))

    async def update(self, event_id: int, values: dict[str, Any]) -> StoredEvent:
        columns = [c for c in _WRITABLE_COLUMNS if c in values]
        assignments = ", ".join(f"{c} = ?" for c in columns)
        if assignments:
            assignments += ", "
        assignments += "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"
        params = tuple(_to_db(c, values[c]) for c in columns) + (event_id,)

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"UPDATE events SET {assignments} WHERE id = ?", params
            )
            if cursor.rowcount == 0:
                raise NotFoundError(
                    message=f"Event {event_id} not found", provider_name="sqlite"
                )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events WHERE id = ?", (event_id,)
            )
            row = await cursor.fetchone()

        logger.debug("event_updated", event_id=event_id)
        return StoredEvent(**dict(row))

    async def get_many(self, event_ids: list[int]) -> list[StoredEvent]:
        if not event_ids:
            return []
        placeholders = ", ".join("?" for _ in event_ids)
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM events WHERE id IN ({placeholders})",
                tuple(event_ids),
            )
            rows = await cursor.fetchall()

        by_id = {row["id"]: StoredEvent(**dict(row)) for row in rows}
        return [by_id[i] for i in event_ids if i in by_id]

    async def count(self) -> int:
        """Return the total number of stored events."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM events")
            row = await cursor.fetchone()
        return int(row[0])

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_events"
