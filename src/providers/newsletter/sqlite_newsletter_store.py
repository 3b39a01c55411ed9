"""SQLite-backed newsletter store.

A newsletter row holds the rendered HTML; ``newsletter_events`` holds the
ordered event references (``position`` 0..n-1).  Entries are read back by
joining the ``events`` table, so :class:`SQLiteEventStore` must be
initialized on the same database before this store is used.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.newsletter_store import INewsletterStore
from src.models.event import StoredEvent
from src.models.newsletter import Newsletter, NewsletterEntry

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS newsletters (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id       INTEGER NOT NULL,
    subject       TEXT    NOT NULL,
    html_content  TEXT    NOT NULL,
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    sent_at       TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS newsletter_events (
    newsletter_id  INTEGER NOT NULL,
    event_id       INTEGER NOT NULL,
    position       INTEGER NOT NULL,
    PRIMARY KEY (newsletter_id, event_id)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_newsletters_user ON newsletters(user_id);",
]

_NEWSLETTER_COLUMNS = "id, user_id, subject, html_content, created_at, sent_at"

_SELECT_ENTRIES_SQL = """\
SELECT ne.position,
       e.id, e.title, e.event_date, e.location, e.description, e.time, e.category,
       e.source_url, e.image_url, e.score, e.organizer, e.artist, e.venue,
       e.created_at, e.updated_at
FROM newsletter_events ne
JOIN events e ON e.id = ne.event_id
WHERE ne.newsletter_id = ?
ORDER BY ne.position;
"""


class SQLiteNewsletterStore(INewsletterStore):
    """SQLite-backed newsletter persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the newsletter tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("newsletters_db_initialized", path=str(self._db_path))

    async def count_for_user(self, user_id: int) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM newsletters WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        return int(row[0])

    async def create_newsletter(
        self,
        user_id: int,
        subject: str,
        html_content: str,
        event_ids: list[int],
    ) -> Newsletter:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "INSERT INTO newsletters (user_id, subject, html_content) VALUES (?, ?, ?)",
                (user_id, subject, html_content),
            )
            newsletter_id = cursor.lastrowid
            await db.executemany(
                "INSERT INTO newsletter_events (newsletter_id, event_id, position) "
                "VALUES (?, ?, ?)",
                [(newsletter_id, event_id, pos) for pos, event_id in enumerate(event_ids)],
            )
            await db.commit()
            newsletter = await self._load(db, newsletter_id)

        logger.info(
            "newsletter_stored",
            user_id=user_id,
            newsletter_id=newsletter_id,
            events=len(event_ids),
        )
        return newsletter

    async def get_newsletter(self, user_id: int, newsletter_id: int) -> Newsletter | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            newsletter = await self._load(db, newsletter_id)
        if newsletter is None or newsletter.user_id != user_id:
            return None
        return newsletter

    async def list_newsletters(self, user_id: int) -> list[Newsletter]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id FROM newsletters WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            ids = [row["id"] for row in await cursor.fetchall()]
            newsletters = [await self._load(db, newsletter_id) for newsletter_id in ids]
        return [n for n in newsletters if n is not None]

    async def mark_sent(self, newsletter_id: int, sent_at: datetime) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE newsletters SET sent_at = ? WHERE id = ?",
                (sent_at.isoformat(), newsletter_id),
            )
            await db.commit()

    @staticmethod
    async def _load(db: aiosqlite.Connection, newsletter_id: int) -> Newsletter | None:
        cursor = await db.execute(
            f"SELECT {_NEWSLETTER_COLUMNS} FROM newsletters WHERE id = ?", (newsletter_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        cursor = await db.execute(_SELECT_ENTRIES_SQL, (newsletter_id,))
        entries = []
        for entry_row in await cursor.fetchall():
            data = dict(entry_row)
            position = data.pop("position")
            entries.append(NewsletterEntry(position=position, event=StoredEvent(**data)))
        return Newsletter(**dict(row), entries=entries)

    def get_provider_name(self) -> str:
        return "sqlite_newsletters"
