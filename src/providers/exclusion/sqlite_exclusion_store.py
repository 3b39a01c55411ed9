"""SQLite-backed exclusion rule ("hate") store.

Rules are unique per (user_id, type, value); inserting a duplicate is a
no-op that returns the existing row.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.exclusion_store import IExclusionStore
from src.models.user import ExclusionRule, ExclusionType

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS exclusion_rules (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL,
    type        TEXT    NOT NULL,
    value       TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(user_id, type, value)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_exclusions_user ON exclusion_rules(user_id);",
]

_INSERT_SQL = """\
INSERT INTO exclusion_rules (user_id, type, value)
VALUES (?, ?, ?)
ON CONFLICT(user_id, type, value) DO NOTHING;
"""

_SELECT_ONE_SQL = """\
SELECT id, user_id, type, value, created_at
FROM exclusion_rules
WHERE user_id = ? AND type = ? AND value = ?;
"""


class SQLiteExclusionStore(IExclusionStore):
    """SQLite-backed exclusion rule persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the exclusion_rules table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("exclusions_db_initialized", path=str(self._db_path))

    async def list_exclusions(self, user_id: int) -> list[ExclusionRule]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, user_id, type, value, created_at FROM exclusion_rules "
                "WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [ExclusionRule(**dict(r)) for r in rows]

    async def add_exclusion(
        self, user_id: int, rule_type: ExclusionType, value: str
    ) -> ExclusionRule:
        rule_type = ExclusionType(rule_type)
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_INSERT_SQL, (user_id, rule_type.value, value))
            inserted = cursor.rowcount > 0
            await db.commit()
            cursor = await db.execute(_SELECT_ONE_SQL, (user_id, rule_type.value, value))
            row = await cursor.fetchone()

        logger.info(
            "exclusion_added" if inserted else "exclusion_exists",
            user_id=user_id,
            type=rule_type.value,
        )
        return ExclusionRule(**dict(row))

    async def delete_exclusion(self, user_id: int, rule_id: int) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM exclusion_rules WHERE id = ? AND user_id = ?",
                (rule_id, user_id),
            )
            await db.commit()
        return cursor.rowcount > 0

    async def delete_all(self, user_id: int) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM exclusion_rules WHERE user_id = ?", (user_id,)
            )
            await db.commit()
        logger.info("exclusions_cleared", user_id=user_id, count=cursor.rowcount)
        return cursor.rowcount

    def get_provider_name(self) -> str:
        return "sqlite_exclusions"
