"""SQLite-backed user, preference and profile store.

Preference lists are stored as JSON arrays in TEXT columns, one row per
user in ``preferences``.  Every write that changes what the profile is
derived from (city, preferences) sets ``users.profile_dirty`` so the next
discovery run regenerates the profile first.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.user_store import IUserStore
from src.models.user import User, UserPreferences
from src.utils.errors import NotFoundError, PreconditionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS users (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    email          TEXT    NOT NULL UNIQUE,
    name           TEXT,
    city           TEXT,
    profile        TEXT,
    profile_dirty  INTEGER NOT NULL DEFAULT 1,
    created_at     TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
    """\
CREATE TABLE IF NOT EXISTS preferences (
    user_id      INTEGER PRIMARY KEY,
    interests    TEXT    NOT NULL DEFAULT '[]',
    genres       TEXT    NOT NULL DEFAULT '[]',
    event_types  TEXT    NOT NULL DEFAULT '[]',
    artists      TEXT    NOT NULL DEFAULT '[]',
    venues       TEXT    NOT NULL DEFAULT '[]',
    updated_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
]

_SELECT_USER_SQL = """\
SELECT u.id, u.email, u.name, u.city, u.profile, u.profile_dirty, u.created_at,
       p.user_id IS NOT NULL AS has_preferences
FROM users u
LEFT JOIN preferences p ON p.user_id = u.id
"""

_UPSERT_PREFERENCES_SQL = """\
INSERT INTO preferences (user_id, interests, genres, event_types, artists, venues)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(user_id)
DO UPDATE SET interests   = excluded.interests,
              genres      = excluded.genres,
              event_types = excluded.event_types,
              artists     = excluded.artists,
              venues      = excluded.venues,
              updated_at  = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_PREFERENCE_FIELDS = ("interests", "genres", "event_types", "artists", "venues")


def _parse_list(raw: str | None) -> list[str]:
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError:
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


def _row_to_user(row: aiosqlite.Row) -> User:
    data = dict(row)
    data["profile_dirty"] = bool(data["profile_dirty"])
    data["has_preferences"] = bool(data["has_preferences"])
    return User(**data)


class SQLiteUserStore(IUserStore):
    """SQLite-backed user and preference persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the users and preferences tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("users_db_initialized", path=str(self._db_path))

    async def create_user(self, email: str, name: str | None = None) -> User:
        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                cursor = await db.execute(
                    "INSERT INTO users (email, name) VALUES (?, ?)", (email, name)
                )
            except sqlite3.IntegrityError as exc:
                raise PreconditionError(
                    message="A user with this email already exists",
                    provider_name="sqlite",
                ) from exc
            user_id = cursor.lastrowid
            await db.commit()

        logger.info("user_created", user_id=user_id)
        return await self._require_user(user_id)

    async def get_user(self, user_id: int) -> User | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_USER_SQL + "WHERE u.id = ?", (user_id,))
            row = await cursor.fetchone()
        return _row_to_user(row) if row else None

    async def list_newsletter_recipients(self) -> list[User]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                _SELECT_USER_SQL
                + "WHERE u.city IS NOT NULL AND TRIM(u.city) != '' "
                "AND p.user_id IS NOT NULL ORDER BY u.id"
            )
            rows = await cursor.fetchall()
        return [_row_to_user(r) for r in rows]

    async def set_city(self, user_id: int, city: str) -> User:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE users SET city = ?, profile_dirty = 1 WHERE id = ?",
                (city, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(message="User not found", provider_name="sqlite")
            await db.commit()
        return await self._require_user(user_id)

    async def get_preferences(self, user_id: int) -> UserPreferences:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {', '.join(_PREFERENCE_FIELDS)} FROM preferences WHERE user_id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return UserPreferences()
        return UserPreferences(**{f: _parse_list(row[f]) for f in _PREFERENCE_FIELDS})

    async def set_preferences(
        self, user_id: int, preferences: UserPreferences
    ) -> UserPreferences:
        await self._require_user(user_id)
        params = (user_id,) + tuple(
            json.dumps(getattr(preferences, f)) for f in _PREFERENCE_FIELDS
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_UPSERT_PREFERENCES_SQL, params)
            await db.execute("UPDATE users SET profile_dirty = 1 WHERE id = ?", (user_id,))
            await db.commit()
        logger.info("preferences_saved", user_id=user_id)
        return preferences

    async def save_profile(self, user_id: int, profile: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE users SET profile = ?, profile_dirty = 0 WHERE id = ?",
                (profile, user_id),
            )
            await db.commit()

    async def mark_profile_dirty(self, user_id: int) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("UPDATE users SET profile_dirty = 1 WHERE id = ?", (user_id,))
            await db.commit()

    async def _require_user(self, user_id: int) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(message="User not found", provider_name="sqlite")
        return user

    def get_provider_name(self) -> str:
        return "sqlite_users"
