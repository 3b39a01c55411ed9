"""Upsert of selected candidates into the event table.

Each candidate is reconciled independently against an existing row with
the same (title, date, location):

- found: each mergeable field takes the new value when the candidate
  supplies one, otherwise the stored value is kept.  A missing new value
  never erases stored data.
- not found: a new row is inserted, absent fields stored as NULL.

Candidates are processed concurrently under a small semaphore.  There is no
cross-candidate atomicity; a crash mid-batch leaves a partial update that
the next run repairs through the same logic.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from src.config.limits import DiscoveryLimits
from src.interfaces.event_store import IEventStore
from src.models.event import CandidateEvent, StoredEvent
from src.utils.concurrency import throttled_gather
from src.utils.logging import get_logger
from src.utils.text_normalizer import clean_optional

# Fields that re-discovery may overwrite.  Identity fields are not listed.
MERGEABLE_FIELDS = (
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


def round_score(score: float | None) -> int | None:
    """Round half up to the nearest integer (``72.5`` -> ``73``)."""
    if score is None:
        return None
    return int(math.floor(score + 0.5))


def candidate_values(candidate: CandidateEvent) -> dict[str, Any]:
    """Column values supplied by *candidate*; absent ones map to ``None``."""
    values: dict[str, Any] = {
        "title": candidate.title.strip(),
        "event_date": candidate.event_date,
        "location": candidate.location.strip(),
        "score": round_score(candidate.score),
    }
    for field in MERGEABLE_FIELDS:
        if field != "score":
            values[field] = clean_optional(getattr(candidate, field))
    return values


class EventPersistenceService:
    """Reconciles the final selection with the persisted event table."""

    def __init__(self, event_store: IEventStore, limits: DiscoveryLimits | None = None) -> None:
        self._store = event_store
        self._limits = limits or DiscoveryLimits()
        self._logger = get_logger(__name__)

    async def upsert_events(self, candidates: Sequence[CandidateEvent]) -> list[StoredEvent]:
        """Upsert every candidate and return the rows in input order.

        Store errors propagate to the caller.
        """
        results = await throttled_gather(
            [self.upsert_event(c) for c in candidates],
            limit=self._limits.upsert_concurrency,
            return_exceptions=False,
        )
        self._logger.info("events_upserted", count=len(results))
        return list(results)

    async def upsert_event(self, candidate: CandidateEvent) -> StoredEvent:
        if candidate.event_date is None:
            msg = f"Cannot persist event without a date: {candidate.title!r}"
            raise ValueError(msg)

        values = candidate_values(candidate)
        existing = await self._store.find_by_identity(
            values["title"], values["event_date"], values["location"]
        )
        if existing is None:
            return await self._store.create(values)

        updates = {f: values[f] for f in MERGEABLE_FIELDS if values[f] is not None}
        return await self._store.update(existing.id, updates)
