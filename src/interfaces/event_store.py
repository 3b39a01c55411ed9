"""Abstract base class for the persisted event table.

The upsert stage of the discovery pipeline needs exactly three operations:
find by the (title, date, location) identity, create, and update.  Reads by
id are used by the newsletter assembler.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from src.models.event import StoredEvent


class IEventStore(ABC):
    """Contract for event persistence backends."""

    @abstractmethod
    async def find_by_identity(
        self, title: str, event_date: date, location: str
    ) -> StoredEvent | None:
        """Return the stored event matching *exactly* on title, date and location."""

    @abstractmethod
    async def create(self, values: dict[str, Any]) -> StoredEvent:
        """Insert a new event row.

        Parameters
        ----------
        values:
            Column values keyed by :class:`StoredEvent` field name.  Must
            contain ``title``, ``event_date`` and ``location``; any other
            field absent from the mapping is stored as NULL.
        """

    @abstractmethod
    async def update(self, event_id: int, values: dict[str, Any]) -> StoredEvent:
        """Overwrite the given columns of an existing row and return it.

        Raises
        ------
        src.utils.errors.NotFoundError
            If no row has *event_id*.
        """

    @abstractmethod
    async def get_many(self, event_ids: list[int]) -> list[StoredEvent]:
        """Return the events with the given ids, in the order of *event_ids*.

        Unknown ids are skipped.
        """
