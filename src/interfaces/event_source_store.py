"""Abstract base class for user-supplied event source storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.user import EventSource


class IEventSourceStore(ABC):
    """Contract for the per-user list of event listing URLs."""

    @abstractmethod
    async def list_sources(self, user_id: int) -> list[EventSource]:
        """Return the user's sources, newest first."""

    @abstractmethod
    async def add_source(self, user_id: int, url: str, name: str | None = None) -> EventSource:
        """Add a source URL.

        Raises
        ------
        src.utils.errors.DuplicateSourceError
            If the user already follows *url*.
        """

    @abstractmethod
    async def delete_source(self, user_id: int, source_id: int) -> bool:
        """Delete one of the user's sources. Returns ``False`` if not owned/absent."""
