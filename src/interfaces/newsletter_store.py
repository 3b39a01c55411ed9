"""Abstract base class for newsletter storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.models.newsletter import Newsletter


class INewsletterStore(ABC):
    """Contract for rendered newsletters and their ordered event references."""

    @abstractmethod
    async def count_for_user(self, user_id: int) -> int:
        """Return how many newsletters exist for the user."""

    @abstractmethod
    async def create_newsletter(
        self,
        user_id: int,
        subject: str,
        html_content: str,
        event_ids: list[int],
    ) -> Newsletter:
        """Persist a newsletter.

        Parameters
        ----------
        event_ids:
            Event references in display order.  Positions are stored so
            :meth:`get_newsletter` returns entries in the same order.
        """

    @abstractmethod
    async def get_newsletter(self, user_id: int, newsletter_id: int) -> Newsletter | None:
        """Return one of the user's newsletters with its entries, or ``None``."""

    @abstractmethod
    async def list_newsletters(self, user_id: int) -> list[Newsletter]:
        """Return the user's newsletters, newest first, with entries."""

    @abstractmethod
    async def mark_sent(self, newsletter_id: int, sent_at: datetime) -> None:
        """Stamp ``sent_at``."""
