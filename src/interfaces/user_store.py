"""Abstract base class for user, preference and profile storage.

Profile *generation* is not part of this contract; it lives in
:class:`src.services.profile_service.ProfileService`, which reads
preferences from this store and writes the synthesized text back with
:meth:`IUserStore.save_profile`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.user import User, UserPreferences


class IUserStore(ABC):
    """Contract for user records, their preferences and cached profile text."""

    @abstractmethod
    async def create_user(self, email: str, name: str | None = None) -> User:
        """Create a user.

        Raises
        ------
        src.utils.errors.PreconditionError
            If *email* is already registered.
        """

    @abstractmethod
    async def get_user(self, user_id: int) -> User | None:
        """Return the user or ``None``."""

    @abstractmethod
    async def list_newsletter_recipients(self) -> list[User]:
        """Return every user with a city and saved preferences, oldest first."""

    @abstractmethod
    async def set_city(self, user_id: int, city: str) -> User:
        """Set the user's city and mark the profile dirty."""

    @abstractmethod
    async def get_preferences(self, user_id: int) -> UserPreferences:
        """Return saved preferences (empty lists when none were saved)."""

    @abstractmethod
    async def set_preferences(self, user_id: int, preferences: UserPreferences) -> UserPreferences:
        """Replace the user's preferences and mark the profile dirty."""

    @abstractmethod
    async def save_profile(self, user_id: int, profile: str) -> None:
        """Store freshly generated profile text and clear the dirty flag."""

    @abstractmethod
    async def mark_profile_dirty(self, user_id: int) -> None:
        """Flag the stored profile as stale."""
