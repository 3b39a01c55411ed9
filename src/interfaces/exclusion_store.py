"""Abstract base class for exclusion rule ("hate") storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.user import ExclusionRule, ExclusionType


class IExclusionStore(ABC):
    """Contract for the user-scoped exclusion rule store.

    The discovery pipeline only ever calls :meth:`list_exclusions`; the
    mutating methods back the user-facing management endpoints.
    """

    @abstractmethod
    async def list_exclusions(self, user_id: int) -> list[ExclusionRule]:
        """Return the user's rules, newest first."""

    @abstractmethod
    async def add_exclusion(
        self, user_id: int, rule_type: ExclusionType, value: str
    ) -> ExclusionRule:
        """Insert a rule, or return the existing one for a duplicate.

        Uniqueness is (user_id, type, value); adding a duplicate is a
        no-op, not an error.  *value* is stored as given (callers trim).
        """

    @abstractmethod
    async def delete_exclusion(self, user_id: int, rule_id: int) -> bool:
        """Delete one of the user's rules. Returns ``False`` if not owned/absent."""

    @abstractmethod
    async def delete_all(self, user_id: int) -> int:
        """Delete every rule of the user and return how many were removed."""
