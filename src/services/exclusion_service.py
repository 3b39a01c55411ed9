"""Validation layer in front of the exclusion rule store."""

from __future__ import annotations

from src.interfaces.exclusion_store import IExclusionStore
from src.models.user import ExclusionRule, ExclusionType
from src.utils.errors import NotFoundError, PreconditionError

MAX_VALUE_LENGTH = 500


class ExclusionService:
    """User-facing management of exclusion rules ("hates")."""

    def __init__(self, exclusion_store: IExclusionStore) -> None:
        self._store = exclusion_store

    async def list_exclusions(self, user_id: int) -> list[ExclusionRule]:
        return await self._store.list_exclusions(user_id)

    async def add_exclusion(self, user_id: int, rule_type: str, value: str) -> ExclusionRule:
        """Add a rule; a duplicate returns the existing rule unchanged."""
        try:
            parsed_type = ExclusionType(rule_type)
        except ValueError as exc:
            allowed = ", ".join(t.value for t in ExclusionType)
            raise PreconditionError(f"Invalid type. Must be one of: {allowed}") from exc

        value = (value or "").strip()
        if not value:
            raise PreconditionError("Value is required")
        if len(value) > MAX_VALUE_LENGTH:
            raise PreconditionError(f"Value must be at most {MAX_VALUE_LENGTH} characters")

        return await self._store.add_exclusion(user_id, parsed_type, value)

    async def delete_exclusion(self, user_id: int, rule_id: int) -> None:
        if not await self._store.delete_exclusion(user_id, rule_id):
            raise NotFoundError("Hate not found")

    async def delete_all(self, user_id: int) -> int:
        return await self._store.delete_all(user_id)
