"""Unit tests for ProfileService: prompt shape, regeneration and dirty marking."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from src.models.user import EventSource, UserPreferences
from src.services.profile_service import ProfileService, build_profile_prompt
from src.utils.errors import (
    DiscoveryNetworkError,
    DuplicateSourceError,
    NotFoundError,
    PreconditionError,
)


def _source(n: int) -> EventSource:
    return EventSource(
        id=n,
        user_id=1,
        url=f"https://venue{n}.example/calendar",
        created_at=datetime(2026, 4, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def service(stores: dict[str, Any], mock_search_provider) -> ProfileService:
    return ProfileService(
        stores["users"], stores["sources"], mock_search_provider, profile_model="sonar"
    )


async def _ready_user(stores: dict[str, Any]) -> int:
    users = stores["users"]
    user = await users.create_user("ana@example.com", "Ana")
    await users.set_city(user.id, "New York")
    await users.set_preferences(user.id, UserPreferences(genres=["jazz"], artists=["Trio A"]))
    return user.id


class TestBuildProfilePrompt:
    def test_empty_lists_read_none_specified(self) -> None:
        prompt = build_profile_prompt("Lisbon", UserPreferences(), [])
        assert prompt.startswith("I live in Lisbon.")
        assert "My interests: none specified" in prompt
        assert "Venues in Lisbon where I like to go:\nnone specified" in prompt
        assert "Direct links to event pages I follow:\nnone specified" in prompt

    def test_genres_and_event_types_are_combined(self) -> None:
        prefs = UserPreferences(genres=["jazz", "soul"], event_types=["concert"])
        prompt = build_profile_prompt("NY", prefs, [])
        assert "My preferred genres and event types: jazz, soul, concert" in prompt

    def test_list_limits(self) -> None:
        prefs = UserPreferences(
            interests=[f"i{n}" for n in range(25)],
            venues=[f"v{n}" for n in range(20)],
        )
        prompt = build_profile_prompt("NY", prefs, [_source(n) for n in range(12)])

        assert "i19" in prompt and "i20" not in prompt
        assert "v14" in prompt and "v15" not in prompt
        assert "venue9.example" in prompt and "venue10.example" not in prompt


class TestRegenerateProfile:
    @pytest.mark.asyncio
    async def test_generates_and_stores_clean_text(
        self, service: ProfileService, stores: dict[str, Any], mock_search_provider
    ) -> None:
        user_id = await _ready_user(stores)
        mock_search_provider.complete.return_value = "**Ana** loves live jazz [1] ."

        profile = await service.regenerate_profile(user_id)

        assert profile == "Ana loves live jazz."
        stored = await stores["users"].get_user(user_id)
        assert stored.profile == profile
        assert stored.profile_dirty is False
        kwargs = mock_search_provider.complete.call_args.kwargs
        assert kwargs == {"model": "sonar", "temperature": 0.7}

    @pytest.mark.asyncio
    async def test_skipped_without_city(
        self, service: ProfileService, stores: dict[str, Any], mock_search_provider
    ) -> None:
        user = await stores["users"].create_user("ana@example.com")
        await stores["users"].set_preferences(user.id, UserPreferences(genres=["jazz"]))

        assert await service.regenerate_profile(user.id) is None
        mock_search_provider.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_skipped_without_preferences(
        self, service: ProfileService, stores: dict[str, Any], mock_search_provider
    ) -> None:
        user = await stores["users"].create_user("ana@example.com")
        await stores["users"].set_city(user.id, "Paris")

        assert await service.regenerate_profile(user.id) is None
        mock_search_provider.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_endpoint_failure_keeps_old_profile(
        self, service: ProfileService, stores: dict[str, Any], mock_search_provider
    ) -> None:
        user_id = await _ready_user(stores)
        await stores["users"].save_profile(user_id, "Old profile")
        await stores["users"].mark_profile_dirty(user_id)
        mock_search_provider.complete.side_effect = DiscoveryNetworkError("No response")

        assert await service.regenerate_profile(user_id) is None

        stored = await stores["users"].get_user(user_id)
        assert stored.profile == "Old profile"
        assert stored.profile_dirty is True

    @pytest.mark.asyncio
    async def test_empty_answer_is_not_saved(
        self, service: ProfileService, stores: dict[str, Any], mock_search_provider
    ) -> None:
        user_id = await _ready_user(stores)
        mock_search_provider.complete.return_value = "```\n```"
        assert await service.regenerate_profile(user_id) is None
        assert (await stores["users"].get_user(user_id)).profile is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, service: ProfileService) -> None:
        with pytest.raises(NotFoundError, match="User not found"):
            await service.regenerate_profile(404)


class TestProfileInputs:
    @pytest.mark.asyncio
    async def test_blank_city_rejected(self, service: ProfileService, stores: dict[str, Any]) -> None:
        user = await stores["users"].create_user("ana@example.com")
        with pytest.raises(PreconditionError, match="City must not be empty"):
            await service.set_city(user.id, "   ")

    @pytest.mark.asyncio
    async def test_city_is_trimmed(self, service: ProfileService, stores: dict[str, Any]) -> None:
        user = await stores["users"].create_user("ana@example.com")
        updated = await service.set_city(user.id, "  Berlin ")
        assert updated.city == "Berlin"

    @pytest.mark.asyncio
    async def test_preferences_are_cleaned_and_deduplicated(
        self, service: ProfileService, stores: dict[str, Any]
    ) -> None:
        user = await stores["users"].create_user("ana@example.com")
        saved = await service.set_preferences(
            user.id, UserPreferences(genres=[" Jazz", "jazz", "", "Soul "])
        )
        assert saved.genres == ["Jazz", "Soul"]

    @pytest.mark.asyncio
    async def test_source_changes_mark_profile_dirty(
        self, service: ProfileService, stores: dict[str, Any]
    ) -> None:
        user_id = await _ready_user(stores)
        await stores["users"].save_profile(user_id, "Clean")

        source = await service.add_source(user_id, " https://venue.example/cal ", " ")
        assert source.url == "https://venue.example/cal"
        assert source.name is None
        assert await service.is_profile_dirty(user_id) is True

        await stores["users"].save_profile(user_id, "Clean again")
        await service.delete_source(user_id, source.id)
        assert await service.is_profile_dirty(user_id) is True
        assert await service.list_sources(user_id) == []

    @pytest.mark.asyncio
    async def test_duplicate_source(self, service: ProfileService, stores: dict[str, Any]) -> None:
        user_id = await _ready_user(stores)
        await service.add_source(user_id, "https://venue.example/cal")
        with pytest.raises(DuplicateSourceError):
            await service.add_source(user_id, "https://venue.example/cal")

    @pytest.mark.asyncio
    async def test_delete_unknown_source(self, service: ProfileService) -> None:
        with pytest.raises(NotFoundError, match="Event source not found"):
            await service.delete_source(1, 999)

    @pytest.mark.asyncio
    async def test_add_source_for_unknown_user(self, service: ProfileService) -> None:
        with pytest.raises(NotFoundError):
            await service.add_source(404, "https://venue.example/cal")
