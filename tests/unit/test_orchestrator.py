"""Unit tests for the discovery pipeline, wired to real stores and a scripted endpoint."""

from __future__ import annotations

import json
from datetime import date
from typing import Any

import pytest
import structlog

from src.config.limits import DiscoveryLimits
from src.models.user import ExclusionType, UserPreferences
from src.pipeline.orchestrator import EventDiscoveryPipeline
from src.services.event_discovery import EventDiscoveryClient
from src.services.event_persistence import EventPersistenceService
from src.services.profile_service import ProfileService
from src.utils.errors import (
    DiscoveryAuthError,
    DiscoveryNetworkError,
    DiscoveryQuotaError,
    NoEventsFoundError,
    NotFoundError,
    PreconditionError,
)

RUN_DATE = date(2026, 5, 1)


def _events_json(*events: dict[str, Any]) -> str:
    return json.dumps({"events": list(events)})


def _event(title: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "title": title,
        "date": "2026-05-10",
        "location": "Blue Note, New York",
        "sourceUrl": f"https://example.com/{title.replace(' ', '-').lower()}",
        "score": 70,
    }
    payload.update(extra)
    return payload


_CITY_STEPS = {
    "You are a planning assistant": "plan",
    "You are extracting raw event data": "task",
    "You are an event scoring": "merge",
    "You are repairing": "repair",
}

# Every city-wide run below stays under the expansion threshold.
CITY_RUN = ["city:plan", "city:task", "city:merge", "city:repair"]


class ScriptedEndpoint:
    """Routes ``complete`` calls by prompt shape and records them.

    City-wide planning gets one task back; the search, merge and repair
    steps all answer with *city*.  An exception in *city* is raised at
    planning.
    """

    def __init__(
        self,
        city: str | Exception = _events_json(),
        sources: dict[str, str | Exception] | None = None,
        profile: str | Exception = "Enjoys live jazz in small clubs.",
    ) -> None:
        self.city = city
        self.sources = sources or {}
        self.profile = profile
        self.calls: list[str] = []
        self.prompts: dict[str, str] = {}
        self.contexts: list[dict[str, Any]] = []

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        self.contexts.append(structlog.contextvars.get_contextvars())
        if user_prompt.startswith("I live in"):
            self.calls.append("profile")
            return self._answer(self.profile)
        if "Source URL: " in user_prompt:
            url = user_prompt.split("Source URL: ", 1)[1].split("\n", 1)[0].strip()
            self.calls.append(f"source:{url}")
            return self._answer(self.sources.get(url, _events_json()))
        step = next(s for prefix, s in _CITY_STEPS.items() if system_prompt.startswith(prefix))
        self.calls.append(f"city:{step}")
        self.prompts.setdefault(step, user_prompt)
        if step == "plan" and not isinstance(self.city, Exception):
            return json.dumps({"tasks": ["New York club listings"]})
        return self._answer(self.city)

    @staticmethod
    def _answer(value: str | Exception) -> str:
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def build_pipeline(stores: dict[str, Any], mock_search_provider):
    def _build(endpoint: ScriptedEndpoint, limits: DiscoveryLimits | None = None):
        mock_search_provider.complete.side_effect = endpoint.complete
        limits = limits or DiscoveryLimits()
        profile_service = ProfileService(
            stores["users"], stores["sources"], mock_search_provider
        )
        return EventDiscoveryPipeline(
            user_store=stores["users"],
            exclusion_store=stores["exclusions"],
            profile_service=profile_service,
            discovery_client=EventDiscoveryClient(
                mock_search_provider, limits, today=lambda: RUN_DATE
            ),
            persistence_service=EventPersistenceService(stores["events"], limits),
            limits=limits,
            today=lambda: RUN_DATE,
        )

    return _build


async def _user(stores: dict[str, Any], city: str | None = "New York") -> int:
    users = stores["users"]
    user = await users.create_user("ana@example.com", "Ana")
    if city:
        await users.set_city(user.id, city)
    await users.set_preferences(user.id, UserPreferences(genres=["jazz"]))
    return user.id


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_unknown_user(self, build_pipeline) -> None:
        pipeline = build_pipeline(ScriptedEndpoint())
        with pytest.raises(NotFoundError):
            await pipeline.discover_for_user(404)

    @pytest.mark.asyncio
    async def test_no_city(self, build_pipeline, stores: dict[str, Any]) -> None:
        endpoint = ScriptedEndpoint()
        user_id = await _user(stores, city=None)
        pipeline = build_pipeline(endpoint)

        with pytest.raises(PreconditionError, match="User city not set"):
            await pipeline.discover_for_user(user_id)
        assert endpoint.calls == []

    @pytest.mark.asyncio
    async def test_no_profile_after_failed_regeneration(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(profile=DiscoveryNetworkError("No response"))
        user_id = await _user(stores)

        with pytest.raises(PreconditionError, match="User profile not available"):
            await build_pipeline(endpoint).discover_for_user(user_id)
        assert endpoint.calls == ["profile"]


class TestProfileRefresh:
    @pytest.mark.asyncio
    async def test_dirty_profile_regenerated_before_search(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(city=_events_json(_event("Jazz Night")))
        user_id = await _user(stores)

        await build_pipeline(endpoint).discover_for_user(user_id)

        assert endpoint.calls == ["profile", *CITY_RUN]
        user = await stores["users"].get_user(user_id)
        assert user.profile == "Enjoys live jazz in small clubs."
        assert user.profile_dirty is False

    @pytest.mark.asyncio
    async def test_clean_profile_is_reused(self, build_pipeline, stores: dict[str, Any]) -> None:
        endpoint = ScriptedEndpoint(city=_events_json(_event("Jazz Night")))
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Existing profile")

        await build_pipeline(endpoint).discover_for_user(user_id)

        assert endpoint.calls == CITY_RUN

    @pytest.mark.asyncio
    async def test_stale_profile_used_when_regeneration_fails(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(
            city=_events_json(_event("Jazz Night")),
            profile=DiscoveryQuotaError("Quota exceeded"),
        )
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Old but usable")
        await stores["users"].mark_profile_dirty(user_id)

        result = await build_pipeline(endpoint).discover_for_user(user_id)

        assert [e.title for e in result.events] == ["Jazz Night"]
        city_prompt = endpoint.prompts["plan"]
        assert "Old but usable" in city_prompt


class TestDiscoveryRun:
    @pytest.mark.asyncio
    async def test_full_run_persists_ranked_selection(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(
            city=_events_json(
                _event("Low", score=40),
                _event("High", score=95),
                _event("Jazz Night", score=80),
                _event("  JAZZ   night ", score=99),
                _event("Today", date="2026-05-01"),
                _event("No Location", location=""),
            )
        )
        user_id = await _user(stores)

        result = await build_pipeline(endpoint).discover_for_user(user_id)

        assert [e.title for e in result.events] == ["High", "Jazz Night", "Low"]
        assert all(e.id for e in result.events)
        assert result.candidate_count == 6
        assert result.validation.not_in_future == 1
        assert result.validation.missing_location == 1
        raw_dump = result.raw_responses[0]
        assert raw_dump.startswith("=== PLANNING ===")
        assert f"=== MERGE & SCORE ===\n{endpoint.city}" in raw_dump
        assert await stores["events"].count() == 3

    @pytest.mark.asyncio
    async def test_exclusions_filter_and_shape_prompt(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(
            city=_events_json(
                _event("Keep", location="Smalls, 183 W 10th St, New York"),
                _event("Drop", venue="The Blue Note Jazz Club"),
            )
        )
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")
        await stores["exclusions"].add_exclusion(user_id, ExclusionType.VENUE, "Blue Note")

        result = await build_pipeline(endpoint).discover_for_user(user_id)

        assert [e.title for e in result.events] == ["Keep"]
        city_prompt = endpoint.prompts["plan"]
        assert "- Exclude any event by these venues: Blue Note" in city_prompt

    @pytest.mark.asyncio
    async def test_failing_source_does_not_abort_run(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")
        await stores["sources"].add_source(user_id, "https://down.example/cal")
        await stores["sources"].add_source(user_id, "https://up.example/cal", "Up")
        endpoint = ScriptedEndpoint(
            city=_events_json(_event("City Pick", score=60)),
            sources={
                "https://down.example/cal": DiscoveryNetworkError("No response"),
                "https://up.example/cal": _events_json(_event("Source Pick", score=None)),
            },
        )

        result = await build_pipeline(endpoint).discover_for_user(user_id)

        assert {e.title for e in result.events} == {"City Pick", "Source Pick"}
        source_pick = next(e for e in result.events if e.title == "Source Pick")
        assert source_pick.score == 75
        assert endpoint.calls[:4] == CITY_RUN
        assert set(endpoint.calls[4:]) == {
            "source:https://down.example/cal",
            "source:https://up.example/cal",
        }

    @pytest.mark.asyncio
    async def test_city_wide_failure_aborts_run(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")
        endpoint = ScriptedEndpoint(city=DiscoveryQuotaError("Quota exceeded"))

        with pytest.raises(DiscoveryQuotaError):
            await build_pipeline(endpoint).discover_for_user(user_id)
        assert await stores["events"].count() == 0

    @pytest.mark.asyncio
    async def test_city_wide_auth_failure_wins_over_failing_source(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")
        await stores["sources"].add_source(user_id, "https://down.example/cal")
        endpoint = ScriptedEndpoint(
            city=DiscoveryAuthError("Invalid Perplexity API key (401)"),
            sources={"https://down.example/cal": DiscoveryNetworkError("No response")},
        )

        with pytest.raises(DiscoveryAuthError):
            await build_pipeline(endpoint).discover_for_user(user_id)
        assert await stores["events"].count() == 0
        assert "city:plan" in endpoint.calls

    @pytest.mark.asyncio
    async def test_nothing_left_raises_no_events(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")
        endpoint = ScriptedEndpoint(city=_events_json(_event("Past", date="2026-04-20")))

        with pytest.raises(NoEventsFoundError):
            await build_pipeline(endpoint).discover_for_user(user_id)

    @pytest.mark.asyncio
    async def test_user_id_bound_to_log_context(
        self, build_pipeline, stores: dict[str, Any]
    ) -> None:
        endpoint = ScriptedEndpoint(city=_events_json(_event("Jazz Night")))
        user_id = await _user(stores)
        await stores["users"].save_profile(user_id, "Profile")

        await build_pipeline(endpoint).discover_for_user(user_id)

        assert endpoint.contexts[0].get("user_id") == user_id
        assert "user_id" not in structlog.contextvars.get_contextvars()
