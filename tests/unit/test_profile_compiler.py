"""Unit tests for compiling the effective profile from exclusion rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.config.limits import DiscoveryLimits
from src.models.user import ExclusionType
from src.services.profile_compiler import compile_effective_profile, event_rule_phrase
from src.utils.errors import PreconditionError

BASE = "Loves jazz and soul music in New York."


class TestCompileEffectiveProfile:
    def test_no_rules_returns_base_unchanged(self) -> None:
        assert compile_effective_profile(BASE, []) == BASE

    @pytest.mark.parametrize("profile", [None, "", "   "])
    def test_missing_profile_raises(self, profile: str | None) -> None:
        with pytest.raises(PreconditionError, match="User profile not available"):
            compile_effective_profile(profile, [])

    def test_hard_rules_become_exclusion_lines(self, make_rule) -> None:
        rules = [
            make_rule(ExclusionType.ORGANIZER, "Live Nation"),
            make_rule(ExclusionType.ARTIST, "DJ Loud"),
            make_rule(ExclusionType.ARTIST, "The Shouters"),
            make_rule(ExclusionType.VENUE, "Arena X"),
        ]
        result = compile_effective_profile(BASE, rules)

        assert result.startswith(BASE)
        assert "EXCLUSIONS (the user explicitly dislikes these):" in result
        assert "- Exclude any event by these organizers: Live Nation" in result
        assert "- Exclude any event by these artists: DJ Loud, The Shouters" in result
        assert "- Exclude any event by these venues: Arena X" in result
        assert "disliked these events" not in result

    def test_event_rules_become_soft_penalty(self, make_rule) -> None:
        rules = [make_rule(ExclusionType.EVENT, "Karaoke Night|Bar 9|2026-04-01")]
        result = compile_effective_profile(BASE, rules)

        assert '"Karaoke Night"' in result
        assert "Bar 9" not in result
        assert "reduce the score by 15-20 points" in result
        assert "Do not exclude them entirely." in result

    def test_only_most_recent_event_rules_are_used(self, make_rule) -> None:
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        rules = [
            make_rule(
                ExclusionType.EVENT,
                f"Event {i}|meta",
                created_at=start + timedelta(days=i),
            )
            for i in range(20)
        ]
        result = compile_effective_profile(BASE, rules, DiscoveryLimits())

        # Newest 15: Event 5 .. Event 19.
        for i in range(5, 20):
            assert f'"Event {i}"' in result
        for i in range(5):
            assert f'"Event {i}"' not in result
        # Newest first.
        assert result.index('"Event 19"') < result.index('"Event 5"')

    def test_blank_rule_values_add_nothing(self, make_rule) -> None:
        rules = [make_rule(ExclusionType.EVENT, " |meta")]
        assert compile_effective_profile(BASE, rules) == BASE


class TestEventRulePhrase:
    def test_text_before_pipe(self) -> None:
        assert event_rule_phrase("Title|venue|date") == "Title"

    def test_no_pipe(self) -> None:
        assert event_rule_phrase("  Just a title ") == "Just a title"
