"""Unit tests for the Pydantic domain models."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from src.models.event import CandidateEvent, StoredEvent, ValidationReport, parse_event_date
from src.models.newsletter import Newsletter, NewsletterEntry
from src.models.pipeline import DiscoveryResult, RunStatus, UserRunOutcome, WeeklyRunSummary
from src.models.user import ExclusionRule, ExclusionType, UserPreferences


# ======================================================================
# CandidateEvent
# ======================================================================


class TestCandidateEvent:
    def test_accepts_camel_case_keys(self) -> None:
        event = CandidateEvent.model_validate(
            {
                "title": "Jazz Night",
                "date": "2026-05-08",
                "location": "Blue Note",
                "sourceUrl": "https://x.example",
                "imageUrl": "https://x.example/i.jpg",
            }
        )
        assert event.event_date == date(2026, 5, 8)
        assert event.source_url == "https://x.example"
        assert event.image_url == "https://x.example/i.jpg"

    def test_missing_required_fields_are_lenient(self) -> None:
        event = CandidateEvent.model_validate({"description": "Only a description"})
        assert event.title == ""
        assert event.location == ""
        assert event.source_url == ""
        assert event.event_date is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (87, 87.0),
            ("92", 92.0),
            ("85%", 85.0),
            (150, 100.0),
            (-3, 0.0),
            ("high", None),
            (True, None),
            (float("nan"), None),
            (None, None),
        ],
    )
    def test_score_coercion(self, raw, expected) -> None:
        assert CandidateEvent(score=raw).score == expected

    def test_artist_list_and_venue_object_are_flattened(self) -> None:
        event = CandidateEvent.model_validate(
            {"artist": ["A", " ", "B"], "venue": {"name": "Smalls"}, "time": 2000}
        )
        assert event.artist == "A, B"
        assert event.venue == "Smalls"
        assert event.time == "2000"

    def test_unknown_keys_ignored_and_frozen(self) -> None:
        event = CandidateEvent.model_validate({"title": "X", "ticketPrice": "$20"})
        with pytest.raises(ValidationError):
            event.title = "Y"  # type: ignore[misc]


class TestParseEventDate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2026-05-08", date(2026, 5, 8)),
            ("2026-05-08T20:00:00Z", date(2026, 5, 8)),
            ("2026-05-08 / 19:00", date(2026, 5, 8)),
            ("2026/05/08", date(2026, 5, 8)),
            ("08.05.2026", date(2026, 5, 8)),
            ("May 8, 2026", date(2026, 5, 8)),
            ("Sep 8, 2026", date(2026, 9, 8)),
            (datetime(2026, 5, 8, 23, 0), date(2026, 5, 8)),
            ("next Friday", None),
            ("", None),
            (20260508, None),
        ],
    )
    def test_formats(self, value, expected) -> None:
        assert parse_event_date(value) == expected


# ======================================================================
# Stored rows and results
# ======================================================================


class TestStoredModels:
    def test_stored_event_parses_sqlite_text(self) -> None:
        event = StoredEvent(
            id=1,
            title="Jazz Night",
            event_date="2026-05-08",
            location="Blue Note",
            created_at="2026-05-01T10:00:00.000Z",
        )
        assert event.event_date == date(2026, 5, 8)
        assert event.created_at.tzinfo is not None

    def test_exclusion_type_values(self) -> None:
        assert [t.value for t in ExclusionType] == ["organizer", "artist", "venue", "event"]
        rule = ExclusionRule(
            id=1, user_id=1, type="venue", value="Arena", created_at=datetime.now(timezone.utc)
        )
        assert rule.type is ExclusionType.VENUE

    def test_invalid_exclusion_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExclusionRule(
                id=1, user_id=1, type="genre", value="x", created_at=datetime.now(timezone.utc)
            )

    def test_preferences_is_empty(self) -> None:
        assert UserPreferences().is_empty() is True
        assert UserPreferences(venues=["Smalls"]).is_empty() is False

    def test_newsletter_is_sent(self, make_stored_event) -> None:
        newsletter = Newsletter(
            id=1,
            user_id=1,
            subject="S",
            html_content="<p/>",
            created_at=datetime.now(timezone.utc),
            entries=[NewsletterEntry(position=0, event=make_stored_event())],
        )
        assert newsletter.is_sent is False
        sent = newsletter.model_copy(update={"sent_at": datetime.now(timezone.utc)})
        assert sent.is_sent is True

    def test_newsletter_entry_position_non_negative(self, make_stored_event) -> None:
        with pytest.raises(ValidationError):
            NewsletterEntry(position=-1, event=make_stored_event())

    def test_validation_report_dropped(self) -> None:
        assert ValidationReport(total=10, kept=7).dropped == 3

    def test_discovery_result_raw_dump(self) -> None:
        result = DiscoveryResult(user_id=1, raw_responses=["a", "b"])
        assert result.raw_dump == "a\n\nb"

    def test_weekly_summary_counts(self) -> None:
        summary = WeeklyRunSummary(
            outcomes=[
                UserRunOutcome(user_id=1, status=RunStatus.SENT, newsletter_id=3),
                UserRunOutcome(user_id=2, status=RunStatus.FAILED, error="boom"),
                UserRunOutcome(user_id=3, status=RunStatus.SENT, newsletter_id=4),
            ]
        )
        assert summary.sent == 2
        assert summary.failed == 1
