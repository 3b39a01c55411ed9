"""Unit tests for candidate validation (required fields and date window)."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from src.services.event_filters import earliest_allowed_date, validate_candidates

RUN_DATE = date(2026, 5, 1)


class TestEarliestAllowedDate:
    def test_date_input(self) -> None:
        assert earliest_allowed_date(RUN_DATE) == RUN_DATE + timedelta(days=1)

    def test_datetime_late_in_day_is_truncated(self) -> None:
        run_at = datetime(2026, 5, 1, 23, 59, 59)
        assert earliest_allowed_date(run_at) == RUN_DATE + timedelta(days=1)


class TestValidateCandidates:
    def test_today_dropped_tomorrow_kept(self, make_candidate) -> None:
        today = make_candidate(title="Today Show", event_date=RUN_DATE)
        tomorrow = make_candidate(title="Tomorrow Show", event_date=RUN_DATE + timedelta(days=1))

        kept, report = validate_candidates([today, tomorrow], RUN_DATE)

        assert [c.title for c in kept] == ["Tomorrow Show"]
        assert report.not_in_future == 1
        assert report.dropped == 1

    def test_past_event_dropped(self, make_candidate) -> None:
        past = make_candidate(event_date=RUN_DATE - timedelta(days=3))
        kept, report = validate_candidates([past], RUN_DATE)
        assert kept == []
        assert report.not_in_future == 1

    def test_missing_fields_dropped_with_reason(self, make_candidate) -> None:
        candidates = [
            make_candidate(title="   "),
            make_candidate(location=""),
            make_candidate(source_url=" "),
            make_candidate(event_date=None),
            make_candidate(title="Good"),
        ]
        kept, report = validate_candidates(candidates, RUN_DATE)

        assert [c.title for c in kept] == ["Good"]
        assert report.total == 5
        assert report.kept == 1
        assert report.missing_title == 1
        assert report.missing_location == 1
        assert report.missing_source_url == 1
        assert report.missing_date == 1

    def test_first_failing_reason_is_counted_once(self, make_candidate) -> None:
        bad = make_candidate(title="", location="", event_date=RUN_DATE)
        _, report = validate_candidates([bad], RUN_DATE)
        assert report.missing_title == 1
        assert report.missing_location == 0
        assert report.not_in_future == 0

    def test_order_is_preserved(self, make_candidate) -> None:
        candidates = [make_candidate(title=f"E{i}") for i in range(5)]
        candidates.insert(2, make_candidate(title="Old", event_date=RUN_DATE))
        kept, _ = validate_candidates(candidates, RUN_DATE)
        assert [c.title for c in kept] == ["E0", "E1", "E2", "E3", "E4"]

    def test_survivors_satisfy_invariants(self, make_candidate) -> None:
        candidates = [
            make_candidate(event_date=RUN_DATE + timedelta(days=offset))
            for offset in range(-3, 5)
        ]
        kept, _ = validate_candidates(candidates, RUN_DATE)
        threshold = RUN_DATE + timedelta(days=1)
        assert len(kept) == 4
        for candidate in kept:
            assert candidate.title.strip()
            assert candidate.location.strip()
            assert candidate.source_url.strip()
            assert candidate.event_date >= threshold
