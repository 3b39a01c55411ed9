"""Normalization and validation of discovered candidates.

Order-preserving filter over the concatenated candidate list (city-wide
plus every per-source crawl).  A candidate survives only if it has a
non-blank title, location and source URL, and a date no earlier than
tomorrow relative to the run date.  Today and the past are excluded.

Removal reasons are counted (first failing check wins) and logged; they
are not kept per event.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timedelta

from src.models.event import CandidateEvent, ValidationReport
from src.utils.logging import get_logger
from src.utils.text_normalizer import is_blank

logger = get_logger(__name__)


def earliest_allowed_date(run_at: datetime | date) -> date:
    """Return tomorrow relative to *run_at*, time truncated to midnight."""
    run_date = run_at.date() if isinstance(run_at, datetime) else run_at
    return run_date + timedelta(days=1)


def _rejection_reason(candidate: CandidateEvent, threshold: date) -> str | None:
    if is_blank(candidate.title):
        return "missing_title"
    if is_blank(candidate.location):
        return "missing_location"
    if is_blank(candidate.source_url):
        return "missing_source_url"
    if candidate.event_date is None:
        return "missing_date"
    if candidate.event_date < threshold:
        return "not_in_future"
    return None


def validate_candidates(
    candidates: Sequence[CandidateEvent],
    run_at: datetime | date,
) -> tuple[list[CandidateEvent], ValidationReport]:
    """Drop invalid candidates and report how many were removed and why.

    Parameters
    ----------
    candidates:
        Raw discovery output, in discovery order.
    run_at:
        When the job ran.  Only events dated tomorrow or later survive.

    Returns
    -------
    tuple
        Surviving candidates (input order preserved) and the report.
    """
    threshold = earliest_allowed_date(run_at)
    counts = {
        "missing_title": 0,
        "missing_location": 0,
        "missing_source_url": 0,
        "missing_date": 0,
        "not_in_future": 0,
    }
    kept: list[CandidateEvent] = []

    for candidate in candidates:
        reason = _rejection_reason(candidate, threshold)
        if reason is None:
            kept.append(candidate)
        else:
            counts[reason] += 1

    report = ValidationReport(total=len(candidates), kept=len(kept), **counts)
    if report.dropped:
        logger.info(
            "validation_dropped",
            total=report.total,
            kept=report.kept,
            earliest_date=threshold.isoformat(),
            **{k: v for k, v in counts.items() if v},
        )
    return kept, report
