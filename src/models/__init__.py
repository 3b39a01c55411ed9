"""Event digest domain models - re-exports all public model classes.

Other parts of the codebase import from ``src.models`` directly
(e.g. ``from src.models import CandidateEvent``).  Models are organized by
domain concern:
    - event.py      - Candidate (unvalidated) and persisted events
    - user.py       - Users, preferences, exclusion rules, event sources
    - newsletter.py - Stored newsletters and their ordered event references
    - pipeline.py   - Discovery run and weekly job results

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.event import CandidateEvent, StoredEvent, ValidationReport, parse_event_date
from src.models.newsletter import Newsletter, NewsletterEntry
from src.models.pipeline import DiscoveryResult, RunStatus, UserRunOutcome, WeeklyRunSummary
from src.models.user import EventSource, ExclusionRule, ExclusionType, User, UserPreferences

__all__ = [
    "CandidateEvent",
    "DiscoveryResult",
    "EventSource",
    "ExclusionRule",
    "ExclusionType",
    "Newsletter",
    "NewsletterEntry",
    "RunStatus",
    "StoredEvent",
    "User",
    "UserPreferences",
    "UserRunOutcome",
    "ValidationReport",
    "WeeklyRunSummary",
    "parse_event_date",
]
