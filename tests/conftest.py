"""Shared pytest fixtures for the event digest test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.config.limits import DiscoveryLimits
from src.config.settings import Settings
from src.interfaces.ai_search_provider import IAISearchProvider
from src.models.event import CandidateEvent, StoredEvent
from src.models.user import ExclusionRule, ExclusionType
from src.providers.event.sqlite_event_store import SQLiteEventStore
from src.providers.event_source.sqlite_event_source_store import SQLiteEventSourceStore
from src.providers.exclusion.sqlite_exclusion_store import SQLiteExclusionStore
from src.providers.newsletter.sqlite_newsletter_store import SQLiteNewsletterStore
from src.providers.user.sqlite_user_store import SQLiteUserStore

# Fixed run date used across the suite so date windows are deterministic.
RUN_DATE = date(2026, 5, 1)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def run_date() -> date:
    return RUN_DATE


@pytest.fixture
def limits() -> DiscoveryLimits:
    return DiscoveryLimits()


@pytest.fixture
def settings() -> Settings:
    """Settings with fake credentials and no ``.env`` lookup."""
    return Settings(
        _env_file=None,
        perplexity_api_key="pplx-test-key",
        resend_api_key="re_test_key",
        from_email="events@example.com",
        frontend_url="https://app.example.com",
    )


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_candidate() -> Callable[..., CandidateEvent]:
    """Factory for valid candidates dated one week after RUN_DATE."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> CandidateEvent:
        counter["n"] += 1
        values: dict[str, Any] = {
            "title": f"Event {counter['n']}",
            "event_date": RUN_DATE + timedelta(days=7),
            "location": "Blue Note, New York",
            "source_url": f"https://example.com/events/{counter['n']}",
            "score": 70,
        }
        values.update(overrides)
        return CandidateEvent(**values)

    return _make


@pytest.fixture
def make_stored_event() -> Callable[..., StoredEvent]:
    counter = {"n": 0}

    def _make(**overrides: Any) -> StoredEvent:
        counter["n"] += 1
        values: dict[str, Any] = {
            "id": counter["n"],
            "title": f"Stored {counter['n']}",
            "event_date": RUN_DATE + timedelta(days=7),
            "location": "Blue Note, New York",
            "source_url": f"https://example.com/events/{counter['n']}",
            "score": 80,
        }
        values.update(overrides)
        return StoredEvent(**values)

    return _make


@pytest.fixture
def make_rule() -> Callable[..., ExclusionRule]:
    counter = {"n": 0}

    def _make(rule_type: ExclusionType, value: str, **overrides: Any) -> ExclusionRule:
        counter["n"] += 1
        values: dict[str, Any] = {
            "id": counter["n"],
            "user_id": 1,
            "type": rule_type,
            "value": value,
            "created_at": datetime(2026, 4, 1, tzinfo=timezone.utc)
            + timedelta(minutes=counter["n"]),
        }
        values.update(overrides)
        return ExclusionRule(**values)

    return _make


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_search_provider() -> MagicMock:
    """AI search provider whose ``complete`` is an ``AsyncMock``."""
    provider = MagicMock(spec=IAISearchProvider)
    provider.complete = AsyncMock(return_value='{"events": []}')
    provider.get_provider_name.return_value = "perplexity"
    provider.is_available.return_value = True
    return provider


# ---------------------------------------------------------------------------
# SQLite stores on a temporary database
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "events.db"


@pytest_asyncio.fixture
async def stores(db_path: Path) -> dict[str, Any]:
    """All SQLite stores sharing one initialized temp database."""
    result = {
        "events": SQLiteEventStore(db_path=db_path),
        "users": SQLiteUserStore(db_path=db_path),
        "exclusions": SQLiteExclusionStore(db_path=db_path),
        "sources": SQLiteEventSourceStore(db_path=db_path),
        "newsletters": SQLiteNewsletterStore(db_path=db_path),
    }
    for store in result.values():
        await store.initialize()
    return result
