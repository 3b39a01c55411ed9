"""Pydantic request/response schemas for the event digest API.

Defines the public contract for all REST endpoints: users, preferences,
discovery, exclusions, event sources, newsletters and health.

# ─── HOW SCHEMAS WORK (Junior Developer Guide) ────────────────────────
#
# These models define the *shape* of every HTTP request and response
# body.  FastAPI validates incoming JSON against them (422 on mismatch),
# serializes responses through ``response_model=...`` and documents them
# at /docs.
#
# Convention: request schemas end with "Request", response schemas end
# with "Response".  Response schemas are built from domain models with
# ``model_validate(obj, from_attributes=True)`` or a ``from_*`` helper.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.event import StoredEvent
from src.models.newsletter import Newsletter
from src.models.pipeline import DiscoveryResult


# ---------------------------------------------------------------------------
# Users and preferences
# ---------------------------------------------------------------------------


class CreateUserRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    name: str | None = Field(default=None, max_length=200)


class UserResponse(BaseModel):
    """Public view of a user; the profile text itself is included for debugging."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    city: str | None = None
    profile: str | None = None
    profile_dirty: bool
    has_preferences: bool


class SetCityRequest(BaseModel):
    city: str = Field(..., min_length=1, max_length=200)


class PreferencesRequest(BaseModel):
    """Full replacement of the user's preference lists."""

    interests: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    event_types: list[str] = Field(default_factory=list)
    artists: list[str] = Field(default_factory=list)
    venues: list[str] = Field(default_factory=list)


class PreferencesResponse(PreferencesRequest):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Events and discovery
# ---------------------------------------------------------------------------


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    event_date: date
    location: str
    description: str | None = None
    time: str | None = None
    category: str | None = None
    source_url: str | None = None
    image_url: str | None = None
    score: int | None = None
    organizer: str | None = None
    artist: str | None = None
    venue: str | None = None


def _events(events: list[StoredEvent]) -> list[EventResponse]:
    return [EventResponse.model_validate(e, from_attributes=True) for e in events]


class DiscoverResponse(BaseModel):
    """Result of a discovery run.  ``raw_dump`` is set only with ``show_dump=true``."""

    user_id: int
    events: list[EventResponse]
    candidate_count: int
    dropped_by_validation: int
    raw_dump: str | None = None

    @classmethod
    def from_result(cls, result: DiscoveryResult, show_dump: bool = False) -> DiscoverResponse:
        return cls(
            user_id=result.user_id,
            events=_events(result.events),
            candidate_count=result.candidate_count,
            dropped_by_validation=result.validation.dropped,
            raw_dump=result.raw_dump if show_dump else None,
        )


# ---------------------------------------------------------------------------
# Exclusions ("hates") and event sources
# ---------------------------------------------------------------------------


class ExclusionRequest(BaseModel):
    """``type`` is validated by the service so bad values return 400, not 422."""

    type: str
    value: str


class ExclusionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    value: str
    created_at: datetime


class DeleteAllResponse(BaseModel):
    deleted: int


class EventSourceRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2000)
    name: str | None = Field(default=None, max_length=200)


class EventSourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    name: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Newsletters
# ---------------------------------------------------------------------------


class NewsletterResponse(BaseModel):
    id: int
    subject: str
    html_content: str
    created_at: datetime
    sent_at: datetime | None = None
    events: list[EventResponse] = Field(default_factory=list)

    @classmethod
    def from_newsletter(cls, newsletter: Newsletter) -> NewsletterResponse:
        return cls(
            id=newsletter.id,
            subject=newsletter.subject,
            html_content=newsletter.html_content,
            created_at=newsletter.created_at,
            sent_at=newsletter.sent_at,
            events=_events([entry.event for entry in newsletter.entries]),
        )


class GenerateNewsletterResponse(BaseModel):
    newsletter: NewsletterResponse
    raw_dump: str | None = None


class SendNewsletterResponse(BaseModel):
    success: bool
    sent_at: datetime | None = None


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
