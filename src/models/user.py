"""Pydantic v2 models for users, their preferences, exclusion rules and sources.

All models use frozen config (immutable) per project convention.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ExclusionType(str, Enum):
    """What an exclusion rule ("hate") targets."""

    ORGANIZER = "organizer"
    ARTIST = "artist"
    VENUE = "venue"
    # Soft rule: value is "title|metadata", folded into the search prompt
    # as a score penalty and never applied as a hard filter.
    EVENT = "event"


class ExclusionRule(BaseModel):
    """A user-defined signal to suppress or penalize matching events."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    type: ExclusionType
    value: str
    created_at: datetime


class EventSource(BaseModel):
    """A user-supplied event listing URL crawled during discovery."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    url: str
    name: str | None = None
    created_at: datetime


class UserPreferences(BaseModel):
    """Preference lists used to synthesize the user's profile text."""

    model_config = ConfigDict(frozen=True)

    interests: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    event_types: list[str] = Field(default_factory=list)
    artists: list[str] = Field(default_factory=list)
    venues: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (self.interests, self.genres, self.event_types, self.artists, self.venues)
        )


class User(BaseModel):
    """A newsletter subscriber."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str | None = None
    city: str | None = None
    profile: str | None = Field(
        default=None, description="Synthesized free-text preference profile."
    )
    profile_dirty: bool = Field(
        default=True,
        description="True when preferences, city or sources changed since the profile was generated.",
    )
    has_preferences: bool = False
    created_at: datetime | None = None
