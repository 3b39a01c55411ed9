"""Pydantic v2 models for discovered and persisted events.

All models use frozen config (immutable) per project convention.

``CandidateEvent`` is deliberately lenient: the AI search endpoint returns
loosely-typed JSON (camelCase keys, numeric strings, artist lists, dates in
several shapes), and rejecting a candidate is the job of the validation
stage, not of model construction.  Required fields therefore default to
empty strings / ``None`` here and are enforced by
:mod:`src.services.event_filters`.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y", "%B %d, %Y", "%b %d, %Y")


def parse_event_date(value: Any) -> date | None:
    """Coerce an upstream date value to a calendar date, or ``None``.

    Accepts ``date`` / ``datetime`` objects, ISO-8601 date and datetime
    strings (``Z`` suffix included), and a handful of common human formats.
    Anything else is treated as missing.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    # "2026-10-21 / 19:00" and similar: the first ten chars may still be ISO.
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return ", ".join(parts) if parts else None
    if isinstance(value, dict):
        name = value.get("name")
        return str(name) if name is not None else None
    return str(value)


class CandidateEvent(BaseModel):
    """An unvalidated event record returned by one discovery call.

    Accepts both the endpoint's camelCase keys (``sourceUrl``, ``imageUrl``,
    ``date``) and snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str = ""
    description: str | None = None
    event_date: date | None = Field(
        default=None, validation_alias=AliasChoices("event_date", "date")
    )
    time: str | None = None
    location: str = ""
    category: str | None = None
    source_url: str = Field(
        default="", validation_alias=AliasChoices("source_url", "sourceUrl", "url")
    )
    image_url: str | None = Field(
        default=None, validation_alias=AliasChoices("image_url", "imageUrl")
    )
    score: float | None = Field(
        default=None, description="Relevance 0-100; None when the endpoint omitted it."
    )
    organizer: str | None = None
    artist: str | None = None
    venue: str | None = None

    @field_validator("event_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> date | None:
        return parse_event_date(value)

    @field_validator("title", "location", "source_url", mode="before")
    @classmethod
    def _required_text(cls, value: Any) -> str:
        return _coerce_text(value) or ""

    @field_validator(
        "description", "time", "category", "image_url", "organizer", "artist", "venue",
        mode="before",
    )
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        return _coerce_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _parse_score(cls, value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            score = float(str(value).strip().rstrip("%")) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(score):
            return None
        return min(100.0, max(0.0, score))


class StoredEvent(BaseModel):
    """A persisted event row.  Identity for upserts is (title, event_date, location)."""

    model_config = ConfigDict(frozen=True)

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
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ValidationReport(BaseModel):
    """Counts of candidates removed by the validation stage, by reason."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    kept: int = 0
    missing_title: int = 0
    missing_location: int = 0
    missing_source_url: int = 0
    missing_date: int = 0
    not_in_future: int = 0

    @property
    def dropped(self) -> int:
        return self.total - self.kept
