"""Pydantic v2 models for stored newsletters."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.event import StoredEvent


class NewsletterEntry(BaseModel):
    """One event reference inside a newsletter, in display order."""

    model_config = ConfigDict(frozen=True)

    position: int = Field(ge=0)
    event: StoredEvent


class Newsletter(BaseModel):
    """A rendered newsletter and its ordered event references."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    subject: str
    html_content: str
    created_at: datetime
    sent_at: datetime | None = None
    entries: list[NewsletterEntry] = Field(default_factory=list)

    @property
    def is_sent(self) -> bool:
        return self.sent_at is not None
