"""Result models for a discovery run and for the weekly batch job.

Architecture note:
    DiscoveryResult is what the orchestrator (src/pipeline/orchestrator.py)
    hands to the newsletter assembler: the persisted rows in ranked order
    plus the raw city-wide response text kept for debugging.  The weekly
    job (src/pipeline/weekly_job.py) reports per-user outcomes in a
    WeeklyRunSummary instead of raising, since one user's failure must not
    abort the batch.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.event import StoredEvent, ValidationReport


class DiscoveryResult(BaseModel):
    """Output of one discovery run for one user."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    # Persisted rows, best score first.
    events: list[StoredEvent] = Field(default_factory=list)
    raw_responses: list[str] = Field(default_factory=list)
    candidate_count: int = 0
    validation: ValidationReport = Field(default_factory=ValidationReport)

    @property
    def raw_dump(self) -> str:
        return "\n\n".join(self.raw_responses)


class RunStatus(str, Enum):  # noqa: UP042
    SENT = "sent"
    FAILED = "failed"


class UserRunOutcome(BaseModel):
    """What happened to one user during the weekly job."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    status: RunStatus
    newsletter_id: int | None = None
    error: str | None = None


class WeeklyRunSummary(BaseModel):
    """Aggregate result of one weekly batch run."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    finished_at: datetime | None = None
    batches: int = 0
    outcomes: list[UserRunOutcome] = Field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.status is RunStatus.SENT)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is RunStatus.FAILED)
