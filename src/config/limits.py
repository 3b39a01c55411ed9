"""Named constants for the discovery, selection and upsert stages."""

from pydantic import BaseModel, ConfigDict, Field


class DiscoveryLimits(BaseModel):
    """Caps, floors and default scores used across the discovery pipeline.

    The defaults here are the production values; ``config/config.yaml``
    may override any of them under the ``discovery.limits`` key.
    """

    model_config = ConfigDict(frozen=True)

    max_events: int = Field(default=20, ge=1)
    min_events: int = Field(default=12, ge=0)
    category_cap: int = Field(default=6, ge=1)
    # Score assumed when the endpoint omits one: neutral for city-wide
    # search, higher for sources the user added themselves.
    general_default_score: int = Field(default=50, ge=0, le=100)
    source_default_score: int = Field(default=75, ge=0, le=100)
    window_days: int = Field(default=30, ge=1)
    priority_days: int = Field(default=14, ge=1)
    profile_max_chars: int = Field(default=15000, ge=1)
    event_exclusion_limit: int = Field(default=15, ge=0)
    penalty_min: int = Field(default=15, ge=0)
    penalty_max: int = Field(default=20, ge=0)
    upsert_concurrency: int = Field(default=4, ge=1)
    # City-wide search: planning, fan-out, merge, repair.
    max_search_tasks: int = Field(default=6, ge=1)
    max_events_per_task: int = Field(default=9, ge=1)
    merge_input_cap: int = Field(default=100, ge=1)
    merge_max_events: int = Field(default=30, ge=1)
    expand_threshold: int = Field(default=15, ge=0)

    @classmethod
    def from_config(cls, config: dict) -> "DiscoveryLimits":
        """Build from the ``discovery.limits`` section of a loaded config dict."""
        section = (config.get("discovery") or {}).get("limits") or {}
        return cls(**section)
