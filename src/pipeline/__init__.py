"""Pipeline orchestration: per-user discovery run and the weekly batch job."""

from src.pipeline.orchestrator import EventDiscoveryPipeline
from src.pipeline.weekly_job import run_weekly

__all__ = [
    "EventDiscoveryPipeline",
    "run_weekly",
]
