"""Central orchestrator for a per-user event discovery run.

Coordinates profile refresh, exclusion compilation, city-wide and
source-scoped discovery, validation, ranking and persistence into one
call, :meth:`EventDiscoveryPipeline.discover_for_user`.

ARCHITECTURE NOTE (for junior developers):
    This orchestrator follows the "Pipeline" pattern: it owns the control
    flow and nothing else.  Every stage lives in its own service and is
    injected here, so tests can swap any of them for a mock.

    Stage order:
        1. Load the user; a missing city aborts the run.
        2. Regenerate the profile if it is dirty or missing.
        3. Compile the effective profile from the base profile plus
           exclusion rules.
        4. City-wide discovery (fatal on failure).
        5. Source-scoped discovery per saved URL (failures are skipped).
        6. Validation: drop incomplete and past/today candidates.
        7. Dedup, scoring, exclusion filtering, category and total caps.
        8. Upsert into the event table.

    The user id is bound into structlog's contextvars for the whole run,
    so every log line emitted by any stage carries it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

import structlog

from src.config.limits import DiscoveryLimits
from src.interfaces.exclusion_store import IExclusionStore
from src.interfaces.user_store import IUserStore
from src.models.event import CandidateEvent
from src.models.pipeline import DiscoveryResult
from src.services.event_discovery import EventDiscoveryClient
from src.services.event_filters import validate_candidates
from src.services.event_persistence import EventPersistenceService
from src.services.event_ranking import select_events
from src.services.profile_compiler import compile_effective_profile
from src.services.profile_service import ProfileService
from src.utils.concurrency import throttled_gather
from src.utils.errors import NotFoundError, PreconditionError
from src.utils.logging import bind_run_context, get_logger


class EventDiscoveryPipeline:
    """Runs discovery for one user and returns the persisted selection.

    All collaborators are injected at construction time; the orchestrator
    never creates them.
    """

    def __init__(
        self,
        user_store: IUserStore,
        exclusion_store: IExclusionStore,
        profile_service: ProfileService,
        discovery_client: EventDiscoveryClient,
        persistence_service: EventPersistenceService,
        limits: DiscoveryLimits | None = None,
        source_concurrency: int = 1,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._users = user_store
        self._exclusions = exclusion_store
        self._profiles = profile_service
        self._discovery = discovery_client
        self._persistence = persistence_service
        self._limits = limits or DiscoveryLimits()
        self._source_concurrency = source_concurrency
        self._today = today or date.today
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def discover_for_user(self, user_id: int) -> DiscoveryResult:
        """Run the full discovery pipeline for *user_id*.

        Raises
        ------
        NotFoundError
            Unknown user.
        PreconditionError
            No city set, or no profile even after regeneration.
        DiscoveryError
            City-wide discovery failed upstream.
        NoEventsFoundError
            Nothing survived validation, exclusions and caps.
        """
        with bind_run_context(user_id=user_id):
            return await self._run(user_id)

    async def _run(self, user_id: int) -> DiscoveryResult:
        run_date = self._today()

        user = await self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not user.city:
            raise PreconditionError("User city not set. Please set your city in preferences.")

        # ------------------------------------------------------------------
        # Profile refresh and exclusion compilation
        # ------------------------------------------------------------------
        profile = user.profile
        if user.profile_dirty or not profile:
            self._logger.info("profile_refresh_needed", dirty=user.profile_dirty)
            regenerated = await self._profiles.regenerate_profile(user_id)
            if regenerated:
                profile = regenerated
            elif profile:
                self._logger.warning("profile_stale_used")

        if not profile:
            raise PreconditionError("User profile not available")

        rules = await self._exclusions.list_exclusions(user_id)
        effective_profile = compile_effective_profile(profile, rules, self._limits)

        # ------------------------------------------------------------------
        # Discovery: city-wide first, then each saved source
        # ------------------------------------------------------------------
        sources = await self._profiles.list_sources(user_id)
        city_events, raw = await self._discovery.discover_city_wide(
            user.city, effective_profile, [s.url for s in sources]
        )

        source_results = await throttled_gather(
            [
                self._discovery.discover_from_source(s.url, s.name, effective_profile)
                for s in sources
            ],
            limit=self._source_concurrency,
        )
        candidates: list[CandidateEvent] = list(city_events)
        for source, result in zip(sources, source_results):
            if isinstance(result, BaseException):
                self._logger.warning(
                    "source_discovery_failed", source_url=source.url, error=str(result)
                )
                continue
            candidates.extend(result)

        self._logger.info(
            "discovery_candidates_collected",
            city_wide=len(city_events),
            from_sources=len(candidates) - len(city_events),
            sources=len(sources),
        )

        # ------------------------------------------------------------------
        # Validation, ranking, persistence
        # ------------------------------------------------------------------
        valid, report = validate_candidates(candidates, run_date)
        selected = select_events(valid, rules, self._limits)
        stored = await self._persistence.upsert_events(selected)

        self._logger.info("discovery_complete", events=len(stored))
        return DiscoveryResult(
            user_id=user_id,
            events=stored,
            raw_responses=[raw],
            candidate_count=len(candidates),
            validation=report,
        )
