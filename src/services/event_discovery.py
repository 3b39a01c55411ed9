"""Discovery client: asks the AI search endpoint for candidate events.

City-wide discovery (``discover_city_wide``) is the load-bearing path and
runs in up to four steps against the same endpoint:

1. **Plan** -- ask for at most ``max_search_tasks`` search tasks (queries or
   listing sites) for the city and profile.
2. **Search** -- run every task concurrently; each returns raw, unscored
   candidates.
3. **Merge & score** -- send at most ``merge_input_cap`` raw candidates back
   for city filtering, dedup and scoring against the profile.
4. **Repair / expand** -- when the merge answer is unusable, or holds fewer
   than ``expand_threshold`` events, ask once more for a complete list.

Each step's raw answer is kept under a ``=== STEP ===`` header and the
joined text is returned next to the events.  An unusable step degrades to
the next one.  The path raises :class:`DiscoveryError` only when no step
yields a parseable answer, or when the endpoint fails before anything was
collected.

Source-scoped discovery (``discover_from_source``) crawls one
user-supplied URL.  A failing source is logged and yields an empty list;
it never aborts the run.

Both paths drop candidates dated after the discovery window.  Unscored
city-wide candidates keep ``score=None`` (the ranking stage applies the
neutral default) while source candidates default to
``source_default_score`` because the user added that source deliberately.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError

from src.config.limits import DiscoveryLimits
from src.interfaces.ai_search_provider import IAISearchProvider
from src.models.event import CandidateEvent
from src.utils.concurrency import throttled_gather
from src.utils.errors import DiscoveryError, DiscoveryParseError, JSONExtractionError
from src.utils.json_extract import extract_json
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_title

_TRUNCATION_NOTE = "\n\n[Profile truncated for length...]"
_MAX_PER_SOURCE_URL = 4

_JSON_ONLY = (
    "Do not include any explanation, reasoning, or commentary. Output only the "
    "JSON object, no preamble or postamble."
)

_PLAN_SYSTEM_PROMPT = (
    "You are a planning assistant for event discovery. Return only valid JSON "
    "with a \"tasks\" array of search tasks. " + _JSON_ONLY
)

_TASK_SYSTEM_PROMPT = (
    "You are extracting raw event data from web search. Return only valid JSON "
    "with an \"events\" array. Do not score. Never include events from the past. "
    "Never invent or hallucinate events; only include events you actually found. "
    + _JSON_ONLY
)

_MERGE_SYSTEM_PROMPT = (
    "You are an event scoring and deduplication assistant. Return only valid JSON "
    "with an \"events\" array. Only keep real events from the candidates you are "
    "given and never add invented ones. Never include events from the past. "
    + _JSON_ONLY
)

_REPAIR_SYSTEM_PROMPT = (
    "You are repairing or expanding event results. Return only valid JSON with an "
    "\"events\" array. Never invent or hallucinate events; only include events you "
    "actually found. Never include events from the past. " + _JSON_ONLY
)

_SOURCE_SYSTEM_PROMPT = (
    "You are an event discovery assistant. Return only valid JSON objects with an "
    "\"events\" array. Never invent events; only include events actually listed "
    "on the source page."
)

_EVENT_FIELD_LIST = """\
- title
- description (optional)
- date (ISO format: YYYY-MM-DD)
- time (optional, HH:MM format)
- location (full address - MUST include the city name, e.g. "Venue, City" or "Address, City, Country")
- category (optional)
- sourceUrl (direct link to the event's page when available, otherwise a valid page that lists the event)
- imageUrl (optional, link to event image)
- score (number from 0-100 indicating how well this event matches the user's profile, 100 = perfect match)
- organizer (optional): event organizer or promoter name
- artist (optional): main artist, band, or performer name
- venue (optional): venue name (e.g. "Blue Note", "Lincoln Center")"""

# Search tasks only collect raw candidates; scoring happens in the merge step.
_RAW_EVENT_FIELD_LIST = "\n".join(
    line
    for line in _EVENT_FIELD_LIST.splitlines()
    if not line.startswith(("- imageUrl", "- score"))
)

_ISSUE_TOO_FEW = "too_few"
_ISSUE_BROKEN_JSON = "broken_json"


def _event_payload(event: CandidateEvent) -> dict[str, Any]:
    """Camel-case JSON view of a candidate, as the endpoint returns them."""
    payload = {
        "title": event.title,
        "description": event.description,
        "date": event.event_date.isoformat() if event.event_date else None,
        "time": event.time,
        "location": event.location,
        "category": event.category,
        "sourceUrl": event.source_url,
        "imageUrl": event.image_url,
        "score": event.score,
        "organizer": event.organizer,
        "artist": event.artist,
        "venue": event.venue,
    }
    return {key: value for key, value in payload.items() if value not in (None, "")}


class EventDiscoveryClient:
    """Builds discovery prompts and parses the endpoint's answers.

    Parameters
    ----------
    search_provider:
        The AI search endpoint adapter.
    limits:
        Window sizes, event caps, default scores, profile length and the
        city-wide step sizes.
    city_model / source_model:
        Model names for the two call shapes (provider default when ``None``).
    today:
        Clock override for tests; returns the run date.
    """

    def __init__(
        self,
        search_provider: IAISearchProvider,
        limits: DiscoveryLimits | None = None,
        city_model: str | None = None,
        source_model: str | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._provider = search_provider
        self._limits = limits or DiscoveryLimits()
        self._city_model = city_model
        self._source_model = source_model
        self._today = today or date.today
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def discover_city_wide(
        self,
        city: str,
        effective_profile: str,
        known_source_urls: Sequence[str] = (),
    ) -> tuple[list[CandidateEvent], str]:
        """Run the planned, multi-step city-wide search.

        Returns
        -------
        tuple
            Candidates inside the discovery window, and the sectioned raw
            text of every step.

        Raises
        ------
        DiscoveryError
            Any subclass, when the path as a whole produced nothing usable.
        ConfigurationError
            If the endpoint has no credentials.
        """
        profile = self._truncate_profile(effective_profile)
        sources = list(known_source_urls)
        sections: list[str] = []
        self._logger.info(
            "discovery_city_wide_start",
            city=city,
            profile_chars=len(effective_profile),
            known_sources=len(sources),
        )

        try:
            events = await self._run_city_steps(city, profile, sources, sections)
        except DiscoveryError as exc:
            self._logger.error(
                "discovery_upstream_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                steps=len(sections),
            )
            raise

        events = self._within_window(events, path="city_wide")
        self._logger.info("discovery_city_wide_complete", events=len(events), steps=len(sections))
        return events, "\n\n".join(sections)

    async def discover_from_source(
        self,
        source_url: str,
        source_name: str | None = None,
        effective_profile: str | None = None,
    ) -> list[CandidateEvent]:
        """Crawl one source URL.  Never raises; failures yield ``[]``."""
        prompt = self._build_source_prompt(source_url, source_name, effective_profile)
        try:
            raw = await self._provider.complete(
                _SOURCE_SYSTEM_PROMPT, prompt, model=self._source_model, temperature=0.3
            )
            events = self._parse_events(raw, default_score=self._limits.source_default_score)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "source_discovery_failed",
                source_url=source_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return []

        events = self._within_window(events, path="source")
        self._logger.info("source_discovery_complete", source_url=source_url, events=len(events))
        return events

    # ------------------------------------------------------------------
    # City-wide steps
    # ------------------------------------------------------------------

    async def _run_city_steps(
        self, city: str, profile: str, sources: list[str], sections: list[str]
    ) -> list[CandidateEvent]:
        tasks, plan_raw = await self._plan(city, profile, sources)
        sections.append(f"=== PLANNING ===\n{plan_raw}")
        parsed_any = bool(tasks)

        raw_items: list[dict[str, Any]] = []
        if tasks:
            results = await throttled_gather(
                [self._search_task(task, city, sources) for task in tasks],
                limit=len(tasks),
            )
            failures: list[DiscoveryError] = []
            for index, (task, result) in enumerate(zip(tasks, results), start=1):
                header = f"=== SEARCH TASK {index}: {task} ==="
                if isinstance(result, BaseException):
                    if not isinstance(result, DiscoveryError):
                        raise result
                    failures.append(result)
                    sections.append(f"{header}\nSearch failed: {result}")
                    self._logger.warning(
                        "search_task_failed",
                        task=task,
                        error_type=type(result).__name__,
                        error=str(result),
                    )
                    continue
                items, raw = result
                sections.append(f"{header}\n{raw}")
                if items is not None:
                    parsed_any = True
                    raw_items.extend(items)
            if len(failures) == len(tasks):
                raise failures[0]

        self._logger.info("search_phase_complete", tasks=len(tasks), raw_events=len(raw_items))

        events: list[CandidateEvent] = []
        merge_failed = False
        if raw_items:
            try:
                merge_raw = await self._complete(
                    _MERGE_SYSTEM_PROMPT,
                    self._build_merge_prompt(raw_items, city, profile),
                    temperature=0.5,
                )
                events = self._parse_events(merge_raw, default_score=None)
                parsed_any = True
            except DiscoveryError as exc:
                merge_failed = True
                merge_raw = f"Merge failed: {exc}"
                self._logger.warning(
                    "merge_step_failed", error_type=type(exc).__name__, error=str(exc)
                )
            sections.append(f"=== MERGE & SCORE ===\n{merge_raw}")

        if merge_failed:
            # The unscored search results stand in for the merge answer.
            issue, current = _ISSUE_BROKEN_JSON, self._to_candidates(raw_items, None)
        elif len(events) < self._limits.expand_threshold:
            issue, current = _ISSUE_TOO_FEW, events
        else:
            return events

        return await self._repair(issue, current, city, profile, sources, sections, parsed_any)

    async def _plan(
        self, city: str, profile: str, sources: list[str]
    ) -> tuple[list[str], str]:
        raw = await self._complete(
            _PLAN_SYSTEM_PROMPT, self._build_plan_prompt(city, profile, sources), temperature=0.7
        )
        try:
            payload: Any = extract_json(raw)
        except JSONExtractionError as exc:
            self._logger.warning("search_plan_unparseable", error=exc.message)
            return [], raw

        if isinstance(payload, dict):
            payload = payload.get("tasks") or payload.get("task") or []
        tasks: list[str] = []
        if isinstance(payload, list):
            tasks = [item.strip() for item in payload if isinstance(item, str) and item.strip()]
        tasks = tasks[: self._limits.max_search_tasks]

        self._logger.info("search_plan_complete", tasks=len(tasks))
        return tasks, raw

    async def _search_task(
        self, task: str, city: str, sources: list[str]
    ) -> tuple[list[dict[str, Any]] | None, str]:
        """Return the task's raw event dicts (``None`` if unparseable) and its text."""
        raw = await self._complete(
            _TASK_SYSTEM_PROMPT, self._build_task_prompt(task, city, sources), temperature=0.7
        )
        try:
            items = self._extract_items(raw)
        except DiscoveryParseError as exc:
            self._logger.warning("search_task_unparseable", task=task, error=exc.message)
            return None, raw

        events = [item for item in items if isinstance(item, dict)]
        return events[: self._limits.max_events_per_task], raw

    async def _repair(
        self,
        issue: str,
        current: list[CandidateEvent],
        city: str,
        profile: str,
        sources: list[str],
        sections: list[str],
        parsed_any: bool,
    ) -> list[CandidateEvent]:
        header = f"=== REPAIR ({issue}) ==="
        try:
            raw = await self._complete(
                _REPAIR_SYSTEM_PROMPT,
                self._build_repair_prompt(issue, current, city, profile, sources),
                temperature=0.7,
            )
        except DiscoveryError as exc:
            if not current:
                raise
            sections.append(f"{header}\nRepair failed: {exc}")
            self._logger.warning("repair_step_failed", issue=issue, error=str(exc))
            return current

        sections.append(f"{header}\n{raw}")
        try:
            repaired = self._parse_events(raw, default_score=None)
        except DiscoveryParseError:
            if not parsed_any:
                raise
            self._logger.warning("repair_step_unparseable", issue=issue, kept=len(current))
            return current

        # Keep current events the repair answer left out; ranking dedups by title anyway.
        seen = {normalize_title(event.title) for event in repaired}
        combined = list(repaired) + [
            event for event in current if normalize_title(event.title) not in seen
        ]
        self._logger.info(
            "repair_step_complete", issue=issue, before=len(current), after=len(combined)
        )
        return combined

    async def _complete(self, system_prompt: str, prompt: str, temperature: float) -> str:
        return await self._provider.complete(
            system_prompt, prompt, model=self._city_model, temperature=temperature
        )

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def _truncate_profile(self, profile: str) -> str:
        max_chars = self._limits.profile_max_chars
        if len(profile) <= max_chars:
            return profile
        return profile[:max_chars] + _TRUNCATION_NOTE

    def _date_window(self) -> tuple[date, date, date]:
        today = self._today()
        start = today + timedelta(days=1)
        priority_end = today + timedelta(days=self._limits.priority_days)
        end = today + timedelta(days=self._limits.window_days)
        return start, priority_end, end

    def _window_text(self) -> str:
        start, _, end = self._date_window()
        return (
            f"Events must start from {start.isoformat()} (tomorrow) through {end.isoformat()}. "
            "Do NOT include events happening today or in the past."
        )

    def _build_plan_prompt(self, city: str, profile: str, sources: list[str]) -> str:
        start, priority_end, end = self._date_window()
        sources_text = ""
        if sources:
            sources_text = "\n\nPages the user normally checks for events:\n" + "\n".join(sources)
        max_tasks = self._limits.max_search_tasks

        return f"""User profile:
{profile}{sources_text}

City: {city}
Date window: {start.isoformat()} (tomorrow) through {end.isoformat()}, \
prioritizing events before {priority_end.isoformat()}.

Plan how to find up to {self._limits.max_events} real upcoming events in {city} that match this profile.
Break the search into at most {max_tasks} specific tasks. Each task is one search query \
or one website/listing to check.

Return a JSON object with a "tasks" array. Each task is a string describing what to search \
for or which site to query."""

    def _build_task_prompt(self, task: str, city: str, sources: list[str]) -> str:
        sources_text = ""
        if sources:
            sources_text = (
                "\n\nThe user follows these event sources. If this task relates to one of "
                "them, check it first:\n" + "\n".join(sources)
            )

        return f"""From this site/search: "{task}"

Extract real upcoming events in {city}. Never return more than \
{self._limits.max_events_per_task} events from this task.
{self._window_text()}{sources_text}

Remove near-duplicate titles before returning, even when their dates differ.

For each event, return:
{_RAW_EVENT_FIELD_LIST}

Return a JSON object with an "events" array. If you cannot find real events, return fewer \
or an empty array. A short list of real events is always better than any fake ones."""

    def _build_merge_prompt(
        self, raw_items: list[dict[str, Any]], city: str, profile: str
    ) -> str:
        start, priority_end, end = self._date_window()
        batch = raw_items[: self._limits.merge_input_cap]

        return f"""You have been given {len(batch)} raw event candidates for {city}. Your task is to:

1. Keep only events from {start.isoformat()} (tomorrow) through {end.isoformat()}. \
Prioritize events happening before {priority_end.isoformat()}.
2. Keep only events in {city}. The location field MUST include the city name.
3. Deduplicate by artist or band, keeping the most relevant event for each performer.
4. Keep at most {_MAX_PER_SOURCE_URL} events per sourceUrl.
5. Keep only events with a real, verifiable sourceUrl. Do NOT add or invent events.
6. Score each event (0-100) by how well it matches this user profile:
{profile}
7. Return at most {self._limits.merge_max_events} events, highest score first.

Respect every exclusion listed in the profile.

Return a JSON object with an "events" array. Each event must have:
{_EVENT_FIELD_LIST}

Raw events to process:
{json.dumps(batch, ensure_ascii=False)}"""

    def _build_repair_prompt(
        self,
        issue: str,
        current: list[CandidateEvent],
        city: str,
        profile: str,
        sources: list[str],
    ) -> str:
        wanted = f"{self._limits.max_events}-{self._limits.merge_max_events}"
        if issue == _ISSUE_BROKEN_JSON:
            instruction = (
                "The previous scoring answer was not valid JSON. Score the candidate events "
                "below against the user profile and return them as valid JSON, adding real "
                "events you find through web search."
            )
        elif current:
            instruction = (
                f"You currently have {len(current)} events, but need {wanted}. Search for more "
                "real events that match the user profile and return them together with the "
                "current ones. If you cannot find more real events, return the current list as-is."
            )
        else:
            instruction = (
                "No events were found yet. Search for real events matching the user profile. "
                "If you cannot find any, return an empty array."
            )

        sources_text = ""
        if sources:
            sources_text = "\n\nThe user follows these event sources. Check them first:\n" + "\n".join(
                sources
            )
        current_text = ""
        if current:
            shown = [_event_payload(e) for e in current[: self._limits.merge_input_cap]]
            current_text = f"\n\nCurrent events ({len(current)}):\n" + json.dumps(
                shown, indent=2, ensure_ascii=False
            )

        return f"""{instruction}

User profile:
{profile}

City: {city}
{self._window_text()}
Only include events in {city}. The location field MUST include the city name.\
{sources_text}{current_text}

Return a JSON object with an "events" array ({wanted} events if you can find that many). \
Each event must have:
{_EVENT_FIELD_LIST}

Respect every exclusion listed in the profile. Deduplicate by artist or band. Keep at most \
{_MAX_PER_SOURCE_URL} events per sourceUrl. Never invent events; if few exist, return fewer."""

    def _build_source_prompt(
        self, source_url: str, source_name: str | None, effective_profile: str | None
    ) -> str:
        start, _, end = self._date_window()
        name_line = f"\nSource Name: {source_name}" if source_name else ""
        profile_text = (
            f"\n\nUser profile (use this to score events):\n"
            f"{self._truncate_profile(effective_profile)}"
            if effective_profile
            else ""
        )
        default = self._limits.source_default_score

        return f"""Visit this event source URL and find all upcoming events listed there:

Source URL: {source_url}{name_line}{profile_text}

Return a JSON object with an "events" array. Each event should have:
{_EVENT_FIELD_LIST}

If no profile is provided, use {default} as the score since the user explicitly added this source.
Only include events from {start.isoformat()} (tomorrow) through {end.isoformat()}.
If no events are found or the page doesn't contain events, return an empty array.
Only include events actually listed on the source page."""

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    def _extract_items(self, raw: str) -> list[Any]:
        """Return the event array of a raw answer.

        Accepts ``{"events": [...]}`` or a bare array at the root; any other
        shape raises :class:`DiscoveryParseError`.
        """
        try:
            payload: Any = extract_json(raw)
        except JSONExtractionError as exc:
            raise DiscoveryParseError(
                message=f"Could not parse discovery response: {exc.message}",
                provider_name=self._provider.get_provider_name(),
            ) from exc

        if isinstance(payload, dict) and isinstance(payload.get("events"), list):
            return payload["events"]
        if isinstance(payload, list):
            return payload
        raise DiscoveryParseError(
            message="Discovery response JSON has no \"events\" array",
            provider_name=self._provider.get_provider_name(),
        )

    def _to_candidates(
        self, items: Sequence[Any], default_score: int | None
    ) -> list[CandidateEvent]:
        events: list[CandidateEvent] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                event = CandidateEvent.model_validate(item)
            except ValidationError as exc:
                self._logger.debug("candidate_unparseable", error=str(exc))
                continue
            if event.score is None and default_score is not None:
                event = event.model_copy(update={"score": float(default_score)})
            events.append(event)
        return events

    def _parse_events(self, raw: str, default_score: int | None) -> list[CandidateEvent]:
        return self._to_candidates(self._extract_items(raw), default_score)

    def _within_window(self, events: list[CandidateEvent], path: str) -> list[CandidateEvent]:
        """Drop candidates dated after the last day of the discovery window.

        Undated candidates pass through; validation counts them as missing.
        """
        latest = self._today() + timedelta(days=self._limits.window_days)
        kept = [e for e in events if e.event_date is None or e.event_date <= latest]
        dropped = len(events) - len(kept)
        if dropped:
            self._logger.info(
                "discovery_window_dropped",
                path=path,
                dropped=dropped,
                latest=latest.isoformat(),
            )
        return kept
