"""User profile synthesis and the settings it is derived from.

The profile is a short plain-text description of what the user likes,
generated by the AI search endpoint from their city, preference lists and
event sources.  Anything that changes those inputs (city, preferences,
sources) marks the stored profile dirty; the discovery pipeline
regenerates a dirty or missing profile before searching.
"""

from __future__ import annotations

from src.interfaces.ai_search_provider import IAISearchProvider
from src.interfaces.event_source_store import IEventSourceStore
from src.interfaces.user_store import IUserStore
from src.models.user import EventSource, User, UserPreferences
from src.utils.errors import EventDigestError, NotFoundError, PreconditionError
from src.utils.logging import get_logger
from src.utils.text_normalizer import strip_markdown_artifacts

# Prompt-size guards: the endpoint rejects very long prompts.
_MAX_INTERESTS = 20
_MAX_GENRES_AND_TYPES = 30
_MAX_ARTISTS = 20
_MAX_VENUES = 15
_MAX_SOURCES = 10

_PROFILE_SYSTEM_PROMPT = (
    "You are an assistant that creates concise user profiles for event discovery. "
    "Based on the user's preferences provided below, create a brief, clear profile "
    "that describes their interests and preferences. Keep it simple and direct. "
    "Focus on the key information: their interests, genres, event types, artists, "
    "and venues.\n\n"
    "The profile should be written in natural language and be suitable for use as a "
    "prompt to find relevant events.\n\n"
    "IMPORTANT: Return plain text only. Do not use markdown formatting (no **, no *, "
    "no code blocks). Do not include any meta-commentary; output only the profile text."
)


def _joined(values: list[str]) -> str:
    return ", ".join(values) if values else "none specified"


def build_profile_prompt(
    city: str, preferences: UserPreferences, sources: list[EventSource]
) -> str:
    """Render the user prompt for profile generation, with list limits applied."""
    genres_and_types = (
        preferences.genres[:_MAX_GENRES_AND_TYPES]
        + preferences.event_types[:_MAX_GENRES_AND_TYPES]
    )
    source_urls = [s.url for s in sources[:_MAX_SOURCES]]

    return (
        f"I live in {city}.\n\n"
        f"My interests: {_joined(preferences.interests[:_MAX_INTERESTS])}\n\n"
        f"My preferred genres and event types: {_joined(genres_and_types)}\n\n"
        f"Artists I like:\n{_joined(preferences.artists[:_MAX_ARTISTS])}\n\n"
        f"Venues in {city} where I like to go:\n{_joined(preferences.venues[:_MAX_VENUES])}\n\n"
        f"Direct links to event pages I follow:\n{_joined(source_urls)}"
    )


class ProfileService:
    """Owns the profile text and every write that invalidates it."""

    def __init__(
        self,
        user_store: IUserStore,
        source_store: IEventSourceStore,
        search_provider: IAISearchProvider,
        profile_model: str | None = None,
    ) -> None:
        self._users = user_store
        self._sources = source_store
        self._provider = search_provider
        self._model = profile_model
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Profile read / regenerate (consumed by the discovery pipeline)
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: int) -> str | None:
        user = await self._require_user(user_id)
        return user.profile

    async def is_profile_dirty(self, user_id: int) -> bool:
        user = await self._require_user(user_id)
        return user.profile_dirty

    async def regenerate_profile(self, user_id: int) -> str | None:
        """Generate and store a fresh profile.

        Returns ``None`` without calling the endpoint when the user has no
        city or no preferences yet.  Endpoint failures are logged and also
        yield ``None``; the stored profile (if any) is left untouched.
        """
        user = await self._require_user(user_id)
        if not user.city:
            self._logger.info("profile_generation_skipped", user_id=user_id, reason="no_city")
            return None

        preferences = await self._users.get_preferences(user_id)
        if not user.has_preferences:
            self._logger.info(
                "profile_generation_skipped", user_id=user_id, reason="no_preferences"
            )
            return None

        sources = await self._sources.list_sources(user_id)
        prompt = build_profile_prompt(user.city, preferences, sources)

        try:
            raw = await self._provider.complete(
                _PROFILE_SYSTEM_PROMPT, prompt, model=self._model, temperature=0.7
            )
        except EventDigestError as exc:
            self._logger.error(
                "profile_generation_failed",
                user_id=user_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        profile = strip_markdown_artifacts(raw)
        if not profile:
            self._logger.warning("profile_generation_empty", user_id=user_id)
            return None

        await self._users.save_profile(user_id, profile)
        self._logger.info("profile_generated", user_id=user_id, chars=len(profile))
        return profile

    # ------------------------------------------------------------------
    # Writes that invalidate the profile
    # ------------------------------------------------------------------

    async def set_city(self, user_id: int, city: str) -> User:
        city = city.strip()
        if not city:
            raise PreconditionError("City must not be empty")
        return await self._users.set_city(user_id, city)

    async def set_preferences(
        self, user_id: int, preferences: UserPreferences
    ) -> UserPreferences:
        cleaned = UserPreferences(
            **{
                field: _dedupe_clean(getattr(preferences, field))
                for field in UserPreferences.model_fields
            }
        )
        return await self._users.set_preferences(user_id, cleaned)

    async def list_sources(self, user_id: int) -> list[EventSource]:
        await self._require_user(user_id)
        return await self._sources.list_sources(user_id)

    async def add_source(self, user_id: int, url: str, name: str | None = None) -> EventSource:
        await self._require_user(user_id)
        url = url.strip()
        if not url:
            raise PreconditionError("Event source URL must not be empty")
        source = await self._sources.add_source(user_id, url, (name or "").strip() or None)
        await self._users.mark_profile_dirty(user_id)
        return source

    async def delete_source(self, user_id: int, source_id: int) -> None:
        if not await self._sources.delete_source(user_id, source_id):
            raise NotFoundError("Event source not found")
        await self._users.mark_profile_dirty(user_id)

    async def _require_user(self, user_id: int) -> User:
        user = await self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user


def _dedupe_clean(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        stripped = value.strip()
        if stripped and stripped.lower() not in seen:
            seen.add(stripped.lower())
            result.append(stripped)
    return result
