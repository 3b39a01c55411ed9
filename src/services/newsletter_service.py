"""Newsletter assembly and delivery.

Generation runs the discovery pipeline for one user, renders the HTML body
and stores the newsletter with ordered references to the persisted events.
Sending is a separate step so a failed delivery can be retried without
re-running discovery.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

from src.interfaces.email_provider import IEmailProvider
from src.interfaces.newsletter_store import INewsletterStore
from src.interfaces.user_store import IUserStore
from src.models.event import StoredEvent
from src.models.newsletter import Newsletter
from src.models.pipeline import DiscoveryResult
from src.services.newsletter_renderer import MAX_RENDERED_EVENTS, render_newsletter_html
from src.utils.errors import (
    NewsletterAlreadySentError,
    NewsletterLimitError,
    NoEventsFoundError,
    NotFoundError,
)
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.pipeline.orchestrator import EventDiscoveryPipeline

SUBJECT_PREFIX = "Your Weekly Local Events (Next 30 Days)"


def unique_event_ids(events: list[StoredEvent]) -> list[int]:
    """Event ids in order, first occurrence wins."""
    seen: set[int] = set()
    ids: list[int] = []
    for event in events:
        if event.id not in seen:
            seen.add(event.id)
            ids.append(event.id)
    return ids


class NewsletterService:
    """Generates, stores and sends newsletters for one user at a time."""

    def __init__(
        self,
        user_store: IUserStore,
        newsletter_store: INewsletterStore,
        email_provider: IEmailProvider,
        pipeline: EventDiscoveryPipeline,
        frontend_url: str,
        limit_per_user: int = 5,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._users = user_store
        self._newsletters = newsletter_store
        self._email = email_provider
        self._pipeline = pipeline
        self._frontend_url = frontend_url
        self._limit = limit_per_user
        self._today = today or date.today
        self._logger = get_logger(__name__)

    async def list_newsletters(self, user_id: int) -> list[Newsletter]:
        return await self._newsletters.list_newsletters(user_id)

    async def generate(
        self, user_id: int, scheduled: bool = False
    ) -> tuple[Newsletter, DiscoveryResult]:
        """Discover events and store a rendered newsletter.

        Manual generation is limited per user; the weekly job passes
        ``scheduled=True`` to bypass the limit.
        """
        if not scheduled:
            count = await self._newsletters.count_for_user(user_id)
            if count >= self._limit:
                raise NewsletterLimitError(
                    f"You've reached the limit of {self._limit} newsletters. "
                    "Contact support to request more."
                )

        result = await self._pipeline.discover_for_user(user_id)
        if not result.events:
            raise NoEventsFoundError()

        user = await self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        events = result.events[:MAX_RENDERED_EVENTS]
        html = render_newsletter_html(user.name or user.email, events, self._frontend_url)
        event_ids = unique_event_ids(events)
        if len(event_ids) < len(events):
            self._logger.info(
                "newsletter_duplicate_events_skipped",
                user_id=user_id,
                skipped=len(events) - len(event_ids),
            )

        subject = f"{SUBJECT_PREFIX} - {self._today().isoformat()}"
        newsletter = await self._newsletters.create_newsletter(
            user_id, subject, html, event_ids
        )
        self._logger.info(
            "newsletter_generated",
            user_id=user_id,
            newsletter_id=newsletter.id,
            events=len(event_ids),
            scheduled=scheduled,
        )
        return newsletter, result

    async def send(self, user_id: int, newsletter_id: int) -> Newsletter:
        """Email a stored newsletter; ``sent_at`` is set only after delivery succeeds."""
        newsletter = await self._newsletters.get_newsletter(user_id, newsletter_id)
        if newsletter is None:
            raise NotFoundError("Newsletter not found")
        if newsletter.is_sent:
            raise NewsletterAlreadySentError("This newsletter has already been sent.")

        user = await self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        message_id = await self._email.send_email(
            to=user.email, subject=newsletter.subject, html=newsletter.html_content
        )

        sent_at = datetime.now(tz=timezone.utc)  # noqa: UP017
        await self._newsletters.mark_sent(newsletter.id, sent_at)
        self._logger.info(
            "newsletter_sent",
            user_id=user_id,
            newsletter_id=newsletter.id,
            message_id=message_id,
        )
        return newsletter.model_copy(update={"sent_at": sent_at})
