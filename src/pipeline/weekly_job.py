"""Weekly batch job: generate and send a newsletter to every eligible user.

Users with a city and saved preferences are processed in fixed-size
batches with a pause between batches to stay under the discovery
endpoint's rate limits.  Within a batch users run one after another.  A
failure for one user is logged and recorded in the summary; it never stops
the job.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from src.interfaces.user_store import IUserStore
from src.models.pipeline import RunStatus, UserRunOutcome, WeeklyRunSummary
from src.services.newsletter_service import NewsletterService
from src.utils.concurrency import chunked
from src.utils.errors import EventDigestError
from src.utils.logging import bind_run_context, get_logger

logger = get_logger(__name__)


async def _process_user(service: NewsletterService, user_id: int) -> UserRunOutcome:
    with bind_run_context(user_id=user_id):
        try:
            newsletter, _ = await service.generate(user_id, scheduled=True)
            await service.send(user_id, newsletter.id)
        except EventDigestError as exc:
            logger.error(
                "weekly_user_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return UserRunOutcome(user_id=user_id, status=RunStatus.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception("weekly_user_crashed", error=str(exc))
            return UserRunOutcome(user_id=user_id, status=RunStatus.FAILED, error=str(exc))

        logger.info("weekly_user_sent", newsletter_id=newsletter.id)
        return UserRunOutcome(
            user_id=user_id, status=RunStatus.SENT, newsletter_id=newsletter.id
        )


async def run_weekly(
    user_store: IUserStore,
    newsletter_service: NewsletterService,
    batch_size: int = 10,
    batch_delay_seconds: float = 60.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> WeeklyRunSummary:
    """Run the weekly job once and return a per-user summary."""
    started_at = datetime.now(tz=timezone.utc)  # noqa: UP017
    users = await user_store.list_newsletter_recipients()
    batches = list(chunked(users, batch_size))
    logger.info("weekly_run_start", users=len(users), batches=len(batches))

    outcomes: list[UserRunOutcome] = []
    for index, batch in enumerate(batches):
        if index > 0 and batch_delay_seconds > 0:
            logger.info("weekly_batch_delay", seconds=batch_delay_seconds)
            await sleep(batch_delay_seconds)
        logger.info("weekly_batch_start", batch=index + 1, size=len(batch))
        for user in batch:
            outcomes.append(await _process_user(newsletter_service, user.id))

    summary = WeeklyRunSummary(
        started_at=started_at,
        finished_at=datetime.now(tz=timezone.utc),  # noqa: UP017
        batches=len(batches),
        outcomes=outcomes,
    )
    logger.info("weekly_run_complete", sent=summary.sent, failed=summary.failed)
    return summary
