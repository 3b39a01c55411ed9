"""Utility modules for the event digest service.

Available utility modules (re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at
  EventDigestError; each class carries the HTTP status the API surfaces.
- **concurrency** -- Semaphore-bounded ``throttled_gather`` for source
  crawls and upserts, plus ``chunked`` for the weekly batch job.
- **json_extract** -- Recover a JSON payload from fenced / prefixed
  AI-search responses, or raise a typed JSONExtractionError.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Title normalization for deduplication and
  cleanup of markdown artifacts in plain-text AI answers.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DiscoveryAuthError,
    DiscoveryError,
    DiscoveryNetworkError,
    DiscoveryParseError,
    DiscoveryQuotaError,
    DuplicateSourceError,
    EmailDeliveryError,
    EventDigestError,
    JSONExtractionError,
    NewsletterAlreadySentError,
    NewsletterLimitError,
    NoEventsFoundError,
    NotFoundError,
    PreconditionError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import chunked, throttled_gather

# -- JSON recovery from AI responses ---------------------------------------
from src.utils.json_extract import extract_json

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import bind_run_context, configure_logging, get_logger

# -- Text normalization -----------------------------------------------------
from src.utils.text_normalizer import clean_optional, normalize_title, strip_markdown_artifacts

__all__ = [
    "ConfigurationError",
    "DiscoveryAuthError",
    "DiscoveryError",
    "DiscoveryNetworkError",
    "DiscoveryParseError",
    "DiscoveryQuotaError",
    "DuplicateSourceError",
    "EmailDeliveryError",
    "EventDigestError",
    "JSONExtractionError",
    "NewsletterAlreadySentError",
    "NewsletterLimitError",
    "NoEventsFoundError",
    "NotFoundError",
    "PreconditionError",
    "bind_run_context",
    "chunked",
    "clean_optional",
    "configure_logging",
    "extract_json",
    "get_logger",
    "normalize_title",
    "strip_markdown_artifacts",
    "throttled_gather",
]
