"""Custom exception hierarchy for the event digest service.

All application exceptions inherit from :class:`EventDigestError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "perplexity", "resend", "sqlite") caused the failure.

Each class also declares an ``http_status``.  The API middleware uses it to
turn an exception into a response, so the user-facing status is carried by
the error's type rather than by a separate field:

    EventDigestError  (base, 500)
    +-- ConfigurationError          (missing API key / sender address)
    +-- PreconditionError     400   (user or data state prevents the request)
    |   +-- NewsletterLimitError
    |   +-- NewsletterAlreadySentError
    +-- NotFoundError         404
    +-- DuplicateSourceError  409
    +-- NoEventsFoundError    400   (pipeline ran but nothing survived)
    +-- DiscoveryError        502   (AI search endpoint failed)
    |   +-- DiscoveryAuthError      (401 / 403)
    |   +-- DiscoveryQuotaError     (402 / 429 / other quota 4xx)
    |   +-- DiscoveryNetworkError   (no response, timeout)
    |   +-- DiscoveryParseError     (no usable JSON in the response)
    +-- JSONExtractionError         (typed failure of utils.json_extract)
    +-- EmailDeliveryError    502

``NoEventsFoundError`` is a business outcome, not a transport failure, and is
kept outside the ``DiscoveryError`` branch so logs and callers
can tell the two apart.
"""


class EventDigestError(Exception):
    """Base exception for all event digest errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[perplexity] Rate limit exceeded``.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / user-state errors
# ---------------------------------------------------------------------------

class ConfigurationError(EventDigestError):
    """Raised when configuration is invalid or missing (API keys, sender)."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PreconditionError(EventDigestError):
    """Raised when the user's data state does not allow the operation.

    Examples: no city set, no profile after a regeneration attempt,
    invalid exclusion type.  Surfaced verbatim to the caller, never retried.
    """

    http_status = 400

    def __init__(
        self,
        message: str = "Request cannot be processed in the current state",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NewsletterLimitError(PreconditionError):
    """Raised when a user has reached the manual newsletter generation limit."""


class NewsletterAlreadySentError(PreconditionError):
    """Raised when sending a newsletter whose ``sent_at`` is already stamped."""


class NotFoundError(EventDigestError):
    """Raised when a user-owned record (user, rule, source, newsletter) is missing."""

    http_status = 404

    def __init__(
        self,
        message: str = "Not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DuplicateSourceError(EventDigestError):
    """Raised when a user adds an event source URL they already follow."""

    http_status = 409

    def __init__(
        self,
        message: str = "This event source is already added",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NoEventsFoundError(EventDigestError):
    """Raised when a discovery run finishes with zero selectable events."""

    http_status = 400

    def __init__(
        self,
        message: str = "No valid events found for user",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Upstream discovery errors
# ---------------------------------------------------------------------------

class DiscoveryError(EventDigestError):
    """Raised when the AI search endpoint fails for a load-bearing call."""

    http_status = 502

    def __init__(
        self,
        message: str = "Event discovery failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DiscoveryAuthError(DiscoveryError):
    """The endpoint rejected our credentials (401 / 403)."""


class DiscoveryQuotaError(DiscoveryError):
    """The endpoint refused the call for quota or rate reasons (402 / 429)."""


class DiscoveryNetworkError(DiscoveryError):
    """No response was received (connection refused, DNS, timeout)."""


class DiscoveryParseError(DiscoveryError):
    """The endpoint answered but no usable JSON payload could be extracted."""


class JSONExtractionError(EventDigestError):
    """Raised by :func:`src.utils.json_extract.extract_json` on unparseable text."""

    def __init__(
        self,
        message: str = "No valid JSON found in text",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Delivery errors
# ---------------------------------------------------------------------------

class EmailDeliveryError(EventDigestError):
    """Raised when the email provider rejects a message or is unreachable."""

    http_status = 502

    def __init__(
        self,
        message: str = "Failed to send email",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
