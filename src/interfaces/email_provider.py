"""Abstract base class for outbound email delivery providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: ResendEmailProvider
# Located in: src/providers/email/
class IEmailProvider(ABC):
    """Contract for transactional email delivery."""

    @abstractmethod
    async def send_email(self, to: str, subject: str, html: str) -> str:
        """Send one HTML email.

        Returns
        -------
        str
            The provider's message id.

        Raises
        ------
        src.utils.errors.ConfigurationError
            If the API key or sender address is not configured.
        src.utils.errors.EmailDeliveryError
            If the provider rejected the message or was unreachable.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"resend"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured (no network call)."""
