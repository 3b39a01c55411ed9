"""Abstract base class for AI search (web-grounded LLM) providers.

Defines the contract for the external endpoint that answers natural-language
instructions with free text, optionally containing JSON.  Event discovery and
profile generation both go through this interface, so the pipeline stages can
be exercised against a fake provider without network access.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: PerplexitySearchProvider
# Located in: src/providers/ai_search/
class IAISearchProvider(ABC):
    """Contract for the AI search endpoint used by discovery and profiling."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        """Send one chat-style request and return the raw response text.

        Parameters
        ----------
        system_prompt:
            The instruction message that sets the model's behaviour.
        user_prompt:
            The request itself (city, profile, desired JSON shape...).
        model:
            Model override; the provider's default model when ``None``.
        temperature:
            Sampling temperature.

        Returns
        -------
        str
            The unparsed response content.

        Raises
        ------
        src.utils.errors.ConfigurationError
            If the provider has no API key.
        src.utils.errors.DiscoveryAuthError
            On 401 / 403 responses.
        src.utils.errors.DiscoveryQuotaError
            On 402 / 429 and other quota-type client errors.
        src.utils.errors.DiscoveryNetworkError
            If no response was received.
        src.utils.errors.DiscoveryParseError
            If the response carried no content.
        src.utils.errors.DiscoveryError
            For any other upstream failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"perplexity"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured (no network call)."""
