"""Perplexity AI search provider adapter.

Perplexity's chat completions endpoint is OpenAI-compatible, so this adapter
wraps the ``openai`` async client pointed at ``https://api.perplexity.ai``
and implements :class:`IAISearchProvider`.

Its main job beyond forwarding the request is error classification: every
SDK exception is translated into the discovery error taxonomy so callers
can tell an invalid key from an exhausted quota, a dead network, or an
empty answer without importing ``openai`` themselves.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.ai_search_provider import IAISearchProvider
from src.utils.errors import (
    ConfigurationError,
    DiscoveryAuthError,
    DiscoveryError,
    DiscoveryNetworkError,
    DiscoveryParseError,
    DiscoveryQuotaError,
)

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "perplexity"
_PLACEHOLDER_KEYS = {"", "your-perplexity-api-key-here"}


def _status_message(exc: openai.APIStatusError) -> str:
    """Pull the most specific human-readable message out of an error body."""
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
        if body.get("detail"):
            return str(body["detail"])
    return exc.message or "API error"


class PerplexitySearchProvider(IAISearchProvider):
    """AI search provider backed by Perplexity's OpenAI-compatible API.

    The client is constructed from explicit settings, or injected directly
    (tests pass a mock with ``chat.completions.create`` configured).
    """

    def __init__(
        self,
        settings: Settings,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = settings.perplexity_api_key.strip()
        self._default_model = settings.discovery_model
        self._timeout_seconds = settings.discovery_timeout_seconds

        if client is None and self.is_available():
            client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=settings.perplexity_base_url,
                timeout=openai.Timeout(self._timeout_seconds, connect=10.0),
                max_retries=1,
            )
        self._client = client

    # ------------------------------------------------------------------
    # IAISearchProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        if self._client is None:
            raise ConfigurationError(
                message="PERPLEXITY_API_KEY not configured. "
                "Please add your Perplexity API key to the .env file.",
                provider_name=_PROVIDER_NAME,
            )

        model_name = model or self._default_model
        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
            )
        except openai.APITimeoutError as exc:
            raise DiscoveryNetworkError(
                message=f"Perplexity API timed out after {self._timeout_seconds:g}s",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except openai.APIConnectionError as exc:
            raise DiscoveryNetworkError(
                message="No response from Perplexity API. Check your internet connection.",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise DiscoveryAuthError(
                message=f"Invalid Perplexity API key ({exc.status_code}). "
                "Please check your PERPLEXITY_API_KEY in .env",
                provider_name=_PROVIDER_NAME,
            ) from exc
        except openai.APIStatusError as exc:
            status = exc.status_code
            message = f"Perplexity API error ({status}): {_status_message(exc)}"
            if 400 <= status < 500:
                # 402 payment required, 429 rate limit, and the endpoint's
                # other 4xx quota/validation refusals.
                raise DiscoveryQuotaError(message=message, provider_name=_PROVIDER_NAME) from exc
            raise DiscoveryError(message=message, provider_name=_PROVIDER_NAME) from exc
        except openai.APIError as exc:
            raise DiscoveryError(
                message=f"Perplexity API error: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise DiscoveryParseError(
                message="Empty response from Perplexity API",
                provider_name=_PROVIDER_NAME,
            )

        logger.info(
            "perplexity_completion",
            model=model_name,
            chars=len(content),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return self._api_key not in _PLACEHOLDER_KEYS
