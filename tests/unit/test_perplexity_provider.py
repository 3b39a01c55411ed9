"""Unit tests for the Perplexity adapter's request shape and error mapping."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.providers.ai_search.perplexity_provider import PerplexitySearchProvider
from src.utils.errors import (
    ConfigurationError,
    DiscoveryAuthError,
    DiscoveryError,
    DiscoveryNetworkError,
    DiscoveryParseError,
    DiscoveryQuotaError,
)

_URL = "https://api.perplexity.ai/chat/completions"


def _request() -> httpx.Request:
    return httpx.Request("POST", _URL)


def _response(status: int, body: dict | None = None) -> httpx.Response:
    return httpx.Response(status, request=_request(), json=body or {})


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=123),
    )


def _provider(settings: Settings, side_effect=None, content: str | None = "{}"):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=side_effect, return_value=_completion(content)
    )
    return PerplexitySearchProvider(settings, client=client), client


class TestPerplexityProvider:
    def test_provider_name_and_availability(self, settings: Settings) -> None:
        provider = PerplexitySearchProvider(settings)
        assert provider.get_provider_name() == "perplexity"
        assert provider.is_available() is True

    @pytest.mark.parametrize("key", ["", "   ", "your-perplexity-api-key-here"])
    def test_unconfigured_key_is_unavailable(self, key: str) -> None:
        provider = PerplexitySearchProvider(Settings(_env_file=None, perplexity_api_key=key))
        assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self) -> None:
        provider = PerplexitySearchProvider(Settings(_env_file=None, perplexity_api_key=""))
        with pytest.raises(ConfigurationError, match="PERPLEXITY_API_KEY not configured"):
            await provider.complete("sys", "user")

    @pytest.mark.asyncio
    async def test_complete_sends_messages_and_returns_content(self, settings: Settings) -> None:
        provider, client = _provider(settings, content='{"events": []}')

        result = await provider.complete("system text", "user text", model="sonar", temperature=0.3)

        assert result == '{"events": []}'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "sonar"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]

    @pytest.mark.asyncio
    async def test_default_model_from_settings(self, settings: Settings) -> None:
        provider, client = _provider(settings)
        await provider.complete("s", "u")
        assert client.chat.completions.create.call_args.kwargs["model"] == settings.discovery_model

    @pytest.mark.asyncio
    async def test_empty_content_is_parse_error(self, settings: Settings) -> None:
        provider, _ = _provider(settings, content="")
        with pytest.raises(DiscoveryParseError, match="Empty response"):
            await provider.complete("s", "u")


class TestErrorClassification:
    @pytest.mark.asyncio
    async def test_401_is_auth_error(self, settings: Settings) -> None:
        exc = openai.AuthenticationError(
            "Invalid API key", response=_response(401), body=None
        )
        provider, _ = _provider(settings, side_effect=exc)

        with pytest.raises(DiscoveryAuthError) as info:
            await provider.complete("s", "u")

        assert "Invalid Perplexity API key (401)" in info.value.message
        assert info.value.http_status == 502

    @pytest.mark.asyncio
    async def test_403_is_auth_error(self, settings: Settings) -> None:
        exc = openai.PermissionDeniedError("Forbidden", response=_response(403), body=None)
        provider, _ = _provider(settings, side_effect=exc)
        with pytest.raises(DiscoveryAuthError):
            await provider.complete("s", "u")

    @pytest.mark.asyncio
    async def test_429_is_quota_error_with_body_message(self, settings: Settings) -> None:
        body = {"error": {"message": "Rate limit exceeded"}}
        exc = openai.RateLimitError("429", response=_response(429, body), body=body)
        provider, _ = _provider(settings, side_effect=exc)

        with pytest.raises(DiscoveryQuotaError, match="Rate limit exceeded"):
            await provider.complete("s", "u")

    @pytest.mark.asyncio
    async def test_402_is_quota_error(self, settings: Settings) -> None:
        exc = openai.APIStatusError(
            "Payment required", response=_response(402), body={"detail": "Out of credits"}
        )
        provider, _ = _provider(settings, side_effect=exc)
        with pytest.raises(DiscoveryQuotaError, match=r"\(402\): Out of credits"):
            await provider.complete("s", "u")

    @pytest.mark.asyncio
    async def test_500_is_generic_discovery_error(self, settings: Settings) -> None:
        exc = openai.InternalServerError("boom", response=_response(500), body=None)
        provider, _ = _provider(settings, side_effect=exc)

        with pytest.raises(DiscoveryError) as info:
            await provider.complete("s", "u")

        assert not isinstance(info.value, DiscoveryQuotaError)
        assert not isinstance(info.value, DiscoveryAuthError)

    @pytest.mark.asyncio
    async def test_connection_error_is_network_error(self, settings: Settings) -> None:
        exc = openai.APIConnectionError(request=_request())
        provider, _ = _provider(settings, side_effect=exc)
        with pytest.raises(DiscoveryNetworkError, match="No response from Perplexity API"):
            await provider.complete("s", "u")

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, settings: Settings) -> None:
        exc = openai.APITimeoutError(request=_request())
        provider, _ = _provider(settings, side_effect=exc)
        with pytest.raises(DiscoveryNetworkError, match="timed out after 60s"):
            await provider.complete("s", "u")
