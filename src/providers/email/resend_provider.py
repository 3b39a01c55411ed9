"""Resend transactional email provider.

Talks to the Resend REST API (``POST /emails``) with an injected
``httpx.AsyncClient`` for testability and connection pooling.  Both the API
key and the sender address are required; the sender's domain must be
verified in Resend.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.config.settings import Settings
from src.interfaces.email_provider import IEmailProvider
from src.utils.errors import ConfigurationError, EmailDeliveryError
from src.utils.logging import get_logger

_PROVIDER_NAME = "resend"
_REQUEST_TIMEOUT = 30.0
_PLACEHOLDER_KEYS = {"", "your-resend-api-key-here"}
_PLACEHOLDER_SENDERS = {"", "noreply@example.com"}


class ResendEmailProvider(IEmailProvider):
    """Email delivery backed by the Resend API.

    Parameters
    ----------
    settings:
        Supplies ``resend_api_key``, ``resend_base_url`` and ``from_email``.
    http_client:
        Injected ``httpx.AsyncClient``.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._api_key = settings.resend_api_key.strip()
        self._from_email = settings.from_email.strip()
        self._endpoint = settings.resend_base_url.rstrip("/") + "/emails"
        self._http = http_client
        self._logger = get_logger(__name__)

    def _check_configured(self) -> None:
        if self._api_key in _PLACEHOLDER_KEYS:
            raise ConfigurationError(
                message="RESEND_API_KEY not configured. Please add your Resend API key "
                "to the .env file. Get one at https://resend.com/",
                provider_name=_PROVIDER_NAME,
            )
        if self._from_email in _PLACEHOLDER_SENDERS:
            raise ConfigurationError(
                message="FROM_EMAIL not configured or using placeholder. Please set a "
                "valid FROM_EMAIL in .env. The domain must be verified in Resend.",
                provider_name=_PROVIDER_NAME,
            )

    async def send_email(self, to: str, subject: str, html: str) -> str:
        self._check_configured()

        payload: dict[str, Any] = {
            "from": self._from_email,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            response = await self._http.post(
                self._endpoint, json=payload, headers=headers, timeout=_REQUEST_TIMEOUT
            )
        except httpx.HTTPError as exc:
            self._logger.error("email_request_failed", error=str(exc))
            raise EmailDeliveryError(
                message=f"Failed to send email: {exc}", provider_name=_PROVIDER_NAME
            ) from exc

        if response.status_code >= 400:
            try:
                body = response.json()
                detail = (body.get("message") if isinstance(body, dict) else None) or str(body)
            except ValueError:
                detail = response.text or f"HTTP {response.status_code}"
            self._logger.error("email_rejected", status=response.status_code, detail=detail)
            raise EmailDeliveryError(
                message=f"Failed to send email: {detail}", provider_name=_PROVIDER_NAME
            )

        message_id = str(response.json().get("id", ""))
        self._logger.info("email_sent", message_id=message_id, subject=subject)
        return message_id

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return (
            self._api_key not in _PLACEHOLDER_KEYS
            and self._from_email not in _PLACEHOLDER_SENDERS
        )
