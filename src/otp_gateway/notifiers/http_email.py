"""Transactional email API notifier (SendGrid v3 ``mail/send`` payload)."""

from __future__ import annotations

import logging

import httpx

from otp_gateway.core.errors import DeliveryError
from otp_gateway.notifiers.base import MessageTemplate, Notifier

logger = logging.getLogger(__name__)


class HttpEmailNotifier(Notifier):
    """Async HTTP wrapper around a transactional email provider."""

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        sender: str,
        timeout: float = 10.0,
        template: MessageTemplate | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._template = template or MessageTemplate()
        self._transport = transport

    @property
    def name(self) -> str:
        return "http-email"

    def build_payload(self, to_email: str, code: str) -> dict:
        return {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self._sender},
            "subject": self._template.email_subject,
            "content": [{"type": "text/plain", "value": self._template.email_body(code)}],
        }

    async def send(self, subject: str, code: str) -> None:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._api_url, json=self.build_payload(subject, code), headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Email API request error for %s: %s", subject, exc)
            raise DeliveryError("Failed to send OTP email") from exc

        if not resp.is_success:
            logger.error("Email API rejected message to %s: %s %s", subject, resp.status_code, resp.text)
            raise DeliveryError(f"Email API returned {resp.status_code}")

        logger.info("OTP email accepted by provider for %s", subject)
