"""Twilio SMS notifier — calls the Messages REST API directly."""

from __future__ import annotations

import logging

import httpx

from otp_gateway.core.errors import DeliveryError
from otp_gateway.notifiers.base import MessageTemplate, Notifier

logger = logging.getLogger(__name__)


class TwilioSmsNotifier(Notifier):
    """Sends passcode text messages from a Twilio number."""

    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
        template: MessageTemplate | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._template = template or MessageTemplate()
        self._transport = transport

    @property
    def name(self) -> str:
        return "twilio"

    async def send(self, subject: str, code: str) -> None:
        """Send the passcode to the E.164 number *subject*.

        Returns nothing on success; the message SID is logged.
        """
        url = f"{self._base_url}/Accounts/{self._account_sid}/Messages.json"
        data = {"To": subject, "From": self._from_number, "Body": self._template.sms_body(code)}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, data=data, auth=(self._account_sid, self._auth_token))
        except httpx.HTTPError as exc:
            logger.error("Twilio request error for %s: %s", subject, exc)
            raise DeliveryError("Failed to send OTP SMS") from exc

        if not resp.is_success:
            logger.error("Twilio rejected SMS to %s: %s %s", subject, resp.status_code, resp.text)
            raise DeliveryError(f"Twilio returned {resp.status_code}")

        # Already accepted; an unparseable body only costs us the SID.
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        sid = payload.get("sid") if isinstance(payload, dict) else None
        logger.info("OTP SMS queued for %s (sid %s)", subject, sid)
