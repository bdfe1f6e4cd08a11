"""Notifier dispatcher — routes a challenge to its channel's notifier."""

from __future__ import annotations

import asyncio
import logging

from otp_gateway.config import Settings
from otp_gateway.core.errors import DeliveryError
from otp_gateway.core.models import Challenge, Channel
from otp_gateway.notifiers.base import MessageTemplate, Notifier
from otp_gateway.notifiers.console import ConsoleNotifier
from otp_gateway.notifiers.http_email import HttpEmailNotifier
from otp_gateway.notifiers.smtp import SmtpEmailNotifier
from otp_gateway.notifiers.twilio_sms import TwilioSmsNotifier

logger = logging.getLogger(__name__)


class NotifierDispatcher:
    """Maps each :class:`Channel` to the notifier that serves it.

    Only delivery success matters here; provider detail stays inside
    the notifiers and the logs.
    """

    def __init__(self, notifiers: dict[Channel, Notifier], timeout: float = 10.0) -> None:
        self._notifiers = notifiers
        self._timeout = timeout

    def notifier_for(self, channel: Channel) -> Notifier:
        try:
            return self._notifiers[channel]
        except KeyError:
            raise DeliveryError(f"No notifier configured for {channel.value}") from None

    async def send(self, challenge: Challenge) -> None:
        """Deliver *challenge*'s code; raises :class:`DeliveryError` on failure."""
        notifier = self.notifier_for(challenge.channel)
        try:
            await asyncio.wait_for(notifier.send(challenge.subject, challenge.code), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("%s timed out delivering to %s", notifier.name, challenge.subject)
            raise DeliveryError("Notifier timed out") from exc
        except DeliveryError:
            raise
        except Exception as exc:
            logger.exception("%s failed unexpectedly delivering to %s", notifier.name, challenge.subject)
            raise DeliveryError("Notifier failed") from exc


def build_email_notifier(settings: Settings, template: MessageTemplate) -> Notifier:
    provider = settings.email_provider.lower()
    if provider == "console":
        return ConsoleNotifier("email")
    if provider == "smtp":
        return SmtpEmailNotifier(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            start_tls=settings.smtp_start_tls,
            timeout=settings.notifier_timeout_seconds,
            template=template,
        )
    if provider == "http":
        return HttpEmailNotifier(
            api_url=settings.email_api_url,
            api_key=settings.email_api_key,
            sender=settings.email_from,
            timeout=settings.notifier_timeout_seconds,
            template=template,
        )
    raise ValueError(f"Unknown email provider {settings.email_provider!r}")


def build_sms_notifier(settings: Settings, template: MessageTemplate) -> Notifier:
    provider = settings.sms_provider.lower()
    if provider == "console":
        return ConsoleNotifier("sms")
    if provider == "twilio":
        return TwilioSmsNotifier(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            base_url=settings.twilio_api_base_url,
            timeout=settings.notifier_timeout_seconds,
            template=template,
        )
    raise ValueError(f"Unknown SMS provider {settings.sms_provider!r}")


def build_dispatcher(settings: Settings) -> NotifierDispatcher:
    """Create the dispatcher for the configured email and SMS providers."""
    template = MessageTemplate(
        app_name=settings.app_name,
        ttl_minutes=max(settings.otp_ttl_seconds // 60, 1),
    )
    notifiers = {
        Channel.EMAIL: build_email_notifier(settings, template),
        Channel.SMS: build_sms_notifier(settings, template),
    }
    logger.info(
        "Notifiers: email=%s sms=%s",
        notifiers[Channel.EMAIL].name,
        notifiers[Channel.SMS].name,
    )
    # Provider timeouts apply per request; leave headroom for connect + send.
    return NotifierDispatcher(notifiers, timeout=settings.notifier_timeout_seconds * 2)
