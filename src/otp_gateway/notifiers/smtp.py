"""SMTP email notifier — sends passcodes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from otp_gateway.core.errors import DeliveryError
from otp_gateway.notifiers.base import MessageTemplate, Notifier

logger = logging.getLogger(__name__)


class SmtpEmailNotifier(Notifier):
    """Sends passcode emails through the configured SMTP server."""

    def __init__(
        self,
        *,
        hostname: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        start_tls: bool = True,
        timeout: float = 10.0,
        template: MessageTemplate | None = None,
    ) -> None:
        self._hostname = hostname
        self._port = port
        self._sender = sender
        self._username = username or None
        self._password = password or None
        self._start_tls = start_tls
        self._timeout = timeout
        self._template = template or MessageTemplate()

    @property
    def name(self) -> str:
        return "smtp"

    def build_message(self, to_email: str, code: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self._template.email_subject
        msg["From"] = self._sender
        msg["To"] = to_email
        msg.set_content(self._template.email_body(code))
        return msg

    async def send(self, subject: str, code: str) -> None:
        """Send the passcode email to *subject*.

        Raises
        ------
        DeliveryError
            If the SMTP exchange fails or the server is unreachable.
        """
        msg = self.build_message(subject, code)
        logger.info("Sending OTP email to %s via %s:%s", subject, self._hostname, self._port)

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._hostname,
                port=self._port,
                username=self._username,
                password=self._password,
                start_tls=self._start_tls,
                timeout=self._timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery to %s failed: %s", subject, exc)
            raise DeliveryError("Failed to send OTP email") from exc

        logger.info("OTP email sent to %s", subject)
