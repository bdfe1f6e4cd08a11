"""Console notifier — logs codes instead of sending them (dev/testing)."""

import logging

from otp_gateway.notifiers.base import Notifier

logger = logging.getLogger(__name__)


class ConsoleNotifier(Notifier):
    """Writes the passcode to the application log."""

    def __init__(self, channel: str = "console") -> None:
        self._channel = channel

    @property
    def name(self) -> str:
        return f"console:{self._channel}"

    async def send(self, subject: str, code: str) -> None:
        logger.info(
            "═══════════════════════════════════════════\n"
            "  OTP CODE (%s)\n"
            "  Subject: %s\n"
            "  Code:    %s\n"
            "═══════════════════════════════════════════",
            self._channel, subject, code,
        )
