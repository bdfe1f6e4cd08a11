"""Base notifier — abstract interface every delivery backend must implement."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class MessageTemplate:
    """Plain-text wording shared by the email and SMS backends."""

    app_name: str = "OTP Gateway"
    ttl_minutes: int = 10

    @property
    def email_subject(self) -> str:
        return f"{self.app_name} - Your OTP Verification Code"

    def email_body(self, code: str) -> str:
        return (
            "Hello,\n\n"
            "Please use the following code to verify your email address:\n\n"
            f"    {code}\n\n"
            f"This code is valid for {self.ttl_minutes} minutes. "
            "Do not share it with anyone.\n\n"
            f"The {self.app_name} Team"
        )

    def sms_body(self, code: str) -> str:
        return f"Your {self.app_name} OTP is: {code}. Do not share this with anyone."


class Notifier(ABC):
    """Delivers a passcode to a subject over one channel.

    Implementations raise :class:`~otp_gateway.core.errors.DeliveryError`
    on any provider failure; they never report success they did not get.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (used in logs)."""

    @abstractmethod
    async def send(self, subject: str, code: str) -> None:
        """Deliver *code* to *subject*.

        Parameters
        ----------
        subject:
            Canonical email address or E.164 phone number.
        code:
            The passcode to deliver.
        """
