"""Error taxonomy for the challenge lifecycle.

Callers facing end users should collapse :class:`NotFound` and
:class:`Mismatch` into one generic response; the distinction exists
for internal logging only.
"""


class OTPError(Exception):
    """Base class for every error raised by the OTP gateway."""


class InvalidSubject(OTPError):
    """The subject is empty or not a valid email address / phone number."""


class InvalidInput(OTPError):
    """A verification request is missing the subject or the code."""


class NotFound(OTPError):
    """No live challenge: never issued, already consumed, or expired."""


class Mismatch(OTPError):
    """A live challenge exists but the submitted code does not match."""


class RateLimited(OTPError):
    """A re-issue was requested before the configured cooldown elapsed."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class StoreError(OTPError):
    """The backing store is unreachable or timed out."""


class DeliveryError(OTPError):
    """A notifier failed to deliver the code."""
