"""Subject normalisation and channel detection."""

from __future__ import annotations

import re

from otp_gateway.core.errors import InvalidSubject
from otp_gateway.core.models import Channel

# Pragmatic address check: one "@", no whitespace, a dotted domain.
_EMAIL_RE = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)+$")

# E.164: "+" then up to 15 digits, no leading zero in the country code.
_PHONE_RE = re.compile(r"^\+[1-9]\d{6,14}$")

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")

MAX_EMAIL_LENGTH = 254


def normalize_subject(raw: str | None) -> tuple[str, Channel]:
    """Return the canonical subject and its channel.

    Email addresses are lower-cased; phone numbers lose common
    separators (``+1 (555) 123-4567`` → ``+15551234567``).

    Raises
    ------
    InvalidSubject
        If *raw* is empty or matches neither an email address nor an
        E.164 phone number.
    """
    subject = (raw or "").strip()
    if not subject:
        raise InvalidSubject("Subject is required")

    if "@" in subject:
        email = subject.lower()
        if len(email) > MAX_EMAIL_LENGTH or not _EMAIL_RE.match(email):
            raise InvalidSubject("Invalid email address")
        return email, Channel.EMAIL

    phone = _PHONE_SEPARATORS.sub("", subject)
    if not _PHONE_RE.match(phone):
        raise InvalidSubject("Invalid phone number, expected E.164 format")
    return phone, Channel.SMS
