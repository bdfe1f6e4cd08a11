"""Challenge value object and delivery channels."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class Channel(str, Enum):
    """Contact channel a subject belongs to."""

    EMAIL = "email"
    SMS = "sms"


@dataclass(frozen=True)
class Challenge:
    """A pending one-time passcode bound to a subject.

    Challenges are immutable: re-issuing for the same subject writes a
    new record that replaces the old one.
    """

    subject: str
    code: str
    channel: Channel
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        subject: str,
        code: str,
        channel: Channel,
        issued_at: datetime,
        ttl: timedelta,
    ) -> Challenge:
        return cls(
            subject=subject,
            code=code,
            channel=channel,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, str]:
        return {
            "subject": self.subject,
            "code": self.code,
            "channel": self.channel.value,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Challenge:
        return cls(
            subject=data["subject"],
            code=data["code"],
            channel=Channel(data["channel"]),
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )
