"""SQLAlchemy challenge model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class ChallengeRecord(Base):
    """One pending challenge per subject.

    The subject is the primary key, so writing a new challenge for the
    same subject replaces the previous row.
    """

    __tablename__ = "otp_challenges"

    subject: Mapped[str] = mapped_column(
        String(320), primary_key=True, doc="Canonical email address or E.164 phone number"
    )
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    channel: Mapped[str] = mapped_column(String(8), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_otp_challenges_expires_at", "expires_at"),)

    def __repr__(self) -> str:
        return f"<ChallengeRecord subject={self.subject!r} expires_at={self.expires_at!r}>"
