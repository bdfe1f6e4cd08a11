"""Challenge store — abstract interface every backend must implement."""

from abc import ABC, abstractmethod
from datetime import timedelta

from otp_gateway.core.models import Challenge


class ChallengeStore(ABC):
    """Time-bound, single-use mapping from subject to pending challenge.

    Every operation on a given subject is atomic with respect to the
    others on that subject.  Operations on different subjects never
    coordinate.  Backends raise :class:`~otp_gateway.core.errors.StoreError`
    when they cannot be reached, never a plain ``None``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (used in logs and the health check)."""

    async def initialize(self) -> None:
        """Prepare backend resources (tables, connections) on startup."""

    async def close(self) -> None:
        """Release backend resources on shutdown."""

    @abstractmethod
    async def put(self, challenge: Challenge, ttl: timedelta) -> None:
        """Persist *challenge*, replacing any record for its subject.

        The record must become unreachable once *ttl* has elapsed.  Any
        failed-attempt counter for the subject is reset.
        """

    @abstractmethod
    async def get(self, subject: str) -> Challenge | None:
        """Return the live challenge for *subject*, or ``None``.

        Expired records are treated as absent and evicted.
        """

    @abstractmethod
    async def delete(self, subject: str, code: str | None = None) -> bool:
        """Remove the record for *subject*; idempotent.

        Parameters
        ----------
        subject:
            Canonical subject identifier.
        code:
            When given, only remove the record if it still holds this
            code (compare-and-delete).

        Returns ``True`` if a record was removed.
        """

    @abstractmethod
    async def record_failure(self, subject: str) -> int:
        """Increment and return the failed-attempt count for *subject*.

        Returns ``0`` when no live challenge exists.
        """
