"""Challenge manager — issues and redeems one-time passcodes.

Flow
----
1. ``issue`` validates the subject, generates a code and stores it with
   a TTL, overwriting any pending challenge for that subject.
2. The caller delivers the code through a notifier; the manager never
   sends anything itself.
3. ``verify`` looks the challenge up, compares codes in constant time
   and consumes the challenge on success.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from otp_gateway.config import Settings
from otp_gateway.core.codes import CodeGenerator, SixDigitCodeGenerator
from otp_gateway.core.errors import InvalidInput, InvalidSubject, Mismatch, NotFound, RateLimited
from otp_gateway.core.models import Challenge
from otp_gateway.core.validation import normalize_subject
from otp_gateway.store.base import ChallengeStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=10)


class ChallengeManager:
    """Owns the OTP lifecycle on top of an injected :class:`ChallengeStore`."""

    def __init__(
        self,
        store: ChallengeStore,
        generator: CodeGenerator | None = None,
        ttl: timedelta = DEFAULT_TTL,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
        max_attempts: int = 0,
        reissue_cooldown: timedelta = timedelta(0),
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("TTL must be positive")
        self._store = store
        self._generator = generator or SixDigitCodeGenerator()
        self._ttl = ttl
        self._clock = clock
        self._max_attempts = max_attempts
        self._reissue_cooldown = reissue_cooldown

    @classmethod
    def from_settings(cls, store: ChallengeStore, settings: Settings) -> ChallengeManager:
        return cls(
            store,
            SixDigitCodeGenerator(settings.otp_length),
            timedelta(seconds=settings.otp_ttl_seconds),
            max_attempts=settings.otp_max_attempts,
            reissue_cooldown=timedelta(seconds=settings.otp_reissue_cooldown_seconds),
        )

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def store(self) -> ChallengeStore:
        return self._store

    async def issue(self, subject: str) -> Challenge:
        """Create and persist a new challenge for *subject*.

        Any pending challenge for the same subject becomes unusable.

        Raises
        ------
        InvalidSubject
            Malformed subject; the store is not touched.
        RateLimited
            A re-issue cooldown is configured and has not elapsed.
        StoreError
            The backing store failed.
        """
        canonical, channel = normalize_subject(subject)
        now = self._clock()

        if self._reissue_cooldown > timedelta(0):
            pending = await self._store.get(canonical)
            if pending is not None:
                wait = pending.issued_at + self._reissue_cooldown - now
                if wait > timedelta(0):
                    logger.info("Re-issue for %s refused, cooldown active", canonical)
                    raise RateLimited(
                        "A code was sent recently. Try again later.",
                        retry_after=max(int(wait.total_seconds()), 1),
                    )

        challenge = Challenge.create(canonical, self._generator.generate(), channel, now, self._ttl)
        await self._store.put(challenge, self._ttl)
        logger.info("Issued %s challenge for %s", channel.value, canonical)
        return challenge

    async def verify(self, subject: str, submitted_code: str) -> Challenge:
        """Redeem the pending challenge for *subject*.

        Returns the consumed challenge on success.

        Raises
        ------
        InvalidInput
            Subject or code missing; the store is not touched.
        NotFound
            Never issued, already consumed, or expired.
        Mismatch
            Wrong code; the challenge stays redeemable unless the
            attempt limit was reached.
        StoreError
            The store failed, including while consuming a matching code.
        """
        subject = (subject or "").strip()
        submitted_code = (submitted_code or "").strip()
        if not subject or not submitted_code:
            raise InvalidInput("Subject and code are required")

        canonical = self._canonical(subject)
        stored = await self._store.get(canonical)
        if stored is None:
            logger.info("Verification for %s: no live challenge", canonical)
            raise NotFound("No pending challenge")

        if not hmac.compare_digest(submitted_code.encode(), stored.code.encode()):
            await self._register_failure(canonical, stored)
            raise Mismatch("Code does not match")

        # Only the caller whose delete removes this exact record wins.
        if not await self._store.delete(canonical, code=stored.code):
            logger.info("Verification for %s lost a race with another consumer", canonical)
            raise NotFound("No pending challenge")

        logger.info("Challenge for %s verified", canonical)
        return stored

    async def revoke(self, subject: str) -> bool:
        """Drop any pending challenge for *subject*."""
        return await self._store.delete(self._canonical(subject))

    async def _register_failure(self, subject: str, stored: Challenge) -> None:
        if self._max_attempts <= 0:
            logger.info("Verification for %s: code mismatch", subject)
            return
        failures = await self._store.record_failure(subject)
        logger.info("Verification for %s: code mismatch (%d/%d)", subject, failures, self._max_attempts)
        if failures >= self._max_attempts:
            await self._store.delete(subject, code=stored.code)
            logger.warning("Challenge for %s revoked after %d failed attempts", subject, failures)

    @staticmethod
    def _canonical(subject: str) -> str:
        # Unparseable subjects cannot have a challenge; look them up verbatim
        # so they fall through to NotFound instead of a distinct error.
        try:
            canonical, _ = normalize_subject(subject)
        except InvalidSubject:
            return subject.strip()
        return canonical
