"""In-process challenge store with lazy expiry."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import weakref
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from otp_gateway.core.models import Challenge
from otp_gateway.store.base import ChallengeStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class InMemoryChallengeStore(ChallengeStore):
    """Dictionary-backed store for single-process deployments and tests.

    Each subject is guarded by its own ``asyncio.Lock``.  Locks live in a
    ``WeakValueDictionary`` so they disappear once no coroutine holds
    them.  Stale entries are purged on access, and every ``put`` also
    drops whatever has expired according to a min-heap on ``expires_at``;
    there is no sweeper.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._challenges: dict[str, Challenge] = {}
        self._failures: dict[str, int] = {}
        self._expiry_heap: list[tuple[datetime, int, str, Challenge]] = []
        self._sequence = itertools.count()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def name(self) -> str:
        return "memory"

    def _lock_for(self, subject: str) -> asyncio.Lock:
        lock = self._locks.get(subject)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subject] = lock
        return lock

    def _evict(self, subject: str) -> None:
        self._challenges.pop(subject, None)
        self._failures.pop(subject, None)

    def _live(self, subject: str) -> Challenge | None:
        challenge = self._challenges.get(subject)
        if challenge is None:
            return None
        if challenge.is_expired(self._clock()):
            self._evict(subject)
            logger.debug("Evicted expired challenge for %s", subject)
            return None
        return challenge

    def _purge_expired(self) -> None:
        # Heap entries for replaced or consumed challenges are skipped.
        now = self._clock()
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            _, _, subject, challenge = heapq.heappop(self._expiry_heap)
            if self._challenges.get(subject) is challenge:
                self._evict(subject)

    async def put(self, challenge: Challenge, ttl: timedelta) -> None:
        async with self._lock_for(challenge.subject):
            self._challenges[challenge.subject] = challenge
            self._failures.pop(challenge.subject, None)
            heapq.heappush(
                self._expiry_heap,
                (challenge.expires_at, next(self._sequence), challenge.subject, challenge),
            )
        self._purge_expired()

    async def get(self, subject: str) -> Challenge | None:
        async with self._lock_for(subject):
            return self._live(subject)

    async def delete(self, subject: str, code: str | None = None) -> bool:
        async with self._lock_for(subject):
            challenge = self._challenges.get(subject)
            if challenge is None:
                return False
            if code is not None and challenge.code != code:
                return False
            self._evict(subject)
            return True

    async def record_failure(self, subject: str) -> int:
        async with self._lock_for(subject):
            if self._live(subject) is None:
                return 0
            count = self._failures.get(subject, 0) + 1
            self._failures[subject] = count
            return count

    async def close(self) -> None:
        self._challenges.clear()
        self._failures.clear()
        self._expiry_heap.clear()

    @property
    def pending_count(self) -> int:
        """Number of stored challenges, expired ones included until purged."""
        return len(self._challenges)
