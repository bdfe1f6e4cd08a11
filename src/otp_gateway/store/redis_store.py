"""Redis-backed challenge store relying on native key expiry."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from otp_gateway.core.errors import StoreError
from otp_gateway.core.models import Challenge
from otp_gateway.store.base import ChallengeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# KEYS[1] = challenge key, KEYS[2] = failure counter key, ARGV[1] = expected code
COMPARE_AND_DELETE = """
local raw = redis.call('GET', KEYS[1])
if not raw then
    return 0
end
if cjson.decode(raw)['code'] ~= ARGV[1] then
    return 0
end
redis.call('DEL', KEYS[1], KEYS[2])
return 1
"""


class RedisChallengeStore(ChallengeStore):
    """Stores each challenge as JSON under ``{prefix}{subject}`` with ``EX``.

    Every command is bounded by *timeout*; connection errors, Redis
    errors and timeouts all surface as :class:`StoreError`.
    """

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "otp:",
        timeout: float = 2.0,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._timeout = timeout
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "otp:", timeout: float = 2.0) -> RedisChallengeStore:
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client, key_prefix=key_prefix, timeout=timeout)

    @property
    def name(self) -> str:
        return "redis"

    # ── Keys ─────────────────────────────────────────────

    def _key(self, subject: str) -> str:
        return f"{self._prefix}{subject}"

    def _failure_key(self, subject: str) -> str:
        return f"{self._prefix}fail:{subject}"

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.error("Redis %s failed: %s", operation, exc)
            raise StoreError(f"Challenge store unavailable during {operation}") from exc

    # ── ChallengeStore ───────────────────────────────────

    async def initialize(self) -> None:
        await self._call("ping", self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()

    async def put(self, challenge: Challenge, ttl: timedelta) -> None:
        seconds = max(int(ttl.total_seconds()), 1)
        payload = json.dumps(challenge.to_dict())

        async def _put() -> None:
            # MULTI/EXEC: a new challenge never inherits the old failure count.
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._key(challenge.subject), payload, ex=seconds)
                pipe.delete(self._failure_key(challenge.subject))
                await pipe.execute()

        await self._call("put", _put())

    async def get(self, subject: str) -> Challenge | None:
        raw: Any = await self._call("get", self._client.get(self._key(subject)))
        if raw is None:
            return None
        try:
            challenge = Challenge.from_dict(json.loads(raw))
        except (ValueError, KeyError) as exc:
            raise StoreError(f"Corrupt challenge record for {subject}") from exc
        if challenge.is_expired(self._clock()):
            # Redis will drop it shortly anyway; only remove this exact record.
            await self.delete(subject, code=challenge.code)
            return None
        return challenge

    async def delete(self, subject: str, code: str | None = None) -> bool:
        keys = (self._key(subject), self._failure_key(subject))
        if code is None:
            removed = await self._call("delete", self._client.delete(*keys))
        else:
            removed = await self._call("delete", self._client.eval(COMPARE_AND_DELETE, 2, *keys, code))
        return int(removed) > 0

    async def record_failure(self, subject: str) -> int:
        remaining = await self._call("ttl", self._client.ttl(self._key(subject)))
        if remaining is None or int(remaining) <= 0:
            return 0
        failure_key = self._failure_key(subject)
        count = await self._call("incr", self._client.incr(failure_key))
        await self._call("expire", self._client.expire(failure_key, int(remaining)))
        return int(count)
