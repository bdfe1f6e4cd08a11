"""SQL challenge store built on SQLAlchemy's async engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from otp_gateway.core.errors import StoreError
from otp_gateway.core.models import Challenge, Channel
from otp_gateway.models.challenge import Base, ChallengeRecord
from otp_gateway.store.base import ChallengeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_challenge(row: ChallengeRecord) -> Challenge:
    return Challenge(
        subject=row.subject,
        code=row.code,
        channel=Channel(row.channel),
        issued_at=_as_utc(row.issued_at),
        expires_at=_as_utc(row.expires_at),
    )


class SqlChallengeStore(ChallengeStore):
    """Relational store: one ``otp_challenges`` row per subject.

    Expiry is checked against ``expires_at`` at read time.  The
    compare-and-delete used on redemption is a single ``DELETE`` whose
    row count decides whether this caller consumed the challenge.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        timeout: float = 2.0,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._timeout = timeout
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, *, timeout: float = 2.0, echo: bool = False) -> SqlChallengeStore:
        return cls(create_async_engine(url, echo=echo), timeout=timeout)

    @property
    def name(self) -> str:
        return "sql"

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.error("SQL %s failed: %s", operation, exc)
            raise StoreError(f"Challenge store unavailable during {operation}") from exc

    async def initialize(self) -> None:
        """Create the challenge table if it doesn't yet exist."""

        async def _create() -> None:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        await self._call("initialize", _create())

    async def close(self) -> None:
        await self._engine.dispose()

    def _upsert(self, challenge: Challenge):
        values = {
            "subject": challenge.subject,
            "code": challenge.code,
            "channel": challenge.channel.value,
            "issued_at": challenge.issued_at,
            "expires_at": challenge.expires_at,
            "failed_attempts": 0,
        }
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(ChallengeRecord).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(ChallengeRecord).values(**values)
        else:
            return None
        return stmt.on_conflict_do_update(
            index_elements=[ChallengeRecord.subject],
            set_={
                "code": stmt.excluded.code,
                "channel": stmt.excluded.channel,
                "issued_at": stmt.excluded.issued_at,
                "expires_at": stmt.excluded.expires_at,
                "failed_attempts": 0,
            },
        )

    async def _replace(self, challenge: Challenge) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(ChallengeRecord).where(ChallengeRecord.subject == challenge.subject)
            )
            session.add(
                ChallengeRecord(
                    subject=challenge.subject,
                    code=challenge.code,
                    channel=challenge.channel.value,
                    issued_at=challenge.issued_at,
                    expires_at=challenge.expires_at,
                    failed_attempts=0,
                )
            )

    async def put(self, challenge: Challenge, ttl: timedelta) -> None:
        async def _put() -> None:
            stmt = self._upsert(challenge)
            if stmt is not None:
                async with self._session_factory() as session, session.begin():
                    await session.execute(stmt)
                return
            # No native upsert: a concurrent put can win the insert, so retry once.
            try:
                await self._replace(challenge)
            except IntegrityError:
                logger.debug("Concurrent put for %s; retrying", challenge.subject)
                await self._replace(challenge)

        await self._call("put", _put())

    async def get(self, subject: str) -> Challenge | None:
        async def _get() -> Challenge | None:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ChallengeRecord).where(ChallengeRecord.subject == subject)
                )
                row = result.scalar_one_or_none()
                if row is None:
                    return None
                challenge = _to_challenge(row)
                if not challenge.is_expired(self._clock()):
                    return challenge
                await session.execute(
                    delete(ChallengeRecord).where(
                        ChallengeRecord.subject == subject,
                        ChallengeRecord.code == challenge.code,
                    )
                )
                await session.commit()
                logger.debug("Evicted expired challenge for %s", subject)
                return None

        return await self._call("get", _get())

    async def delete(self, subject: str, code: str | None = None) -> bool:
        stmt = delete(ChallengeRecord).where(ChallengeRecord.subject == subject)
        if code is not None:
            stmt = stmt.where(ChallengeRecord.code == code)

        async def _delete() -> bool:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
                return result.rowcount > 0

        return await self._call("delete", _delete())

    async def record_failure(self, subject: str) -> int:
        async def _record() -> int:
            now = self._clock()
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    update(ChallengeRecord)
                    .where(
                        ChallengeRecord.subject == subject,
                        ChallengeRecord.expires_at > now,
                    )
                    .values(failed_attempts=ChallengeRecord.failed_attempts + 1)
                )
                result = await session.execute(
                    select(ChallengeRecord.failed_attempts).where(
                        ChallengeRecord.subject == subject,
                        ChallengeRecord.expires_at > now,
                    )
                )
                count = result.scalar_one_or_none()
                return int(count or 0)

        return await self._call("record_failure", _record())
