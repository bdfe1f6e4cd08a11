"""Shared test fixtures — controllable clock, stores and notifiers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from otp_gateway.core.errors import DeliveryError
from otp_gateway.notifiers.base import Notifier
from otp_gateway.store.memory import InMemoryChallengeStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SequenceGenerator:
    """Code generator returning a fixed sequence of codes."""

    def __init__(self, *codes: str) -> None:
        self._codes = iter(codes)

    def generate(self) -> str:
        return next(self._codes)


class RecordingNotifier(Notifier):
    """Notifier that records deliveries and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    @property
    def name(self) -> str:
        return "recording"

    async def send(self, subject: str, code: str) -> None:
        self.sent.append((subject, code))
        if self.fail:
            raise DeliveryError("provider rejected the message")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryChallengeStore:
    return InMemoryChallengeStore(clock=clock)
