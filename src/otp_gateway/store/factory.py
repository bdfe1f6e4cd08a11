"""Store selection from configuration."""

import logging

from otp_gateway.config import Settings
from otp_gateway.store.base import ChallengeStore
from otp_gateway.store.memory import InMemoryChallengeStore
from otp_gateway.store.redis_store import RedisChallengeStore
from otp_gateway.store.sql import SqlChallengeStore

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "redis", "sql")


def build_store(settings: Settings) -> ChallengeStore:
    """Create the challenge store named by ``settings.store_backend``."""
    backend = settings.store_backend.lower()
    if backend == "memory":
        store: ChallengeStore = InMemoryChallengeStore()
    elif backend == "redis":
        store = RedisChallengeStore.from_url(
            settings.redis_url,
            key_prefix=settings.redis_key_prefix,
            timeout=settings.store_timeout_seconds,
        )
    elif backend == "sql":
        store = SqlChallengeStore.from_url(
            settings.database_url,
            timeout=settings.store_timeout_seconds,
            echo=settings.debug,
        )
    else:
        raise ValueError(f"Unknown store backend {settings.store_backend!r}; expected one of {STORE_BACKENDS}")

    logger.info("Using %s challenge store", store.name)
    return store
