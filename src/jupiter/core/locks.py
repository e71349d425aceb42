"""Per-owner mutual exclusion for OAuth token refresh.

Uses a Redis lock so that at most one refresh per user/provider is in flight
across every API process and worker. When Redis is not available, falls back
to an in-process asyncio.Lock per key, which only serializes within this
process.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from redis.exceptions import LockError

from src.jupiter.core.config import get_settings
from src.jupiter.core.logging import get_logger
from src.jupiter.core.redis import get_redis

logger = get_logger(__name__)

PREFIX_REFRESH_LOCK = "jupiter:lock:oauth-refresh"
LOCK_TTL_SLACK_SECONDS = 10

# key -> (lock, holders and waiters); entries are dropped when unused
_local_locks: dict[str, tuple[asyncio.Lock, int]] = {}


class RefreshLockTimeout(Exception):
    """Raised when the refresh lock could not be acquired in time."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {key}")


def refresh_lock_key(user_id: UUID, provider: str) -> str:
    return f"{PREFIX_REFRESH_LOCK}:{provider}:{user_id}"


def refresh_lock_ttl(settings: Any) -> float:
    """Seconds a Redis lock may live: the slowest possible refresh plus slack.

    Covers every attempt timing out and every backoff delay at full jitter,
    so the lock cannot lapse while its holder is still refreshing.
    """
    attempts = settings.token_refresh_max_retries + 1
    delays = sum(
        min(
            settings.token_refresh_base_delay_seconds * 2**retry,
            settings.token_refresh_max_delay_seconds,
        )
        * (1 + settings.token_refresh_jitter)
        for retry in range(settings.token_refresh_max_retries)
    )
    worst_case = attempts * settings.nationbuilder_http_timeout_seconds + delays
    return max(worst_case + LOCK_TTL_SLACK_SECONDS, settings.token_refresh_lock_timeout_seconds)


@asynccontextmanager
async def _local_lock(key: str, timeout: float) -> AsyncGenerator[None]:
    lock, users = _local_locks.get(key, (asyncio.Lock(), 0))
    _local_locks[key] = (lock, users + 1)
    try:
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except TimeoutError as e:
            raise RefreshLockTimeout(key, timeout) from e
        try:
            yield
        finally:
            lock.release()
    finally:
        lock, users = _local_locks[key]
        if users == 1:
            del _local_locks[key]
        else:
            _local_locks[key] = (lock, users - 1)


@asynccontextmanager
async def refresh_lock(user_id: UUID, provider: str = "nationbuilder") -> AsyncGenerator[None]:
    """Hold the refresh lock for one token owner.

    Locks are scoped to (provider, user): refreshes for different users never
    wait on each other.

    Raises:
        RefreshLockTimeout: If the lock is not acquired within
            token_refresh_lock_timeout_seconds.
    """
    settings = get_settings()
    timeout = settings.token_refresh_lock_timeout_seconds
    key = refresh_lock_key(user_id, provider)

    redis = await get_redis()
    if redis is None:
        async with _local_lock(key, timeout):
            yield
        return

    # Expires on its own so a crashed holder can't wedge refreshes
    redis_lock = redis.lock(key, timeout=refresh_lock_ttl(settings), blocking_timeout=timeout)
    acquired = await redis_lock.acquire()
    if not acquired:
        raise RefreshLockTimeout(key, timeout)

    logger.debug("Refresh lock acquired", lock=key)
    try:
        yield
    finally:
        try:
            await redis_lock.release()
        except LockError as e:
            # Lock expired while held; another process may already own it
            logger.warning("Refresh lock released after expiry", lock=key, error=str(e))


def reset_local_locks() -> None:
    """Drop in-process locks (tests only)."""
    _local_locks.clear()
