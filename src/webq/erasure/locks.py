"""Exclusive per-target execution locks.

Acquisition never waits: if another worker is erasing the same target
the caller gets ErasureAlreadyInProgressError immediately. Locks carry a
TTL so a crashed worker cannot block a target forever, and release is
token-checked so an expired holder never frees a lock it no longer owns.
"""

import secrets
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import timedelta
from typing import Protocol

import structlog
from redis.asyncio import Redis
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.db.models.erasure import ErasureLock
from webq.erasure.types import ErasureAlreadyInProgressError
from webq.utils.clock import Clock, utc_now

logger = structlog.get_logger()


class ExecutionLock(Protocol):
    """Non-blocking exclusive lock keyed by target."""

    def hold(self, target_key: str) -> AbstractAsyncContextManager[str]:
        """Async context manager holding the lock for ``target_key``.

        Raises:
            ErasureAlreadyInProgressError: If the lock is already held
        """
        ...


class DatabaseExecutionLock:
    """Lock rows in ``erasure_locks``; the primary key makes acquisition atomic."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl_seconds: int,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    async def acquire(self, target_key: str) -> str:
        """Take the lock and return the holder token.

        Raises:
            ErasureAlreadyInProgressError: If a live lock exists
        """
        now = self._clock()
        token = secrets.token_hex(16)

        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(ErasureLock).where(
                    ErasureLock.target_key == target_key,
                    ErasureLock.expires_at <= now,
                )
            )

        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    ErasureLock(
                        target_key=target_key,
                        token=token,
                        acquired_at=now,
                        expires_at=now + self._ttl,
                    )
                )
        except IntegrityError:
            raise ErasureAlreadyInProgressError(target_key) from None

        logger.debug("erasure_lock_acquired", target_key=target_key, backend="database")
        return token

    async def release(self, target_key: str, token: str) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                delete(ErasureLock).where(
                    ErasureLock.target_key == target_key,
                    ErasureLock.token == token,
                )
            )
        logger.debug("erasure_lock_released", target_key=target_key, backend="database")

    @asynccontextmanager
    async def hold(self, target_key: str) -> AsyncIterator[str]:
        token = await self.acquire(target_key)
        try:
            yield token
        finally:
            await self.release(target_key, token)


# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisExecutionLock:
    """Lock held as a Redis key set with ``SET NX EX``."""

    def __init__(self, client: Redis, ttl_seconds: int, prefix: str = "erasure:lock"):
        self._client = client
        self._ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _make_key(self, target_key: str) -> str:
        return f"{self.prefix}:{target_key}"

    async def acquire(self, target_key: str) -> str:
        token = secrets.token_hex(16)
        acquired = await self._client.set(
            self._make_key(target_key), token, nx=True, ex=self._ttl_seconds
        )
        if not acquired:
            raise ErasureAlreadyInProgressError(target_key)
        logger.debug("erasure_lock_acquired", target_key=target_key, backend="redis")
        return token

    async def release(self, target_key: str, token: str) -> None:
        await self._client.eval(_RELEASE_SCRIPT, 1, self._make_key(target_key), token)
        logger.debug("erasure_lock_released", target_key=target_key, backend="redis")

    @asynccontextmanager
    async def hold(self, target_key: str) -> AsyncIterator[str]:
        token = await self.acquire(target_key)
        try:
            yield token
        finally:
            await self.release(target_key, token)
