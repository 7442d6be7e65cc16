"""Redis client management for WebQ.

Provides the shared connection pool and client used by the Redis-backed
execution lock and the readiness probe.
"""

import asyncio

from redis.asyncio import ConnectionPool, Redis

from webq.config.settings import get_settings

# Global connection pool
_pool: ConnectionPool | None = None
_client: Redis | None = None
_lock = asyncio.Lock()


async def get_redis_pool() -> ConnectionPool:
    """Get or create the Redis connection pool.

    Returns:
        Shared connection pool for Redis connections
    """
    global _pool
    if _pool is None:
        async with _lock:
            if _pool is None:
                settings = get_settings()
                _pool = ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=settings.REDIS_MAX_CONNECTIONS,
                    decode_responses=True,
                )
    return _pool


async def get_redis_client() -> Redis:
    """Get or create the Redis client.

    Returns:
        Shared Redis client with connection pool
    """
    global _client
    if _client is None:
        async with _lock:
            if _client is None:
                pool = await get_redis_pool()
                _client = Redis(connection_pool=pool)
    return _client


async def close_redis() -> None:
    """Close Redis connection pool and client.

    Should be called during application shutdown.
    """
    global _pool, _client
    async with _lock:
        if _client is not None:
            await _client.aclose()
            _client = None
        if _pool is not None:
            await _pool.disconnect()
            _pool = None


async def ping_redis(client: Redis | None = None) -> bool:
    """Check that Redis answers a PING.

    Args:
        client: Redis client (uses global if None)
    """
    client = client or await get_redis_client()
    return bool(await client.ping())
