"""Redis connection for the optional transfer rate limiter."""

from functools import lru_cache

import redis.asyncio as redis

from src.infra.config.settings import settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


@lru_cache()
def get_redis_pool() -> redis.ConnectionPool:
    """Process-wide connection pool, created on first use"""
    logger.info("Creating Redis connection pool", extra={"max_connections": settings.REDIS_MAX_CONNECTIONS})
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )


async def get_redis() -> redis.Redis:
    """
    Get a client on the shared pool.

    Raises:
        redis.RedisError: If Redis does not answer a ping
    """
    client = redis.Redis(connection_pool=get_redis_pool())
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("Redis unavailable", extra={"error": str(e)})
        raise
    return client


async def close_redis() -> None:
    """Drop pooled connections; a later get_redis() builds a new pool"""
    if get_redis_pool.cache_info().currsize:
        await get_redis_pool().disconnect()
        get_redis_pool.cache_clear()
