"""
Redis client initialization and connection management.

Redis backs the commission-percentage cache only; every caller treats it
as optional and falls back to the database when it is unreachable.
"""

import redis.asyncio as redis
from ridepool.app.core.config import settings


# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    Resolved at call time so tests can swap `redis_client` for a fake.
    """
    return redis_client


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except (redis.RedisError, OSError):
        return False
