# ruff: noqa: PLW0603
"""Redis client for the author profile cache.

Redis is optional: when it cannot be reached at startup the comment store
reads profiles straight from Cassandra.
"""

import redis.asyncio as redis

from src.config import get_settings
from src.core.logging import get_logger


logger = get_logger(__name__)

PROFILE_KEY_PREFIX = "profiles"

_redis_client: redis.Redis | None = None


def profile_cache_key(user_id: str) -> str:
    return f"{PROFILE_KEY_PREFIX}:{user_id}"


async def init_redis() -> redis.Redis:
    """Create the shared client and check it answers.

    Raises:
        redis.RedisError: the server is unreachable (no client is kept)
    """
    global _redis_client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except redis.RedisError as e:
        logger.warning("profile_cache_unreachable", error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info(
        "profile_cache_connected", ttl_seconds=settings.profile_cache_ttl_seconds
    )
    return client


async def shutdown_redis() -> None:
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("profile_cache_closed")


def get_redis() -> redis.Redis | None:
    return _redis_client
