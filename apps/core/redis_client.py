"""
Shared Redis client.

One client (and therefore one connection pool) per process. redis-py's
pool is thread-safe, so request workers share it freely.
"""
import logging
from typing import Optional

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Lazily build the process-wide Redis client from settings."""
    global _client
    if _client is None:
        logger.info("Connecting Redis client")
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
    return _client


def ping() -> bool:
    """Health probe: True when Redis answers PING."""
    try:
        return bool(get_redis().ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
