"""
Redis configuration for Task Nexus.

Redis backs three concerns:
- the task list cache (cache-aside, per-team invalidation)
- the per-user sliding-window rate limiter
- the Celery broker when JOB_BACKEND=celery
"""
import os

DEFAULT_REDIS_URL = 'redis://localhost:6379/0'


def get_redis_settings() -> dict:
    """
    Returns Redis-related settings based on environment configuration.

    REDIS_SOCKET_TIMEOUT bounds every Redis round trip (seconds), so a
    stalled Redis degrades the request instead of hanging it.
    """
    return {
        'REDIS_URL': os.getenv('REDIS_URL', DEFAULT_REDIS_URL),
        'REDIS_SOCKET_TIMEOUT': float(os.getenv('REDIS_SOCKET_TIMEOUT', '0.5')),
    }
