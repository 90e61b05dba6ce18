"""
Per-user sliding-window rate limiter backed by Redis.

Each identity owns a sorted set ``rate_limit:user:<id>`` of request
timestamps. A single MULTI/EXEC pipeline evicts timestamps that fell out of
the trailing window, counts what is left, records the current request and
refreshes the key TTL, so concurrent requests from one user cannot race
between the count and the insert.

Policy choices:
- A request is admitted when fewer than ``requests_per_minute`` requests
  were seen in the window before it.
- If Redis fails the request is admitted (fail open). Availability wins
  over strict enforcement here.
- Anonymous callers (no identity) are never limited.
"""
import logging
import time
import uuid
from typing import Optional

import redis
from django.conf import settings

from .redis_client import get_redis

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
KEY_TTL_SECONDS = 2 * WINDOW_SECONDS


class RateLimiter:

    def __init__(self, client: Optional[redis.Redis] = None, requests_per_minute: Optional[int] = None):
        self._client = client
        if requests_per_minute is None:
            requests_per_minute = settings.RATE_LIMIT_REQUESTS_PER_MINUTE
        self.requests_per_minute = requests_per_minute

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    @staticmethod
    def key_for(identity) -> str:
        return f"rate_limit:user:{identity}"

    def allow(self, identity, now: Optional[float] = None) -> bool:
        """
        Record a request for ``identity`` and decide whether to admit it.

        Args:
            identity: User id, or None/0 for anonymous callers.
            now:      Unix timestamp of the request (defaults to time.time()).

        Returns:
            True if the request is admitted.
        """
        if not identity:
            return True

        if now is None:
            now = time.time()
        key = self.key_for(identity)
        window_start = now - WINDOW_SECONDS
        # Unique member: two requests in the same instant are two requests.
        member = f"{now:.6f}:{uuid.uuid4().hex}"

        try:
            with self.client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, '-inf', window_start)
                pipe.zcard(key)
                pipe.zadd(key, {member: now})
                pipe.expire(key, KEY_TTL_SECONDS)
                _, count, _, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"[RATE_LIMIT] Redis unavailable, admitting request for {identity}: {e}")
            return True

        allowed = count < self.requests_per_minute
        if not allowed:
            logger.info(f"[RATE_LIMIT] Limit reached for {identity} ({count}/{self.requests_per_minute})")
        return allowed
