"""
Cache-aside storage for task list pages.

Keys look like ``tasks:team:<team_id|all>:<fingerprint>``. Every mutation
in a team drops all of that team's pages (and the unscoped ``all`` pages,
which include the team's tasks). Entries also expire after
TASK_LIST_CACHE_TTL_SECONDS, which bounds staleness if an invalidation
is lost.
"""
import json
import logging
from typing import Optional

import redis
from django.conf import settings

from apps.core.errors import CacheDecodeError, InternalError
from apps.core.redis_client import get_redis
from .dtos import TaskFilter, TaskListResponse

logger = logging.getLogger(__name__)

KEY_PREFIX = "tasks:team"
UNSCOPED = "all"
SCAN_BATCH_SIZE = 100


class TaskCache:

    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: Optional[int] = None):
        self._client = client
        if ttl_seconds is None:
            ttl_seconds = settings.TASK_LIST_CACHE_TTL_SECONDS
        self.ttl_seconds = ttl_seconds

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    @staticmethod
    def key_for(task_filter: TaskFilter) -> str:
        f = task_filter.normalized()
        scope = f.team_id or UNSCOPED
        return f"{KEY_PREFIX}:{scope}:{f.fingerprint()}"

    def get_list(self, task_filter: TaskFilter) -> Optional[TaskListResponse]:
        """
        Cached page for ``task_filter``, or None on a miss.

        Raises:
            CacheDecodeError: the stored payload is not a valid TaskListResponse
            InternalError: Redis failed
        """
        key = self.key_for(task_filter)
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            raise InternalError("cache get task list", e) from e

        if raw is None:
            return None

        try:
            return TaskListResponse.model_validate(json.loads(raw))
        except ValueError as e:
            raise CacheDecodeError("decode cached task list", e) from e

    def set_list(self, task_filter: TaskFilter, response: TaskListResponse) -> None:
        key = self.key_for(task_filter)
        try:
            self.client.set(key, response.model_dump_json(), ex=self.ttl_seconds)
        except redis.RedisError as e:
            raise InternalError("cache set task list", e) from e

    def invalidate_team(self, team_id) -> int:
        """Delete every cached page that can contain tasks of ``team_id``. Returns keys deleted."""
        deleted = 0
        try:
            for scope in (team_id, UNSCOPED):
                deleted += self._delete_matching(f"{KEY_PREFIX}:{scope}:*")
        except redis.RedisError as e:
            raise InternalError("cache invalidate team", e) from e

        logger.debug(f"[CACHE] Invalidated {deleted} task list keys for team {team_id}")
        return deleted

    def _delete_matching(self, pattern: str) -> int:
        deleted = 0
        batch = []
        for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= SCAN_BATCH_SIZE:
                deleted += self.client.delete(*batch)
                batch = []
        if batch:
            deleted += self.client.delete(*batch)
        return deleted
