"""
Tests for TaskCache: key fingerprinting, round trip, invalidation.
"""
from datetime import date, datetime, timezone
from unittest import mock
from uuid import uuid4

import fakeredis
import redis
from django.test import SimpleTestCase

from apps.core.errors import CacheDecodeError, InternalError
from apps.tasks.cache import TaskCache
from apps.tasks.dtos import TaskFilter, TaskListResponse, TaskOut


def make_response(team_id, count=2):
    now = datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)
    tasks = [
        TaskOut(
            id=uuid4(),
            title=f"Task {i}",
            description="",
            status="todo",
            priority="medium",
            team_id=team_id,
            creator_id=uuid4(),
            assignee_id=uuid4() if i % 2 else None,
            due_date=date(2025, 4, 1) if i % 2 else None,
            created_at=now,
            updated_at=now,
        )
        for i in range(count)
    ]
    return TaskListResponse(tasks=tasks, total=count, page=1, page_size=20, total_pages=1)


class TaskFilterTest(SimpleTestCase):

    def test_normalization(self):
        f = TaskFilter(page=0, page_size=0).normalized()
        self.assertEqual((f.page, f.page_size), (1, 20))
        f = TaskFilter(page=-3, page_size=500).normalized()
        self.assertEqual((f.page, f.page_size), (1, 100))
        f = TaskFilter(page=4, page_size=5).normalized()
        self.assertEqual((f.page, f.page_size), (4, 5))

    def test_equivalent_filters_share_a_key(self):
        team_id = uuid4()
        self.assertEqual(
            TaskCache.key_for(TaskFilter(team_id=team_id, page=0, page_size=0)),
            TaskCache.key_for(TaskFilter(team_id=str(team_id), page=1, page_size=20)),
        )
        self.assertEqual(
            TaskCache.key_for(TaskFilter(page_size=1000)),
            TaskCache.key_for(TaskFilter(page_size=100)),
        )

    def test_different_filters_different_keys(self):
        team_id = uuid4()
        keys = {
            TaskCache.key_for(TaskFilter(team_id=team_id)),
            TaskCache.key_for(TaskFilter(team_id=team_id, status="done")),
            TaskCache.key_for(TaskFilter(team_id=team_id, assignee_id=uuid4())),
            TaskCache.key_for(TaskFilter(team_id=team_id, page=2)),
            TaskCache.key_for(TaskFilter(team_id=team_id, page_size=5)),
        }
        self.assertEqual(len(keys), 5)

    def test_key_layout(self):
        team_id = uuid4()
        self.assertTrue(TaskCache.key_for(TaskFilter(team_id=team_id)).startswith(f"tasks:team:{team_id}:"))
        self.assertTrue(TaskCache.key_for(TaskFilter()).startswith("tasks:team:all:"))


class TaskCacheTest(SimpleTestCase):

    def setUp(self):
        self.redis = fakeredis.FakeRedis()
        self.redis.flushall()
        self.cache = TaskCache(client=self.redis, ttl_seconds=300)
        self.team_id = uuid4()
        self.filter = TaskFilter(team_id=self.team_id, page=1, page_size=20)

    def test_clean_miss_is_none(self):
        self.assertIsNone(self.cache.get_list(self.filter))

    def test_round_trip(self):
        response = make_response(self.team_id)
        self.cache.set_list(self.filter, response)

        cached = self.cache.get_list(self.filter)
        self.assertEqual(cached.model_dump(), response.model_dump())

    def test_hit_through_equivalent_filter(self):
        response = make_response(self.team_id)
        self.cache.set_list(TaskFilter(team_id=self.team_id, page=0), response)
        self.assertIsNotNone(self.cache.get_list(self.filter))

    def test_entries_expire(self):
        self.cache.set_list(self.filter, make_response(self.team_id))
        ttl = self.redis.ttl(TaskCache.key_for(self.filter))
        self.assertGreater(ttl, 0)
        self.assertLessEqual(ttl, 300)

    def test_set_overwrites(self):
        self.cache.set_list(self.filter, make_response(self.team_id, count=1))
        self.cache.set_list(self.filter, make_response(self.team_id, count=3))
        self.assertEqual(self.cache.get_list(self.filter).total, 3)

    def test_invalidate_team(self):
        other_team = uuid4()
        self.cache.set_list(self.filter, make_response(self.team_id))
        self.cache.set_list(TaskFilter(team_id=self.team_id, status="done"), make_response(self.team_id))
        self.cache.set_list(TaskFilter(team_id=other_team), make_response(other_team))
        self.cache.set_list(TaskFilter(), make_response(self.team_id))

        deleted = self.cache.invalidate_team(self.team_id)

        self.assertEqual(deleted, 3)
        self.assertIsNone(self.cache.get_list(self.filter))
        self.assertIsNone(self.cache.get_list(TaskFilter()))
        self.assertIsNotNone(self.cache.get_list(TaskFilter(team_id=other_team)))

    def test_invalidate_deletes_in_batches(self):
        for i in range(250):
            self.redis.set(f"tasks:team:{self.team_id}:{i}", b"{}")

        with mock.patch.object(self.redis, "delete", wraps=self.redis.delete) as delete:
            deleted = self.cache.invalidate_team(self.team_id)

        self.assertEqual(deleted, 250)
        self.assertEqual(self.redis.keys(f"tasks:team:{self.team_id}:*"), [])
        for call in delete.call_args_list:
            self.assertLessEqual(len(call.args), 100)

    def test_undecodable_payload_raises_decode_error(self):
        self.redis.set(TaskCache.key_for(self.filter), b"{not json")
        with self.assertRaises(CacheDecodeError):
            self.cache.get_list(self.filter)

        self.redis.set(TaskCache.key_for(self.filter), b'{"tasks": "wrong shape"}')
        with self.assertRaises(CacheDecodeError):
            self.cache.get_list(self.filter)

    def test_redis_errors_are_wrapped(self):
        client = mock.MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        client.scan_iter.side_effect = redis.ConnectionError("down")
        cache = TaskCache(client=client, ttl_seconds=300)

        with self.assertRaises(InternalError):
            cache.get_list(self.filter)
        with self.assertRaises(InternalError):
            cache.set_list(self.filter, make_response(self.team_id))
        with self.assertRaises(InternalError):
            cache.invalidate_team(self.team_id)
