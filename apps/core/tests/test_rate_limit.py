"""
Tests for the sliding-window rate limiter and its middleware.

Redis is replaced with fakeredis; no server is needed.
"""
from unittest import mock

import fakeredis
import redis
from django.test import TestCase, SimpleTestCase, override_settings

from apps.core.rate_limit import RateLimiter, KEY_TTL_SECONDS, WINDOW_SECONDS
from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User


class RateLimiterTest(SimpleTestCase):

    def setUp(self):
        self.redis = fakeredis.FakeRedis()
        self.redis.flushall()
        self.limiter = RateLimiter(client=self.redis, requests_per_minute=5)

    def test_first_l_requests_allowed_then_denied(self):
        now = 1_000_000.0
        results = [self.limiter.allow("user-1", now=now + i * 0.1) for i in range(6)]
        self.assertEqual(results, [True] * 5 + [False])

    def test_window_elapses(self):
        now = 1_000_000.0
        for i in range(5):
            self.assertTrue(self.limiter.allow("user-1", now=now + i))
        self.assertFalse(self.limiter.allow("user-1", now=now + 10))

        later = now + 10 + WINDOW_SECONDS
        self.assertTrue(self.limiter.allow("user-1", now=later))

    def test_identities_are_independent(self):
        now = 1_000_000.0
        for _ in range(5):
            self.limiter.allow("user-1", now=now)
        self.assertFalse(self.limiter.allow("user-1", now=now))
        self.assertTrue(self.limiter.allow("user-2", now=now))

    def test_same_instant_requests_each_counted(self):
        now = 1_000_000.0
        self.limiter.allow("user-1", now=now)
        self.limiter.allow("user-1", now=now)
        self.assertEqual(self.redis.zcard(RateLimiter.key_for("user-1")), 2)

    def test_key_ttl_is_twice_the_window(self):
        self.limiter.allow("user-1")
        ttl = self.redis.ttl(RateLimiter.key_for("user-1"))
        self.assertGreater(ttl, WINDOW_SECONDS)
        self.assertLessEqual(ttl, KEY_TTL_SECONDS)

    def test_denied_requests_still_fill_the_window(self):
        now = 1_000_000.0
        for i in range(8):
            self.limiter.allow("user-1", now=now + i)
        self.assertEqual(self.redis.zcard(RateLimiter.key_for("user-1")), 8)

    def test_anonymous_never_limited_and_never_touches_redis(self):
        client = mock.MagicMock()
        limiter = RateLimiter(client=client, requests_per_minute=1)
        for identity in (None, 0, ""):
            for _ in range(3):
                self.assertTrue(limiter.allow(identity))
        client.pipeline.assert_not_called()

    def test_fails_open_when_redis_is_down(self):
        client = mock.MagicMock()
        client.pipeline.side_effect = redis.ConnectionError("connection refused")
        limiter = RateLimiter(client=client, requests_per_minute=1)
        with self.assertLogs('apps.core.rate_limit', level='WARNING'):
            self.assertTrue(limiter.allow("user-1"))


@override_settings(RATE_LIMIT_REQUESTS_PER_MINUTE=2)
class RateLimitMiddlewareTest(TestCase):

    def setUp(self):
        redis_client = fakeredis.FakeRedis()
        redis_client.flushall()
        patcher = mock.patch("apps.core.redis_client._client", redis_client)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.user = User.objects.create(username="rl", email="rl@example.com", full_name="Rate Limited")
        self.auth = {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(self.user.id)}"}

    def test_third_request_in_window_is_429(self):
        for _ in range(2):
            self.assertEqual(self.client.get('/api/teams/', **self.auth).status_code, 200)

        response = self.client.get('/api/teams/', **self.auth)
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json(), {"detail": "rate limit exceeded"})

    def test_anonymous_requests_are_not_limited(self):
        for _ in range(4):
            self.assertEqual(self.client.get('/api/teams/').status_code, 401)

    def test_non_api_paths_are_not_limited(self):
        for _ in range(3):
            self.client.get('/api/teams/', **self.auth)
        response = self.client.get('/admin/login/', **self.auth)
        self.assertNotEqual(response.status_code, 429)
