from unittest import mock

import fakeredis
from django.test import TestCase
from prometheus_client import REGISTRY


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class MetricsMiddlewareTest(TestCase):

    def setUp(self):
        redis_client = fakeredis.FakeRedis()
        redis_client.flushall()
        patcher = mock.patch("apps.core.redis_client._client", redis_client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_request_is_counted_by_route(self):
        before = sample('http_requests_total', method='GET', path='/api/health', status='200')
        observed = sample('http_request_duration_seconds_count', method='GET', path='/api/health')

        response = self.client.get('/api/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            sample('http_requests_total', method='GET', path='/api/health', status='200'),
            before + 1,
        )
        self.assertEqual(
            sample('http_request_duration_seconds_count', method='GET', path='/api/health'),
            observed + 1,
        )

    def test_unmatched_path_uses_raw_path(self):
        before = sample('http_requests_total', method='GET', path='/no-such-page', status='404')
        self.client.get('/no-such-page')
        self.assertEqual(
            sample('http_requests_total', method='GET', path='/no-such-page', status='404'),
            before + 1,
        )

    def test_rejected_requests_are_counted(self):
        before = sample('http_requests_total', method='GET', path='/api/tasks/', status='401')
        self.client.get('/api/tasks/')
        self.assertEqual(
            sample('http_requests_total', method='GET', path='/api/tasks/', status='401'),
            before + 1,
        )

    def test_active_requests_settle_after_response(self):
        before = sample('http_active_requests')
        self.client.get('/api/health')
        self.assertEqual(sample('http_active_requests'), before)

    def test_request_is_logged(self):
        with self.assertLogs('apps.core.middleware', level='INFO') as logs:
            self.client.get('/api/health')
        self.assertTrue(any("GET /api/health 200" in line for line in logs.output))

    def test_metrics_endpoint(self):
        self.client.get('/api/health')
        response = self.client.get('/metrics')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response['Content-Type'].startswith('text/plain'))
        body = response.content.decode()
        self.assertIn('http_requests_total{', body)
        self.assertIn('http_request_duration_seconds_bucket{', body)
        self.assertIn('http_active_requests', body)
