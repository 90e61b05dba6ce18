"""
Tests for notification dispatch: the circuit breaker, NotificationService,
and the mocked e-mail delivery run by the job handlers.
"""
from unittest import mock
from uuid import uuid4

from django.test import SimpleTestCase, TestCase, override_settings

from apps.tasks.models import TaskComment
from apps.tasks.notifications import (
    CircuitBreaker,
    NotificationService,
    deliver_comment_added,
    deliver_task_assigned,
)
from .factories import make_task, make_team, make_user


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CircuitBreakerTest(SimpleTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.breaker = CircuitBreaker(threshold=3, reset_interval=30, clock=self.clock)

    def test_opens_after_threshold(self):
        for _ in range(2):
            self.breaker.record_failure()
        self.assertFalse(self.breaker.is_open())

        self.breaker.record_failure()
        self.assertTrue(self.breaker.is_open())

    def test_resets_after_interval(self):
        for _ in range(3):
            self.breaker.record_failure()

        self.clock.now += 30
        self.assertTrue(self.breaker.is_open())

        self.clock.now += 1
        self.assertFalse(self.breaker.is_open())
        self.assertEqual(self.breaker.failures, 0)

    def test_success_resets_count(self):
        self.breaker.record_failure()
        self.breaker.record_failure()
        self.breaker.record_success()
        self.breaker.record_failure()
        self.assertFalse(self.breaker.is_open())


class NotificationServiceTest(SimpleTestCase):

    def setUp(self):
        self.jobs = mock.Mock()
        self.jobs.notify_task_assigned.return_value = "job-1"
        self.jobs.notify_comment_added.return_value = "job-2"
        self.clock = FakeClock()
        self.service = NotificationService(
            jobs=self.jobs,
            breaker=CircuitBreaker(threshold=3, reset_interval=30, clock=self.clock),
        )

    def test_dispatches_through_job_service(self):
        task_id, assignee_id, comment_id = uuid4(), uuid4(), uuid4()

        self.assertEqual(self.service.notify_task_assigned(task_id, assignee_id), "job-1")
        self.jobs.notify_task_assigned.assert_called_once_with(task_id=task_id, assignee_id=assignee_id)

        self.assertEqual(self.service.notify_comment_added(comment_id, task_id), "job-2")
        self.jobs.notify_comment_added.assert_called_once_with(comment_id=comment_id)

    def test_failures_propagate_then_trip_breaker(self):
        self.jobs.notify_task_assigned.side_effect = RuntimeError("queue unavailable")

        for _ in range(3):
            with self.assertRaises(RuntimeError):
                self.service.notify_task_assigned(uuid4(), uuid4())

        # Open: nothing is dispatched.
        self.assertIsNone(self.service.notify_task_assigned(uuid4(), uuid4()))
        self.assertIsNone(self.service.notify_comment_added(uuid4(), uuid4()))
        self.assertEqual(self.jobs.notify_task_assigned.call_count, 3)
        self.jobs.notify_comment_added.assert_not_called()

    def test_breaker_closes_after_interval(self):
        self.jobs.notify_task_assigned.side_effect = RuntimeError("queue unavailable")
        for _ in range(3):
            with self.assertRaises(RuntimeError):
                self.service.notify_task_assigned(uuid4(), uuid4())

        self.jobs.notify_task_assigned.side_effect = None
        self.clock.now += 31
        self.assertEqual(self.service.notify_task_assigned(uuid4(), uuid4()), "job-1")


@override_settings(JOB_BACKEND='local')
class DeliveryTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.team = make_team(self.owner)
        self.task = make_task(self.team.id, self.owner, title="Ship it", assignee=self.owner)

    def test_task_assigned_mock_email(self):
        with self.assertLogs('apps.tasks.notifications', level='INFO') as logs:
            result = deliver_task_assigned(str(self.task.id), str(self.owner.id))

        self.assertEqual(result, "sent")
        self.assertIn("Mock email: Task 'Ship it'", logs.output[0])
        self.assertIn(self.owner.email, logs.output[0])

    def test_comment_mock_email(self):
        comment = TaskComment.objects.create(task=self.task, user=self.owner, content="hi")
        with self.assertLogs('apps.tasks.notifications', level='INFO') as logs:
            result = deliver_comment_added(str(comment.id))

        self.assertEqual(result, "sent")
        self.assertIn("New comment on task 'Ship it'", logs.output[0])

    def test_missing_rows_are_skipped(self):
        self.assertEqual(deliver_task_assigned(str(uuid4()), str(self.owner.id)), "skipped")
        self.assertEqual(deliver_comment_added(str(uuid4())), "skipped")

    def test_local_backend_delivers_on_dispatch(self):
        service = NotificationService()
        with self.assertLogs('apps.tasks.notifications', level='INFO') as logs:
            job_id = service.notify_task_assigned(self.task.id, self.owner.id)

        self.assertTrue(job_id)
        self.assertTrue(any("Mock email" in line for line in logs.output))
