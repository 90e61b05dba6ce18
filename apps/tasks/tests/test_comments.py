from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from apps.core.errors import ClientError, NotAMemberError, NotFoundError
from apps.tasks.comment_service import CommentService
from apps.tasks.models import TaskComment
from .factories import add_member, make_task, make_team, make_user


class CommentServiceTest(TestCase):

    def setUp(self):
        self.owner = make_user("owner")
        self.member = make_user("member")
        self.outsider = make_user("outsider")
        self.team = make_team(self.owner)
        add_member(self.team.id, self.member)
        self.task = make_task(self.team.id, self.owner)

        self.notifier = mock.Mock()
        self.service = CommentService(notifier=self.notifier)

    def test_member_can_comment(self):
        comment = self.service.create_comment(self.member.id, self.task.id, "Looks good")

        self.assertEqual(comment.content, "Looks good")
        self.assertEqual(comment.task_id, self.task.id)
        self.assertEqual(comment.user_id, self.member.id)
        self.notifier.notify_comment_added.assert_called_once_with(comment.id, self.task.id)

    def test_empty_content_rejected(self):
        for content in ("", "   "):
            with self.assertRaises(ClientError):
                self.service.create_comment(self.member.id, self.task.id, content)
        self.assertEqual(TaskComment.objects.count(), 0)

    def test_non_member_rejected(self):
        with self.assertRaises(NotAMemberError):
            self.service.create_comment(self.outsider.id, self.task.id, "Let me in")
        with self.assertRaises(NotAMemberError):
            self.service.list_comments(self.outsider.id, self.task.id)
        self.assertEqual(TaskComment.objects.count(), 0)

    def test_missing_task(self):
        with self.assertRaises(NotFoundError):
            self.service.create_comment(self.owner.id, self.team.id, "Hello")

    def test_notification_failure_is_ignored(self):
        self.notifier.notify_comment_added.side_effect = RuntimeError("queue unavailable")
        self.service.create_comment(self.member.id, self.task.id, "Still saved")
        self.assertEqual(TaskComment.objects.count(), 1)

    def test_list_oldest_first(self):
        first = self.service.create_comment(self.owner.id, self.task.id, "first")
        second = self.service.create_comment(self.member.id, self.task.id, "second")
        TaskComment.objects.filter(id=first.id).update(created_at=timezone.now() - timedelta(hours=1))

        comments = self.service.list_comments(self.member.id, self.task.id)
        self.assertEqual([c.id for c in comments], [first.id, second.id])
