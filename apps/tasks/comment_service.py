"""Comments on tasks. Readable and writable by members of the task's team."""
import logging
from typing import List

from apps.core.errors import ClientError, NotFoundError, store_errors
from apps.teams.authorization import AuthorizationGate
from .dtos import CommentOut
from .models import Task, TaskComment
from .notifications import notification_service

logger = logging.getLogger(__name__)


class CommentService:

    def __init__(self, gate=None, notifier=None):
        self.gate = gate or AuthorizationGate()
        self.notifier = notifier or notification_service

    def create_comment(self, user_id, task_id, content: str) -> CommentOut:
        if not content or not content.strip():
            raise ClientError("comment content is required")

        task = self._get_task(task_id)
        self.gate.require_member(task.team_id, user_id)

        with store_errors("create comment"):
            comment = TaskComment.objects.create(task=task, user_id=user_id, content=content)

        try:
            self.notifier.notify_comment_added(comment.id, task.id)
        except Exception as e:
            logger.warning(f"[NOTIFICATION] Comment notification for task {task.id} failed: {e}")

        return CommentOut.from_orm(comment)

    def list_comments(self, user_id, task_id) -> List[CommentOut]:
        """Comments on a task, oldest first."""
        task = self._get_task(task_id)
        self.gate.require_member(task.team_id, user_id)

        with store_errors("list comments"):
            return [CommentOut.from_orm(c) for c in TaskComment.objects.filter(task=task).order_by('created_at')]

    def _get_task(self, task_id) -> Task:
        with store_errors("get task"):
            try:
                return Task.objects.get(id=task_id)
            except Task.DoesNotExist:
                raise NotFoundError("task not found")


def get_comment_service() -> CommentService:
    return CommentService()
