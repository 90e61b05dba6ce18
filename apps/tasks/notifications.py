"""
Task notifications.

NotificationService hands notifications to the background job facade.
Delivery is best effort: callers log and drop any error it raises. A
small circuit breaker stops dispatching for a while after repeated
failures so a broken queue does not add latency to every request.

The deliver_* functions are what the job handlers run. E-mail is mocked
through the log.
"""
import logging
import threading
import time
from typing import Callable, Optional

from apps.core.job_service import JobService

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 3
RESET_INTERVAL_SECONDS = 30


class CircuitBreaker:

    def __init__(
        self,
        threshold: int = FAILURE_THRESHOLD,
        reset_interval: float = RESET_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.reset_interval = reset_interval
        self._clock = clock
        self._lock = threading.Lock()
        self.failures = 0
        self.last_failure: Optional[float] = None

    def is_open(self) -> bool:
        with self._lock:
            if self.failures < self.threshold:
                return False
            if self._clock() - self.last_failure > self.reset_interval:
                self.failures = 0
                return False
            return True

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1
            self.last_failure = self._clock()

    def record_success(self) -> None:
        with self._lock:
            self.failures = 0


class NotificationService:

    def __init__(self, jobs=JobService, breaker: Optional[CircuitBreaker] = None):
        self.jobs = jobs
        self.breaker = breaker or CircuitBreaker()

    def notify_task_assigned(self, task_id, assignee_id) -> Optional[str]:
        if self.breaker.is_open():
            logger.warning(f"[NOTIFICATION] Circuit breaker open, skipping notification for task {task_id}")
            return None
        return self._dispatch(self.jobs.notify_task_assigned, task_id=task_id, assignee_id=assignee_id)

    def notify_comment_added(self, comment_id, task_id) -> Optional[str]:
        if self.breaker.is_open():
            logger.warning(f"[NOTIFICATION] Circuit breaker open, skipping notification for comment on task {task_id}")
            return None
        return self._dispatch(self.jobs.notify_comment_added, comment_id=comment_id)

    def _dispatch(self, send, **kwargs) -> str:
        try:
            job_id = send(**kwargs)
        except Exception:
            self.breaker.record_failure()
            raise
        self.breaker.record_success()
        return job_id


notification_service = NotificationService()


# =============================================================================
# Delivery (job handlers)
# =============================================================================

def deliver_task_assigned(task_id: str, assignee_id: str) -> str:
    from apps.identity.models import User
    from .models import Task

    task = Task.objects.filter(id=task_id).first()
    assignee = User.objects.filter(id=assignee_id).first()
    if task is None or assignee is None:
        logger.warning(f"[NOTIFICATION] Task {task_id} or user {assignee_id} not found, nothing sent")
        return "skipped"

    logger.info(
        f"[NOTIFICATION] Mock email: Task '{task.title}' (ID: {task.id}) "
        f"assigned to {assignee.full_name} ({assignee.email})"
    )
    return "sent"


def deliver_comment_added(comment_id: str) -> str:
    from .models import TaskComment

    comment = TaskComment.objects.select_related('task').filter(id=comment_id).first()
    if comment is None:
        logger.warning(f"[NOTIFICATION] Comment {comment_id} not found, nothing sent")
        return "skipped"

    logger.info(
        f"[NOTIFICATION] Mock email: New comment on task '{comment.task.title}' "
        f"(ID: {comment.task_id}) by user {comment.user_id}"
    )
    return "sent"
