"""
JobService - Abstraction layer for background job execution.

This module provides a platform-agnostic interface for work that runs
outside the request: notification e-mails and maintenance reports.
The actual backend is determined by the JOB_BACKEND setting.

Usage:
    from apps.core.job_service import JobService

    JobService.notify_task_assigned(task_id=task.id, assignee_id=user.id)

Environment Configuration:
    JOB_BACKEND=local   # Sync execution (development, tests)
    JOB_BACKEND=celery  # Celery + Redis
    JOB_BACKEND=lambda  # AWS SQS + Lambda
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict
from uuid import UUID

from django.conf import settings

logger = logging.getLogger(__name__)


class JobServiceInterface(ABC):
    """
    Abstract interface for background job execution.

    Implementations:
    - LocalJobService: Sync execution for development/testing
    - CeleryJobService: Celery + Redis
    - LambdaJobService: AWS SQS + Lambda
    """

    @abstractmethod
    def send_job(
        self,
        job_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """
        Queue a job for execution.

        Args:
            job_name: Identifier for the job handler
            payload: JSON-serializable data passed to the handler
            delay_seconds: Delay before execution (0 = immediate)

        Returns:
            Job ID for tracking
        """


def _get_backend() -> JobServiceInterface:
    """Get the configured job backend based on the JOB_BACKEND setting."""
    backend = getattr(settings, 'JOB_BACKEND', 'local')

    if backend == 'local':
        from apps.core.backends.local_backend import LocalJobService
        return LocalJobService()
    elif backend == 'celery':
        from apps.core.backends.celery_backend import CeleryJobService
        return CeleryJobService()
    elif backend == 'lambda':
        from apps.core.backends.lambda_backend import LambdaJobService
        return LambdaJobService()
    else:
        raise ValueError(f"Unknown JOB_BACKEND: {backend}")


class JobService:
    """
    Facade for sending background jobs.

    One static method per job type, delegating to the configured backend.
    """

    @staticmethod
    def notify_task_assigned(task_id: UUID, assignee_id: UUID) -> str:
        """
        Queue the "task assigned to you" e-mail.

        Used by: NotificationService after a task is created with an assignee.
        """
        logger.info(f"Queueing notify_task_assigned for task {task_id}")
        return _get_backend().send_job(
            job_name="notify_task_assigned",
            payload={"task_id": str(task_id), "assignee_id": str(assignee_id)},
        )

    @staticmethod
    def notify_comment_added(comment_id: UUID) -> str:
        """
        Queue the "new comment on your task" e-mail.

        Used by: NotificationService after a comment is posted.
        """
        logger.info(f"Queueing notify_comment_added for comment {comment_id}")
        return _get_backend().send_job(
            job_name="notify_comment_added",
            payload={"comment_id": str(comment_id)},
        )

    @staticmethod
    def report_orphaned_assignees() -> str:
        """
        Queue the orphaned-assignee maintenance report.

        Used by: Scheduled job (Celery beat / EventBridge).
        """
        logger.info("Queueing report_orphaned_assignees")
        return _get_backend().send_job(
            job_name="report_orphaned_assignees",
            payload={},
        )
