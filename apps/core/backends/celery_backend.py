"""
Celery Job Backend - Async execution via Celery + Redis.

Usage:
    Set JOB_BACKEND=celery in your .env file.
    Requires Redis and a Celery worker running.
"""

import uuid
import logging
from typing import Any, Dict
from apps.core.job_service import JobServiceInterface

logger = logging.getLogger(__name__)


# Job name -> (registered Celery task name, payload keys passed positionally)
CELERY_TASKS = {
    "notify_task_assigned": (
        "apps.tasks.tasks.send_task_assigned_notification",
        ["task_id", "assignee_id"],
    ),
    "notify_comment_added": (
        "apps.tasks.tasks.send_comment_notification",
        ["comment_id"],
    ),
    "report_orphaned_assignees": (
        "apps.tasks.tasks.report_orphaned_assignees",
        [],
    ),
}


def _get_celery_task(job_name: str):
    """Get the Celery task object and argument names for a job name."""
    mapping = CELERY_TASKS.get(job_name)
    if not mapping:
        raise ValueError(f"No Celery task mapped for: {job_name}")

    task_path, arg_names = mapping

    from celery import current_app
    return current_app.tasks.get(task_path), arg_names


class CeleryJobService(JobServiceInterface):
    """Execute jobs via Celery + Redis."""

    def send_job(
        self,
        job_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue job via Celery."""
        job_id = str(uuid.uuid4())

        logger.info(f"[CELERY] Queueing job {job_name} (id={job_id})")

        task, arg_names = _get_celery_task(job_name)

        if task is None:
            logger.error(f"[CELERY] Task not found: {job_name}")
            raise ValueError(f"Celery task not found: {job_name}")

        args = [payload.get(name) for name in arg_names]

        if delay_seconds > 0:
            task.apply_async(args=args, countdown=delay_seconds, task_id=job_id)
        else:
            task.apply_async(args=args, task_id=job_id)

        return job_id
