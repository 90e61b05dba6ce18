"""
Local Job Backend - Synchronous execution for development.

This backend executes jobs immediately in the same process.
No Redis, SQS, or worker process required.

Usage:
    Set JOB_BACKEND=local in your .env file.
"""

import uuid
import logging
from typing import Any, Dict
from apps.core.job_service import JobServiceInterface

logger = logging.getLogger(__name__)


# Job handler registry - maps job names to handler functions
JOB_HANDLERS = {}


def register_handler(job_name: str):
    """Decorator to register a job handler."""
    def decorator(func):
        JOB_HANDLERS[job_name] = func
        return func
    return decorator


class LocalJobService(JobServiceInterface):
    """
    Execute jobs synchronously in the same process.

    Jobs run inside the request cycle, so they block the response.
    Only use for development and tests.
    """

    def send_job(
        self,
        job_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Execute job synchronously."""
        job_id = str(uuid.uuid4())

        logger.info(f"[LOCAL] Executing job {job_name} (id={job_id})")

        if delay_seconds > 0:
            logger.warning(
                f"[LOCAL] delay_seconds={delay_seconds} ignored in local backend"
            )

        handler = JOB_HANDLERS.get(job_name)
        if handler is None:
            logger.warning(f"[LOCAL] No handler registered for job: {job_name}")
            return job_id

        try:
            result = handler(**payload)
            logger.info(f"[LOCAL] Job {job_name} completed: {result}")
        except Exception as e:
            logger.exception(f"[LOCAL] Job {job_name} failed: {e}")
            raise

        return job_id


# =============================================================================
# Job Handlers
# =============================================================================

@register_handler("notify_task_assigned")
def handle_notify_task_assigned(task_id: str, assignee_id: str):
    from apps.tasks.notifications import deliver_task_assigned
    return deliver_task_assigned(task_id, assignee_id)


@register_handler("notify_comment_added")
def handle_notify_comment_added(comment_id: str):
    from apps.tasks.notifications import deliver_comment_added
    return deliver_comment_added(comment_id)


@register_handler("report_orphaned_assignees")
def handle_report_orphaned_assignees():
    from apps.tasks.services import report_orphaned_assignees
    count = report_orphaned_assignees()
    return f"Found {count} orphaned assignees"
