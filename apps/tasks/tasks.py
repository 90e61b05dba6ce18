import logging
from celery import shared_task

from . import services
from .notifications import deliver_task_assigned, deliver_comment_added

logger = logging.getLogger(__name__)


@shared_task
def send_task_assigned_notification(task_id, assignee_id):
    """E-mail the assignee of a newly created task."""
    return deliver_task_assigned(task_id, assignee_id)


@shared_task
def send_comment_notification(comment_id):
    return deliver_comment_added(comment_id)


@shared_task
def report_orphaned_assignees():
    """
    Run daily (Celery beat) to report tasks whose assignee left the team.

    Returns count of orphaned assignees for logging.
    """
    count = services.report_orphaned_assignees()
    return f"Found {count} orphaned assignees"
