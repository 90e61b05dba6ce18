"""
TaskService - create, update and read tasks.

Every operation authorizes against team membership first. Updates write
the changed fields and one TaskHistory row per changed field in a single
transaction; list pages are served cache-aside from Redis.

Usage:
    from apps.tasks.services import get_task_service

    service = get_task_service()
    task = service.create(user.id, CreateTaskRequest(title="Ship it", team_id=team.id))
"""
import logging
import re
from datetime import date, datetime
from typing import List, Optional

from django.db.models import Exists, OuterRef

from apps.core.errors import ClientError, InternalError, NotFoundError, store_errors
from apps.core.transactions import TransactionManager
from apps.identity.models import User
from apps.teams.authorization import AuthorizationGate
from apps.teams.models import TeamMember
from .cache import TaskCache
from .dtos import (
    CreateTaskRequest,
    OrphanedAssigneeDTO,
    TaskFilter,
    TaskHistoryOut,
    TaskListResponse,
    TaskOut,
    UpdateTaskRequest,
)
from .models import Task, TaskHistory, TaskPriority, TaskStatus
from .notifications import notification_service

logger = logging.getLogger(__name__)

DUE_DATE_FORMAT = '%Y-%m-%d'
DUE_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
UNASSIGNED = "unassigned"
NO_DUE_DATE = "none"


def parse_due_date(value: str) -> date:
    """Strict YYYY-MM-DD."""
    if not isinstance(value, str) or not DUE_DATE_PATTERN.match(value):
        raise ClientError("invalid due_date format, use YYYY-MM-DD")
    try:
        return datetime.strptime(value, DUE_DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ClientError("invalid due_date format, use YYYY-MM-DD")


def _parse_choice(value: str, choices, field: str) -> str:
    if value not in choices.values:
        raise ClientError(f"invalid {field}: {value}")
    return value


def _render_assignee(assignee_id) -> str:
    return str(assignee_id) if assignee_id else UNASSIGNED


def _render_due_date(due_date: Optional[date]) -> str:
    return due_date.strftime(DUE_DATE_FORMAT) if due_date else NO_DUE_DATE


class TaskService:

    def __init__(self, cache=None, gate=None, transactions=None, notifier=None):
        self.cache = cache or TaskCache()
        self.gate = gate or AuthorizationGate()
        self.transactions = transactions or TransactionManager()
        self.notifier = notifier or notification_service

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, user_id, request: CreateTaskRequest) -> TaskOut:
        """
        New tasks always start in todo. An empty ``due_date`` means no due
        date here, whereas ``update`` rejects it as malformed.
        """
        title = (request.title or "").strip()
        if not title:
            raise ClientError("task title is required")
        if not request.team_id:
            raise ClientError("team_id is required")

        self.gate.require_member(request.team_id, user_id)

        priority = TaskPriority.MEDIUM
        if request.priority:
            priority = _parse_choice(request.priority, TaskPriority, "priority")

        due_date = None
        if request.due_date:
            due_date = parse_due_date(request.due_date)

        if request.assignee_id:
            self._require_user(request.assignee_id)

        with store_errors("create task"):
            task = Task.objects.create(
                title=title,
                description=request.description or "",
                status=TaskStatus.TODO,
                priority=priority,
                team_id=request.team_id,
                creator_id=user_id,
                assignee_id=request.assignee_id,
                due_date=due_date,
            )
        logger.info(f"Task {task.id} created in team {task.team_id} by {user_id}")

        self._invalidate(task.team_id)
        task = self._get_task(task.id)

        if task.assignee_id:
            self._notify_assigned(task)

        return TaskOut.from_orm(task)

    def update(self, user_id, task_id, request: UpdateTaskRequest) -> TaskOut:
        task = self._get_task(task_id)
        self.gate.require_member(task.team_id, user_id)

        present = request.model_dump(exclude_unset=True)

        def work():
            changes = self._diff(task, present)
            if not changes:
                return 0
            for field, old_value, new_value in changes:
                TaskHistory.objects.create(
                    task_id=task.id,
                    user_id=user_id,
                    field=field,
                    old_value=old_value,
                    new_value=new_value,
                )
            # Full-row write of the copy loaded above: fields changed by a
            # concurrent update since that read are overwritten.
            task.save()
            return len(changes)

        changed = self.transactions.run_in_transaction(work)
        if changed:
            logger.info(f"Task {task.id} updated by {user_id}: {changed} field(s) changed")
            self._invalidate(task.team_id)

        return TaskOut.from_orm(self._get_task(task_id))

    def _diff(self, task: Task, present: dict) -> List[tuple]:
        """
        Apply the present fields to ``task`` and return (field, old, new)
        for each field whose value changed. All input is validated before
        anything is applied, so a bad value leaves ``task`` untouched.
        """
        updates = {}

        # Due date first: a malformed date rejects the whole update.
        if 'due_date' in present:
            raw = present['due_date']
            updates['due_date'] = parse_due_date(raw) if raw is not None else None

        if present.get('title') is not None:
            title = present['title'].strip()
            if not title:
                raise ClientError("task title cannot be empty")
            updates['title'] = title
        if present.get('description') is not None:
            updates['description'] = present['description']
        if present.get('status') is not None:
            updates['status'] = _parse_choice(present['status'], TaskStatus, "status")
        if present.get('priority') is not None:
            updates['priority'] = _parse_choice(present['priority'], TaskPriority, "priority")
        if 'assignee_id' in present:
            assignee_id = present['assignee_id']
            if assignee_id is not None:
                self._require_user(assignee_id)
            updates['assignee_id'] = assignee_id

        changes = []
        for field in ('title', 'description', 'status', 'priority'):
            if field in updates and updates[field] != getattr(task, field):
                changes.append((field, getattr(task, field), updates[field]))
                setattr(task, field, updates[field])

        if 'assignee_id' in updates and updates['assignee_id'] != task.assignee_id:
            changes.append((
                'assignee_id',
                _render_assignee(task.assignee_id),
                _render_assignee(updates['assignee_id']),
            ))
            task.assignee_id = updates['assignee_id']

        if 'due_date' in updates and updates['due_date'] != task.due_date:
            changes.append((
                'due_date',
                _render_due_date(task.due_date),
                _render_due_date(updates['due_date']),
            ))
            task.due_date = updates['due_date']

        return changes

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list(self, user_id, task_filter: TaskFilter) -> TaskListResponse:
        """
        One page of tasks, newest first.

        Listing without a team filter is not gated and spans every team.
        """
        f = task_filter.normalized()
        if f.team_id:
            self.gate.require_member(f.team_id, user_id)

        cached = self._read_cache(f)
        if cached is not None:
            return cached

        qs = Task.objects.all()
        if f.team_id:
            qs = qs.filter(team_id=f.team_id)
        if f.status:
            qs = qs.filter(status=f.status)
        if f.assignee_id:
            qs = qs.filter(assignee_id=f.assignee_id)

        offset = (f.page - 1) * f.page_size
        with store_errors("list tasks"):
            total = qs.count()
            tasks = list(qs.order_by('-created_at', '-id')[offset:offset + f.page_size])

        response = TaskListResponse(
            tasks=[TaskOut.from_orm(t) for t in tasks],
            total=total,
            page=f.page,
            page_size=f.page_size,
            total_pages=(total + f.page_size - 1) // f.page_size,
        )

        try:
            self.cache.set_list(f, response)
        except InternalError as e:
            logger.warning(f"[CACHE] Could not store task list: {e}")

        return response

    def get_history(self, user_id, task_id) -> List[TaskHistoryOut]:
        """Audit entries for a task, most recent first."""
        task = self._get_task(task_id)
        self.gate.require_member(task.team_id, user_id)

        with store_errors("list task history"):
            entries = TaskHistory.objects.filter(task_id=task.id).order_by('-changed_at', '-id')
            return [TaskHistoryOut.from_orm(e) for e in entries]

    def get_orphaned_assignees(self) -> List[OrphanedAssigneeDTO]:
        """
        Tasks assigned to someone who is no longer a member of the task's team.

        Maintenance query: it is not scoped to a caller and performs no
        authorization check.
        """
        membership = TeamMember.objects.filter(
            team_id=OuterRef('team_id'),
            user_id=OuterRef('assignee_id'),
        )
        with store_errors("get orphaned assignees"):
            tasks = (
                Task.objects.filter(assignee__isnull=False)
                .filter(~Exists(membership))
                .select_related('assignee')
                .order_by('created_at')
            )
            return [
                OrphanedAssigneeDTO(
                    task_id=t.id,
                    task_title=t.title,
                    team_id=t.team_id,
                    assignee_id=t.assignee_id,
                    assignee_name=t.assignee.full_name,
                )
                for t in tasks
            ]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_task(self, task_id) -> Task:
        with store_errors("get task"):
            try:
                return Task.objects.get(id=task_id)
            except Task.DoesNotExist:
                raise NotFoundError("task not found")

    def _require_user(self, user_id) -> None:
        with store_errors("get user"):
            exists = User.objects.filter(id=user_id).exists()
        if not exists:
            raise NotFoundError("assignee not found")

    def _read_cache(self, task_filter: TaskFilter) -> Optional[TaskListResponse]:
        try:
            return self.cache.get_list(task_filter)
        except InternalError as e:
            # Decode and Redis failures both degrade to a miss.
            logger.warning(f"[CACHE] Task list read failed, querying database: {e}")
            return None

    def _invalidate(self, team_id) -> None:
        try:
            self.cache.invalidate_team(team_id)
        except InternalError as e:
            logger.warning(f"[CACHE] Could not invalidate task lists for team {team_id}: {e}")

    def _notify_assigned(self, task: Task) -> None:
        try:
            self.notifier.notify_task_assigned(task.id, task.assignee_id)
        except Exception as e:
            logger.warning(f"[NOTIFICATION] Assignment notification for task {task.id} failed: {e}")


def get_task_service() -> TaskService:
    """TaskService wired to the shared Redis client and default collaborators."""
    return TaskService()


def report_orphaned_assignees() -> int:
    """
    Log every task whose assignee has left the task's team.

    Returns the number of such tasks. Run daily by Celery beat, the
    scheduled Lambda, or ``manage.py report_orphaned_assignees``.
    """
    orphans = get_task_service().get_orphaned_assignees()
    for o in orphans:
        logger.warning(
            f"Orphaned assignee: task {o.task_id} ('{o.task_title}') in team {o.team_id} "
            f"is assigned to {o.assignee_name} ({o.assignee_id}) who is not a member"
        )
    logger.info(f"Orphaned assignee report: {len(orphans)} task(s)")
    return len(orphans)
