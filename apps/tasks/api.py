from typing import List, Optional
from uuid import UUID
from django.http import HttpRequest
from ninja import Router

from apps.identity.api import require_auth
from .comment_service import get_comment_service
from .dtos import (
    CommentOut,
    CreateCommentRequest,
    CreateTaskRequest,
    OrphanedAssigneeDTO,
    TaskFilter,
    TaskHistoryOut,
    TaskListResponse,
    TaskOut,
    UpdateTaskRequest,
    DEFAULT_PAGE_SIZE,
)
from .services import get_task_service

router = Router(tags=["Tasks"])


# =============================================================================
# Task Endpoints
# =============================================================================

@router.post("/", response={201: TaskOut}, auth=None)
def create_task(request: HttpRequest, payload: CreateTaskRequest):
    """Create a task in a team the caller belongs to."""
    user = require_auth(request)
    return 201, get_task_service().create(user.id, payload)


@router.get("/", response=TaskListResponse, auth=None)
def list_tasks(
    request: HttpRequest,
    team_id: Optional[UUID] = None,
    status: str = "",
    assignee_id: Optional[UUID] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
):
    """
    List tasks, newest first.

    Filtering by team requires membership of that team.
    """
    user = require_auth(request)
    task_filter = TaskFilter(
        team_id=team_id,
        status=status,
        assignee_id=assignee_id,
        page=page,
        page_size=page_size,
    )
    return get_task_service().list(user.id, task_filter)


@router.get("/orphaned-assignees", response=List[OrphanedAssigneeDTO], auth=None)
def orphaned_assignees(request: HttpRequest):
    require_auth(request)
    return get_task_service().get_orphaned_assignees()


@router.put("/{task_id}", response=TaskOut, auth=None)
def update_task(request: HttpRequest, task_id: UUID, payload: UpdateTaskRequest):
    """Partial update. Each changed field is recorded in the task history."""
    user = require_auth(request)
    return get_task_service().update(user.id, task_id, payload)


@router.get("/{task_id}/history", response=List[TaskHistoryOut], auth=None)
def task_history(request: HttpRequest, task_id: UUID):
    user = require_auth(request)
    return get_task_service().get_history(user.id, task_id)


# =============================================================================
# Comment Endpoints
# =============================================================================

@router.post("/{task_id}/comments", response={201: CommentOut}, auth=None)
def create_comment(request: HttpRequest, task_id: UUID, payload: CreateCommentRequest):
    user = require_auth(request)
    return 201, get_comment_service().create_comment(user.id, task_id, payload.content)


@router.get("/{task_id}/comments", response=List[CommentOut], auth=None)
def list_comments(request: HttpRequest, task_id: UUID):
    user = require_auth(request)
    return get_comment_service().list_comments(user.id, task_id)
