"""DTOs and API schemas for Tasks app."""
import hashlib
import json
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from ninja import Schema

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class TaskFilter:
    """
    Query for a page of tasks.

    Always normalize before fingerprinting or querying so that equivalent
    filters (page=0 and page=1, page_size=500 and page_size=100) share one
    cache entry.
    """
    team_id: Optional[UUID] = None
    status: str = ""
    assignee_id: Optional[UUID] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def normalized(self) -> "TaskFilter":
        page = self.page if self.page and self.page >= 1 else 1
        page_size = self.page_size or 0
        if page_size < 1:
            page_size = DEFAULT_PAGE_SIZE
        elif page_size > MAX_PAGE_SIZE:
            page_size = MAX_PAGE_SIZE
        return replace(
            self,
            team_id=_as_uuid(self.team_id),
            status=(self.status or "").strip(),
            assignee_id=_as_uuid(self.assignee_id),
            page=page,
            page_size=page_size,
        )

    def fingerprint(self) -> str:
        """sha256 over the normalized filter tuple."""
        f = self.normalized()
        parts = [
            str(f.team_id or ""),
            f.status,
            str(f.assignee_id or ""),
            f.page,
            f.page_size,
        ]
        return hashlib.sha256(json.dumps(parts).encode()).hexdigest()


def _as_uuid(value) -> Optional[UUID]:
    if not value:
        return None
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


@dataclass(frozen=True)
class OrphanedAssigneeDTO:
    task_id: UUID
    task_title: str
    team_id: UUID
    assignee_id: UUID
    assignee_name: str


# =============================================================================
# Schemas
# =============================================================================

class TaskOut(Schema):
    id: UUID
    title: str
    description: str
    status: str
    priority: str
    team_id: UUID
    creator_id: UUID
    assignee_id: Optional[UUID] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class TaskListResponse(Schema):
    tasks: List[TaskOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class TaskHistoryOut(Schema):
    id: int
    task_id: UUID
    user_id: UUID
    field: str
    old_value: str
    new_value: str
    changed_at: datetime


class CreateTaskRequest(Schema):
    title: str = ""
    description: str = ""
    priority: Optional[str] = None
    team_id: Optional[UUID] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[str] = None


class UpdateTaskRequest(Schema):
    """
    Partial update. Only fields present in the payload are considered;
    an explicit null clears ``assignee_id`` or ``due_date``.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[str] = None


class CommentOut(Schema):
    id: UUID
    task_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime


class CreateCommentRequest(Schema):
    content: str = ""

