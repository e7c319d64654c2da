"""DTOs and API schemas for Tasks app."""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from ninja import Schema

from .models import Task


@dataclass(frozen=True)
class TaskPageDTO:
    """One page of a scoped task listing."""
    items: List[Task]
    total: int
    page: int
    pages: int
    limit: int


@dataclass(frozen=True)
class TaskStatsDTO:
    """Aggregates over the caller's ownership scope."""
    counts_by_status: Dict[str, int]
    counts_by_priority: Dict[str, int]
    overdue_count: int
    completed_this_month_count: int


# =============================================================================
# Request Schemas
# =============================================================================

class TaskCreate(Schema):
    title: str
    description: str = ""
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[UUID] = None
    tags: List[str] = []


class TaskUpdate(Schema):
    """
    Partial or full update. Only submitted fields are applied; fields the
    caller may not write are dropped by the service.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[UUID] = None
    tags: Optional[List[str]] = None
    is_archived: Optional[bool] = None


class CommentIn(Schema):
    content: str


class TaskFilterParams(Schema):
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    archived: Optional[str] = None
    due_date: Optional[str] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    page: Optional[str] = None
    limit: Optional[str] = None


class MyTaskFilterParams(Schema):
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    page: Optional[str] = None
    limit: Optional[str] = None


# =============================================================================
# Response Schemas
# =============================================================================

class UserRefOut(Schema):
    id: UUID
    username: str
    email: str


class CommentOut(Schema):
    id: UUID
    content: str
    author: UserRefOut
    created_at: datetime


class TaskOut(Schema):
    id: UUID
    title: str
    description: str
    status: str
    priority: str
    category: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_to: UserRefOut
    created_by: UserRefOut
    tags: List[str]
    comments: List[CommentOut] = []
    is_archived: bool
    is_overdue: bool
    days_until_due: Optional[int] = None
    duration_days: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TaskPageOut(Schema):
    items: List[TaskOut]
    total: int
    page: int
    pages: int
    limit: int


class TaskStatsOut(Schema):
    counts_by_status: Dict[str, int]
    counts_by_priority: Dict[str, int]
    overdue_count: int
    completed_this_month_count: int


class MessageOut(Schema):
    success: bool
    message: str
