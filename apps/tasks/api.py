"""
Tasks API endpoints with JWT bearer authentication.

Every endpoint authenticates first, then delegates to apps.tasks.services,
which applies the ownership scope and access rules.
"""
from uuid import UUID
from ninja import Router, Query
from django.http import HttpRequest

from apps.identity.authentication import require_auth
from .dtos import (
    TaskCreate, TaskUpdate, CommentIn, TaskFilterParams, MyTaskFilterParams,
    TaskOut, TaskPageOut, TaskStatsOut, CommentOut, MessageOut,
)
from .query import build_scope
from . import services

router = Router(tags=["Tasks"])


@router.get("", response=TaskPageOut, auth=None)
def list_tasks(request: HttpRequest, filters: TaskFilterParams = Query(...)):
    """
    List tasks visible to the caller.

    Query Parameters:
    - status, priority, category, assigned_to, created_by, archived: exact match
    - due_date: 'overdue' or 'today'
    - search: case-insensitive match on title, description, category
    - sort_by: 'field:asc|desc' (default created_at:desc)
    - page, limit: 1-indexed page, page size (max 100)

    - Admins see every task
    - Users see tasks they created or are assigned to
    """
    caller = require_auth(request)
    descriptor = build_scope(caller.user_id, caller.role, filters.dict(exclude_none=True))
    return services.paginate(descriptor)


@router.post("", response={201: TaskOut}, auth=None)
def create_task(request: HttpRequest, payload: TaskCreate):
    """
    Create a task. Self-assigned unless an admin names another assignee.
    """
    caller = require_auth(request)
    return 201, services.create_task(caller.user_id, caller.role, payload.dict())


@router.get("/stats", response=TaskStatsOut, auth=None)
def task_stats(request: HttpRequest):
    """
    Counts by status and priority, overdue count and completions this month,
    over the caller's ownership scope.
    """
    caller = require_auth(request)
    return services.stats_by_scope(caller.user_id, caller.role)


@router.get("/my-tasks", response=TaskPageOut, auth=None)
def my_tasks(request: HttpRequest, filters: MyTaskFilterParams = Query(...)):
    """
    Non-archived tasks assigned to the caller.
    """
    caller = require_auth(request)
    return services.list_my_tasks(caller.user_id, caller.role, filters.dict(exclude_none=True))


@router.get("/{task_id}", response=TaskOut, auth=None)
def get_task(request: HttpRequest, task_id: UUID):
    caller = require_auth(request)
    return services.get_task(caller.user_id, caller.role, task_id)


@router.put("/{task_id}", response=TaskOut, auth=None)
def update_task(request: HttpRequest, task_id: UUID, payload: TaskUpdate):
    """
    Update a task. Only submitted fields change; fields the caller may not
    write (assigned_to for non-admins) are ignored.
    """
    caller = require_auth(request)
    return services.update_task(caller.user_id, caller.role, task_id, payload.dict(exclude_unset=True))


@router.patch("/{task_id}", response=TaskOut, auth=None)
def patch_task(request: HttpRequest, task_id: UUID, payload: TaskUpdate):
    caller = require_auth(request)
    return services.update_task(caller.user_id, caller.role, task_id, payload.dict(exclude_unset=True))


@router.delete("/{task_id}", response=MessageOut, auth=None)
def delete_task(request: HttpRequest, task_id: UUID):
    caller = require_auth(request)
    services.delete_task(caller.user_id, caller.role, task_id)
    return {"success": True, "message": "Task deleted successfully"}


@router.post("/{task_id}/comments", response={201: CommentOut}, auth=None)
def add_comment(request: HttpRequest, task_id: UUID, payload: CommentIn):
    caller = require_auth(request)
    return 201, services.add_comment(caller.user_id, caller.role, task_id, payload.content)
