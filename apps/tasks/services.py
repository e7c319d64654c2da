"""
Core services for Tasks app.

Executes scoped query descriptors against the ORM and performs every task
write. Each write re-loads the task and runs the access checks from
apps.tasks.access before touching storage; load -> check -> write is not
atomic against concurrent writers (last write wins).
"""
import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple, List
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db.models import Count
from django.utils import timezone

from apps.core.clock import resolve_now
from apps.core.exceptions import Forbidden, NotFound, ValidationFailed
from apps.core.pagination import page_count
from apps.identity.models import User
from .access import can_modify, can_view, check_assignment, filter_writable
from .dtos import TaskPageDTO, TaskStatsDTO
from .models import Task, TaskComment, TaskStatus, TaskPriority
from .query import (
    QueryDescriptor, build_scope, month_bounds, overdue_predicate, ownership_scope,
)

logger = logging.getLogger(__name__)

TEXT_FIELDS = ('title', 'description', 'category')


# =============================================================================
# Helpers
# =============================================================================

def _task_queryset():
    return Task.objects.select_related('assigned_to', 'created_by').prefetch_related('comments__author')


def _get_task_or_404(task_id) -> Task:
    try:
        return _task_queryset().get(id=task_id)
    except (Task.DoesNotExist, ValidationError, ValueError):
        raise NotFound("Task not found")


def _full_clean(instance) -> None:
    try:
        instance.full_clean()
    except ValidationError as exc:
        errors = exc.message_dict if hasattr(exc, 'error_dict') else {'__all__': exc.messages}
        raise ValidationFailed("Validation failed", errors=errors)


def _clean_value(field: str, value: Any) -> Any:
    if field in TEXT_FIELDS and isinstance(value, str):
        return value.strip()
    if field == 'due_date' and isinstance(value, datetime) and timezone.is_naive(value):
        return timezone.make_aware(value)
    if field == 'tags':
        return [str(tag).strip() for tag in (value or [])]
    return value


def _validate_due_date(due_date: Optional[datetime], now: datetime) -> None:
    if due_date is not None and due_date <= now:
        raise ValidationFailed(
            "Due date must be in the future",
            errors={'due_date': ["Due date must be in the future."]},
        )


def _resolve_assignee(user_id) -> User:
    try:
        return User.objects.get(id=user_id, is_active=True)
    except (User.DoesNotExist, ValidationError, ValueError):
        raise ValidationFailed(
            "Assignee not found",
            errors={'assigned_to': ["No active user with this id."]},
        )


def apply_status_transition(task: Task, status: str, now: Optional[datetime] = None) -> Task:
    """
    Set ``status`` and derive ``completed_at``.

    Entering completed stamps completed_at (an already completed task keeps
    its original stamp); any other status clears it. Idempotent.
    """
    task.status = status
    if status == TaskStatus.COMPLETED:
        if task.completed_at is None:
            task.completed_at = resolve_now(now)
    else:
        task.completed_at = None
    return task


# =============================================================================
# Reads
# =============================================================================

def list_tasks(descriptor: QueryDescriptor) -> Tuple[List[Task], int]:
    """
    Execute a descriptor. The page and the total count use the same predicate.

    Returns:
        (items, total)
    """
    queryset = Task.objects.filter(descriptor.predicate)
    total = queryset.count()

    start = descriptor.offset
    items = list(
        _task_queryset()
        .filter(descriptor.predicate)
        .order_by(*descriptor.order_by)[start:start + descriptor.page_size]
    )
    return items, total


def paginate(descriptor: QueryDescriptor) -> TaskPageDTO:
    items, total = list_tasks(descriptor)
    return TaskPageDTO(
        items=items,
        total=total,
        page=descriptor.page,
        pages=page_count(total, descriptor.page_size),
        limit=descriptor.page_size,
    )


def list_my_tasks(
    caller_id: UUID,
    caller_role: str,
    params: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> TaskPageDTO:
    """
    Non-archived tasks assigned to the caller, newest first.
    Only status, priority, category and paging parameters are honoured.
    """
    allowed = ('status', 'priority', 'category', 'page', 'limit')
    scoped = {key: value for key, value in (params or {}).items() if key in allowed}
    scoped.update(assigned_to=caller_id, archived=False)
    return paginate(build_scope(caller_id, caller_role, scoped, now=now))


def get_task(caller_id: UUID, caller_role: str, task_id: UUID) -> Task:
    task = _get_task_or_404(task_id)
    if not can_view(caller_id, caller_role, task):
        raise Forbidden("Access denied")
    return task


def stats_by_scope(caller_id: UUID, caller_role: str, now: Optional[datetime] = None) -> TaskStatsDTO:
    """
    Aggregate counts over the caller's ownership scope.

    Status, priority and overdue counts ignore archived tasks; the
    completed-this-month count covers the current calendar month in the
    server timezone and includes archived tasks.
    """
    now = resolve_now(now)
    scope = ownership_scope(caller_id, caller_role)
    active = Task.objects.filter(scope, is_archived=False)

    counts_by_status = {status: 0 for status in TaskStatus.values}
    for row in active.values('status').annotate(count=Count('id')).order_by():
        counts_by_status[row['status']] = row['count']

    counts_by_priority = {priority: 0 for priority in TaskPriority.values}
    for row in active.values('priority').annotate(count=Count('id')).order_by():
        counts_by_priority[row['priority']] = row['count']

    overdue_count = active.filter(overdue_predicate(now)).count()

    month_start, next_month_start = month_bounds(now)
    completed_this_month_count = Task.objects.filter(
        scope,
        status=TaskStatus.COMPLETED,
        completed_at__gte=month_start,
        completed_at__lt=next_month_start,
    ).count()

    return TaskStatsDTO(
        counts_by_status=counts_by_status,
        counts_by_priority=counts_by_priority,
        overdue_count=overdue_count,
        completed_this_month_count=completed_this_month_count,
    )


# =============================================================================
# Writes
# =============================================================================

def create_task(caller_id: UUID, caller_role: str, data: Mapping[str, Any], now: Optional[datetime] = None) -> Task:
    """
    Create a task authored by the caller.

    Without ``assigned_to`` the task is self-assigned. Assigning to anyone
    else requires the admin role and is rejected before anything is written.
    """
    now = resolve_now(now)
    requested_assignee = data.get('assigned_to')
    check_assignment(caller_id, caller_role, requested_assignee)

    if requested_assignee is not None:
        assignee_id = _resolve_assignee(requested_assignee).id
    else:
        assignee_id = caller_id

    task = Task(
        title=_clean_value('title', data.get('title') or ''),
        description=_clean_value('description', data.get('description') or ''),
        priority=data.get('priority') or TaskPriority.MEDIUM,
        category=_clean_value('category', data.get('category') or '') or 'general',
        due_date=_clean_value('due_date', data.get('due_date')),
        tags=_clean_value('tags', data.get('tags')),
        assigned_to_id=assignee_id,
        created_by_id=caller_id,
    )
    _validate_due_date(task.due_date, now)
    apply_status_transition(task, data.get('status') or TaskStatus.PENDING, now)
    _full_clean(task)
    task.save()

    logger.info(f"Task {task.id} created by {caller_id} for {assignee_id}")
    return _get_task_or_404(task.id)


def update_task(
    caller_id: UUID,
    caller_role: str,
    task_id: UUID,
    data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Task:
    """
    Apply a partial update.

    Only fields in the writable-field schema for the caller's role are
    applied; anything else submitted is dropped without error.
    """
    now = resolve_now(now)
    task = _get_task_or_404(task_id)

    if not can_modify(caller_id, caller_role, task):
        raise Forbidden("Access denied. You can only modify tasks you created or are assigned to")

    if data.get('assigned_to') is not None:
        check_assignment(caller_id, caller_role, data['assigned_to'], task.assigned_to_id)

    updates = {field: _clean_value(field, value) for field, value in filter_writable(caller_role, data).items()}
    changed = sorted(updates)

    assignee_id = updates.pop('assigned_to', None)
    if assignee_id is not None:
        task.assigned_to = _resolve_assignee(assignee_id)

    if updates.get('due_date') is not None:
        _validate_due_date(updates['due_date'], now)

    status = updates.pop('status', None) or task.status
    for field, value in updates.items():
        setattr(task, field, value)
    apply_status_transition(task, status, now)

    _full_clean(task)
    task.save()

    logger.info(f"Task {task.id} updated by {caller_id}: {changed}")
    return _get_task_or_404(task.id)


def delete_task(caller_id: UUID, caller_role: str, task_id: UUID) -> None:
    task = _get_task_or_404(task_id)

    if not can_modify(caller_id, caller_role, task):
        raise Forbidden("Access denied. You can only delete tasks you created or are assigned to")

    task.delete()
    logger.info(f"Task {task_id} deleted by {caller_id}")


def add_comment(
    caller_id: UUID,
    caller_role: str,
    task_id: UUID,
    content: str,
    now: Optional[datetime] = None,
) -> TaskComment:
    task = _get_task_or_404(task_id)

    if not can_modify(caller_id, caller_role, task):
        raise Forbidden("Access denied")

    comment = TaskComment(
        task=task,
        content=(content or '').strip(),
        author_id=caller_id,
        created_at=resolve_now(now),
    )
    _full_clean(comment)
    comment.save()
    task.save(update_fields=['updated_at'])

    return TaskComment.objects.select_related('author').get(id=comment.id)
