"""
Access control decisions for tasks.

Pure functions over (caller id, caller role, task ownership fields); no I/O.
Callers turn a False into the right error. Viewing and modifying share one
ownership gate: admins pass, everyone else must be the task's assignee or
creator.
"""
from typing import Dict, FrozenSet

from apps.core.exceptions import Forbidden
from apps.identity.models import UserRole
from apps.identity.permissions import is_admin_role

ALL_ROLES: FrozenSet[UserRole] = frozenset(UserRole)
ADMIN_ONLY: FrozenSet[UserRole] = frozenset({UserRole.ADMIN})

# Field name -> roles allowed to write it through an update.
TASK_WRITABLE_FIELDS: Dict[str, FrozenSet[UserRole]] = {
    'title': ALL_ROLES,
    'description': ALL_ROLES,
    'status': ALL_ROLES,
    'priority': ALL_ROLES,
    'category': ALL_ROLES,
    'due_date': ALL_ROLES,
    'tags': ALL_ROLES,
    'is_archived': ALL_ROLES,
    'assigned_to': ADMIN_ONLY,
}


def _same_identity(a, b) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def is_owner(caller_id, task) -> bool:
    """Caller is the task's assignee or creator."""
    return _same_identity(caller_id, task.assigned_to_id) or _same_identity(caller_id, task.created_by_id)


def can_view(caller_id, caller_role, task) -> bool:
    if is_admin_role(caller_role):
        return True
    return is_owner(caller_id, task)


def can_modify(caller_id, caller_role, task) -> bool:
    # Same rule as can_view until a read-only collaborator role exists.
    return can_view(caller_id, caller_role, task)


def can_reassign(caller_role) -> bool:
    return is_admin_role(caller_role)


def check_assignment(caller_id, caller_role, requested_assignee_id, current_assignee_id=None) -> None:
    """
    Raise Forbidden when a non-admin asks for an assignee change.

    On create there is no current assignee yet; the caller is the default,
    so anything other than the caller counts as a change.
    """
    if requested_assignee_id is None:
        return
    baseline = current_assignee_id if current_assignee_id is not None else caller_id
    if _same_identity(requested_assignee_id, baseline):
        return
    if not can_reassign(caller_role):
        raise Forbidden("Only admins can assign tasks to other users")


def writable_fields(caller_role) -> FrozenSet[str]:
    role = UserRole(caller_role)
    return frozenset(name for name, roles in TASK_WRITABLE_FIELDS.items() if role in roles)


def filter_writable(caller_role, data: dict) -> dict:
    """Keep only the submitted fields ``caller_role`` may write; drop the rest silently."""
    allowed = writable_fields(caller_role)
    return {key: value for key, value in data.items() if key in allowed}
