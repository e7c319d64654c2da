from typing import Dict, Iterable, List

from .models import UserRole, User


# Define all available permissions here for reference
class Permissions:
    # Tasks
    TASKS_VIEW_ALL = "tasks.view_all"
    TASKS_MODIFY_ALL = "tasks.modify_all"
    TASKS_REASSIGN = "tasks.reassign"

    # Identity
    IDENTITY_VIEW_USER = "identity.view_user"
    IDENTITY_MANAGE_USER = "identity.manage_user"


# Static Role -> Permission Mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.ADMIN: [
        # Tasks - unrestricted by ownership
        Permissions.TASKS_VIEW_ALL,
        Permissions.TASKS_MODIFY_ALL,
        Permissions.TASKS_REASSIGN,
        # Identity
        Permissions.IDENTITY_VIEW_USER,
        Permissions.IDENTITY_MANAGE_USER,
    ],
    UserRole.USER: [
        # Ownership scope only, enforced in apps.tasks.access
    ],
}


def is_admin_role(role) -> bool:
    """
    Exhaustive match over the closed role set.

    Adding a role to UserRole without deciding here raises instead of
    silently falling into the unprivileged branch.
    """
    role = UserRole(role)
    if role is UserRole.ADMIN:
        return True
    if role is UserRole.USER:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


def authorize(role, required_roles: Iterable) -> bool:
    """True iff ``role`` is one of ``required_roles``."""
    return UserRole(role) in {UserRole(r) for r in required_roles}


def get_role_permissions(role) -> List[str]:
    return ROLE_PERMISSIONS[UserRole(role)]


def get_user_permissions(user: User) -> List[str]:
    """
    Returns a list of permission strings for the given user based on their role.
    """
    if not user or not user.is_active:
        return []
    return get_role_permissions(user.role)
