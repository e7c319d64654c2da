from functools import wraps
from typing import Callable

from django.http import HttpRequest

from apps.core.exceptions import Forbidden
from .authentication import require_auth
from .permissions import authorize


def has_role(*roles):
    """
    Decorator to restrict a Django Ninja endpoint to the given roles.

    Authenticates the request first (401 on failure), then checks the
    caller's role (403 on mismatch).

    Usage:
        @router.get("/users", auth=None)
        @has_role(UserRole.ADMIN)
        def list_users(request):
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            caller = require_auth(request)
            if not authorize(caller.role, roles):
                raise Forbidden("Insufficient permissions to access this resource")
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
