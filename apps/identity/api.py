"""
Identity API endpoints with JWT bearer authentication.

Provides register, login, logout, profile and password endpoints, plus
admin-only user management. Tokens are returned in the response body and
presented back as ``Authorization: Bearer <token>``.
"""
from typing import Optional
from uuid import UUID
from ninja import Router
from django.http import HttpRequest

from apps.core.exceptions import ValidationFailed
from .authentication import require_auth
from .decorators import has_role
from .dtos import (
    RegisterIn, LoginIn, ProfileUpdate, PasswordChangeIn, RoleUpdateIn,
    UserOut, AuthOut, MessageOut, UserPageOut,
)
from .models import UserRole
from .services import (
    register_user, login, get_user_dto, update_profile, change_password,
    list_users, update_user_role, deactivate_user,
)

router = Router(tags=["Auth"])


# =============================================================================
# Auth Endpoints
# =============================================================================

@router.post("/register", response={201: AuthOut}, auth=None)
def register(request: HttpRequest, payload: RegisterIn):
    """
    Register a new user and return their first token.
    New accounts always get the regular user role.
    """
    user_dto, token = register_user(payload)
    return 201, {
        "success": True,
        "message": "User registered successfully",
        "user": user_dto,
        "token": token,
    }


@router.post("/login", response=AuthOut, auth=None)
def login_user(request: HttpRequest, payload: LoginIn):
    """
    Authenticate with email (or username) and password.
    """
    identifier = payload.email or payload.username
    if not identifier:
        raise ValidationFailed("Email or username is required", errors={"email": ["This field is required."]})

    user_dto, token = login(identifier, payload.password)
    return {
        "success": True,
        "message": "Login successful",
        "user": user_dto,
        "token": token,
    }


@router.post("/logout", response=MessageOut, auth=None)
def logout_user(request: HttpRequest):
    """
    Acknowledge logout. Tokens are stateless; the client discards its copy.
    """
    require_auth(request)
    return {"success": True, "message": "Logout successful"}


@router.get("/profile", response=UserOut, auth=None)
def get_profile(request: HttpRequest):
    """
    Get current authenticated user's profile.
    """
    caller = require_auth(request)
    return get_user_dto(caller.user_id)


@router.put("/profile", response=UserOut, auth=None)
def update_own_profile(request: HttpRequest, payload: ProfileUpdate):
    """
    Update username, email or name of the current user.
    """
    caller = require_auth(request)
    return update_profile(caller.user_id, payload.dict(exclude_unset=True))


@router.put("/change-password", response=AuthOut, auth=None)
def change_own_password(request: HttpRequest, payload: PasswordChangeIn):
    """
    Change the current user's password.

    Every token issued before the change stops working; the response carries
    a fresh one.
    """
    caller = require_auth(request)
    token = change_password(caller.user_id, payload.current_password, payload.new_password)
    return {
        "success": True,
        "message": "Password changed successfully",
        "user": get_user_dto(caller.user_id),
        "token": token,
    }


# =============================================================================
# User Management Endpoints (admin)
# =============================================================================

@router.get("/users", response=UserPageOut, auth=None)
@has_role(UserRole.ADMIN)
def list_all_users(
    request: HttpRequest,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 10,
):
    """
    List users, newest first. Admin only.
    """
    return list_users(role=role, is_active=is_active, page=page, limit=limit)


@router.put("/users/{user_id}/role", response=UserOut, auth=None)
@has_role(UserRole.ADMIN)
def set_user_role(request: HttpRequest, user_id: UUID, payload: RoleUpdateIn):
    """
    Change a user's role. Admin only. Takes effect on the user's next request.
    """
    return update_user_role(user_id, payload.role)


@router.put("/users/{user_id}/deactivate", response=UserOut, auth=None)
@has_role(UserRole.ADMIN)
def deactivate(request: HttpRequest, user_id: UUID):
    """
    Deactivate a user. Admin only. Outstanding tokens are rejected from then on.
    """
    return deactivate_user(user_id)
