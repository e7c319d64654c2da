"""
Services for Identity app.

The Credential Store: lookups and writes for User records, plus the
account flows built on them (register, login, profile, password rotation,
admin user management). Password hashing is Django's hasher framework.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db.models import Q

from apps.core.clock import resolve_now
from apps.core.exceptions import (
    AuthenticationFailed, AuthFailure, Conflict, NotFound, ValidationFailed,
)
from apps.core.pagination import page_count, parse_page_window
from .dtos import UserDTO, UserPageDTO, RegisterIn
from .jwt_auth import issue_token
from .models import User, UserRole
from .permissions import get_user_permissions

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('username', 'email', 'first_name', 'last_name')


def _user_to_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        last_login=user.last_login,
        date_joined=user.date_joined,
        permissions=get_user_permissions(user),
    )


def _validation_failed(exc: ValidationError, message: str = "Validation failed") -> ValidationFailed:
    errors = exc.message_dict if hasattr(exc, 'error_dict') else {'__all__': exc.messages}
    return ValidationFailed(message, errors=errors)


def _normalize_email(email: str) -> str:
    return (email or '').strip().lower()


# =============================================================================
# Credential Store
# =============================================================================

def find_by_id(user_id) -> Optional[User]:
    try:
        return User.objects.get(id=user_id)
    except (User.DoesNotExist, ValidationError, ValueError):
        return None


def find_by_email_or_username(identifier: str) -> Optional[User]:
    """Look a user up by email (case-insensitive) or exact username."""
    identifier = (identifier or '').strip()
    if not identifier:
        return None
    return User.objects.filter(
        Q(email__iexact=identifier) | Q(username=identifier)
    ).first()


def save_user(user: User) -> User:
    """Validate field constraints (incl. uniqueness) and persist."""
    try:
        user.full_clean()
    except ValidationError as exc:
        raise _validation_failed(exc)
    user.save()
    return user


def get_user_dto(user_id) -> Optional[UserDTO]:
    user = find_by_id(user_id)
    return _user_to_dto(user) if user else None


def _ensure_unique(username: Optional[str], email: Optional[str], exclude_id=None) -> None:
    clauses = Q()
    if username:
        clauses |= Q(username__iexact=username)
    if email:
        clauses |= Q(email__iexact=email)
    if not clauses:
        return

    queryset = User.objects.filter(clauses)
    if exclude_id:
        queryset = queryset.exclude(id=exclude_id)
    existing = queryset.first()
    if existing is None:
        return

    field = 'email' if email and existing.email.lower() == email.lower() else 'username'
    raise Conflict(
        f"User with this {field} already exists",
        errors={field: [f"A user with that {field} already exists."]},
    )


# =============================================================================
# Account Flows
# =============================================================================

def register_user(payload: RegisterIn, now: Optional[datetime] = None) -> Tuple[UserDTO, str]:
    """
    Create a regular user and issue their first token.

    Returns:
        (user_dto, token)
    """
    email = _normalize_email(payload.email)
    username = payload.username.strip()
    _ensure_unique(username, email)

    user = User(
        username=username,
        email=email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=UserRole.USER,
        is_active=True,
    )
    try:
        validate_password(payload.password, user)
    except ValidationError as exc:
        raise ValidationFailed("Password is too weak", errors={'password': exc.messages})

    user.set_password(payload.password)
    user.last_login = resolve_now(now)
    save_user(user)

    logger.info(f"Registered user {user.id} ({user.username})")
    return _user_to_dto(user), issue_token(user.id, user.role, now=now)


def login(identifier: str, password: str, now: Optional[datetime] = None) -> Tuple[UserDTO, str]:
    """
    Verify credentials and issue a token.

    ``identifier`` may be the email or the username.
    """
    user = find_by_email_or_username(identifier)
    if user is None or not user.check_password(password):
        raise AuthenticationFailed(AuthFailure.INVALID_CREDENTIALS)

    if not user.is_active:
        raise AuthenticationFailed(AuthFailure.DEACTIVATED)

    user.last_login = resolve_now(now)
    user.save(update_fields=['last_login'])
    return _user_to_dto(user), issue_token(user.id, user.role, now=now)


def update_profile(user_id: UUID, data: dict) -> UserDTO:
    """Update the caller's own profile. Fields outside PROFILE_FIELDS are ignored."""
    user = find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    updates = {k: v for k, v in data.items() if k in PROFILE_FIELDS and v is not None}
    if 'email' in updates:
        updates['email'] = _normalize_email(updates['email'])
    _ensure_unique(updates.get('username'), updates.get('email'), exclude_id=user.id)

    for key, value in updates.items():
        setattr(user, key, value)
    save_user(user)
    return _user_to_dto(user)


def change_password(
    user_id: UUID,
    current_password: str,
    new_password: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Rotate the caller's password.

    Moves the password watermark, which makes every token issued before
    this call stale. Returns a fresh token so the caller stays signed in.
    """
    user = find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    if not user.check_password(current_password):
        raise ValidationFailed(
            "Current password is incorrect",
            errors={'current_password': ["Current password is incorrect."]},
        )

    try:
        validate_password(new_password, user)
    except ValidationError as exc:
        raise ValidationFailed("Password is too weak", errors={'new_password': exc.messages})

    user.set_password(new_password)
    user.save(update_fields=['password', 'password_changed_at'])
    logger.info(f"Password rotated for user {user.id}")
    return issue_token(user.id, user.role, now=now)


# =============================================================================
# User Management (admin)
# =============================================================================

def list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    page=None,
    limit=None,
) -> UserPageDTO:
    page_number, page_size = parse_page_window(page, limit)

    queryset = User.objects.all()
    if role:
        if role not in UserRole.values:
            raise ValidationFailed("Invalid role", errors={'role': [f"Must be one of: {', '.join(UserRole.values)}"]})
        queryset = queryset.filter(role=role)
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active)

    queryset = queryset.order_by('-date_joined', 'id')
    total = queryset.count()
    offset = (page_number - 1) * page_size
    users = queryset[offset:offset + page_size]

    return UserPageDTO(
        items=[_user_to_dto(u) for u in users],
        total=total,
        page=page_number,
        pages=page_count(total, page_size),
        limit=page_size,
    )


def update_user_role(user_id: UUID, role: str) -> UserDTO:
    if role not in UserRole.values:
        raise ValidationFailed("Invalid role", errors={'role': [f"Must be one of: {', '.join(UserRole.values)}"]})

    user = find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    user.role = role
    user.save(update_fields=['role'])
    logger.info(f"Role of user {user.id} set to {role}")
    return _user_to_dto(user)


def deactivate_user(user_id: UUID) -> UserDTO:
    user = find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    user.is_active = False  # Soft delete: disables login and every outstanding token
    user.save(update_fields=['is_active'])
    logger.info(f"Deactivated user {user.id}")
    return _user_to_dto(user)
