"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
from typing import Optional, List


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    last_login: Optional[datetime]
    date_joined: datetime
    permissions: List[str]


@dataclass(frozen=True)
class UserPageDTO:
    items: List[UserDTO]
    total: int
    page: int
    pages: int
    limit: int


from ninja import Schema
from .models import UserRole


class RegisterIn(Schema):
    username: str
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""


class LoginIn(Schema):
    # Email or username
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class ProfileUpdate(Schema):
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class PasswordChangeIn(Schema):
    current_password: str
    new_password: str


class RoleUpdateIn(Schema):
    role: str = UserRole.USER


class UserOut(Schema):
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    date_joined: datetime
    permissions: List[str]


class AuthOut(Schema):
    success: bool
    message: str
    user: UserOut
    token: str


class MessageOut(Schema):
    success: bool
    message: str


class UserPageOut(Schema):
    items: List[UserOut]
    total: int
    page: int
    pages: int
    limit: int
