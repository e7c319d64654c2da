import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.contrib.auth.validators import UnicodeUsernameValidator
from django.core.validators import MinLengthValidator
from django.db import models

from apps.core.clock import resolve_now


class UserRole(models.TextChoices):
    USER = 'user', 'User'
    ADMIN = 'admin', 'Administrator'


class User(AbstractUser):
    """
    Identity record for the task tracker.

    The password hash never leaves this model: DTOs and response schemas
    list their fields explicitly and none of them include it.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = models.CharField(
        max_length=30,
        unique=True,
        validators=[UnicodeUsernameValidator(), MinLengthValidator(3)],
        error_messages={'unique': 'A user with that username already exists.'},
    )
    email = models.EmailField(
        unique=True,
        error_messages={'unique': 'A user with that email already exists.'},
    )
    role = models.CharField(
        max_length=10,
        choices=UserRole.choices,
        default=UserRole.USER
    )
    password_changed_at = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    REQUIRED_FIELDS = ['email']

    class Meta:
        ordering = ['-date_joined']

    def __str__(self):
        return self.email or self.username

    def set_password(self, raw_password):
        # First password is not a rotation; only later changes move the watermark.
        if self.password:
            self.password_changed_at = resolve_now()
        super().set_password(raw_password)

    def changed_password_after(self, issued_at) -> bool:
        """
        True when the password was rotated after ``issued_at`` (token iat).

        Compared at whole-second resolution, matching the JWT ``iat`` claim:
        a token issued earlier within the same second as the rotation is still
        accepted, anything from an earlier second is stale.
        """
        if self.password_changed_at is None:
            return False
        return int(self.password_changed_at.timestamp()) > int(issued_at.timestamp())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
