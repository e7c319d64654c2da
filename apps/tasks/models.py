import math
import uuid

from django.conf import settings
from django.core.validators import MaxLengthValidator, MinLengthValidator
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from apps.core.clock import resolve_now


class TaskStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in-progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class TaskPriority(models.TextChoices):
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


# Statuses that end a task's life; such tasks are never overdue.
CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

TAG_MAX_LENGTH = 30


def validate_tags(value):
    if not isinstance(value, list):
        raise ValidationError("Tags must be a list of strings.")
    for tag in value:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be a list of strings.")
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError(f"Tag cannot exceed {TAG_MAX_LENGTH} characters.")


class Task(models.Model):
    """
    A unit of work owned by an assignee and authored by a creator.

    Visibility and modification rights derive from those two references
    (see apps.tasks.access).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=200, validators=[MinLengthValidator(1)])
    description = models.TextField(blank=True, default='', validators=[MaxLengthValidator(1000)])
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.choices,
        default=TaskStatus.PENDING,
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=TaskPriority.choices,
        default=TaskPriority.MEDIUM,
        db_index=True,
    )
    category = models.CharField(max_length=50, default='general', db_index=True)
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='assigned_tasks',
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_tasks',
    )

    tags = models.JSONField(default=list, blank=True, validators=[validate_tags])
    is_archived = models.BooleanField(default=False, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['assigned_to', 'status'], name='task_assignee_status_idx'),
            models.Index(fields=['created_by', '-created_at'], name='task_creator_created_idx'),
            models.Index(fields=['status', 'priority'], name='task_status_priority_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def is_overdue(self) -> bool:
        if self.due_date and self.status not in CLOSED_STATUSES:
            return resolve_now() > self.due_date
        return False

    @property
    def days_until_due(self):
        if self.due_date and self.status not in CLOSED_STATUSES:
            seconds = (self.due_date - resolve_now()).total_seconds()
            return math.ceil(seconds / 86400)
        return None

    @property
    def duration_days(self):
        """Days from creation to completion, rounded up."""
        if self.completed_at and self.created_at:
            seconds = (self.completed_at - self.created_at).total_seconds()
            return math.ceil(seconds / 86400)
        return None


class TaskComment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='comments')
    content = models.TextField(validators=[MinLengthValidator(1), MaxLengthValidator(500)])
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_comments',
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Comment by {self.author_id} on {self.task_id}"
