from django.contrib import admin
from .models import Task, TaskComment
from .services import apply_status_transition


class TaskCommentInline(admin.TabularInline):
    model = TaskComment
    extra = 0
    readonly_fields = ['created_at']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'status', 'priority', 'category', 'assigned_to', 'created_by', 'due_date', 'is_archived']
    list_filter = ['status', 'priority', 'is_archived', 'category']
    search_fields = ['title', 'description', 'category']
    date_hierarchy = 'created_at'
    readonly_fields = ['created_at', 'updated_at', 'completed_at']
    inlines = [TaskCommentInline]

    def save_model(self, request, obj, form, change):
        # completed_at is derived from status, same as API writes.
        apply_status_transition(obj, obj.status)
        super().save_model(request, obj, form, change)


@admin.register(TaskComment)
class TaskCommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'task', 'author', 'created_at']
    search_fields = ['content']
    readonly_fields = ['created_at']
