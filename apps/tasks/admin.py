from django.contrib import admin
from .models import Task, TaskHistory, TaskComment


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'team', 'status', 'priority', 'assignee', 'due_date', 'created_at']
    list_filter = ['status', 'priority']
    search_fields = ['title', 'description']


@admin.register(TaskHistory)
class TaskHistoryAdmin(admin.ModelAdmin):
    list_display = ['task', 'field', 'old_value', 'new_value', 'user', 'changed_at']
    list_filter = ['field']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(TaskComment)
class TaskCommentAdmin(admin.ModelAdmin):
    list_display = ['task', 'user', 'created_at']
