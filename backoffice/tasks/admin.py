from django.contrib import admin
from .models import Task, Subtask


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'priority', 'status', 'assigned_to', 'due_date', 'progress', 'parent_task']
    list_filter = ['status', 'priority']
    search_fields = ['title', 'description']
    inlines = [SubtaskInline]
