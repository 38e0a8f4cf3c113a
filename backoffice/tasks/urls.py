from django.urls import path
from .views import (
    task_list_create, task_detail, task_set_status, task_set_progress,
    subtask_detail, task_tree, task_kpis,
)

urlpatterns = [
    path('tasks/', task_list_create, name='task-list-create'),
    path('tasks/tree/', task_tree, name='task-tree'),
    path('tasks/kpis/', task_kpis, name='task-kpis'),
    path('tasks/<int:pk>/', task_detail, name='task-detail'),
    path('tasks/<int:pk>/status/', task_set_status, name='task-set-status'),
    path('tasks/<int:pk>/progress/', task_set_progress, name='task-set-progress'),
    path('tasks/<int:pk>/subtasks/<int:subtask_pk>/', subtask_detail, name='subtask-detail'),
]
