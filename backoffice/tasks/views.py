import logging

from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backoffice.core.authorization import AuthorizationContext, can_view_page, IsManager
from backoffice.core.cache_utils import cached_query, TASK_KPI_CACHE_TTL, REPORTS_PREFIX
from backoffice.core.hierarchy import build_tree, task_sort_key, CyclicHierarchyError
from backoffice.core.utils import create_audit_log
from .models import Task, Subtask
from .serializers import TaskSerializer, SubtaskSerializer, TaskStatusSerializer, TaskProgressSerializer

logger = logging.getLogger(__name__)

User = get_user_model()

TASKS_PAGE = '/tasks'


def visible_tasks(context):
    """Managers see every task, everyone else the tasks assigned to them"""
    queryset = Task.objects.select_related('assigned_to').prefetch_related('subtasks')
    if context.can_manage:
        return queryset
    return queryset.filter(assigned_to_id=context.user_id)


def get_visible_task(request, pk):
    return get_object_or_404(visible_tasks(AuthorizationContext.for_request(request)), pk=pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def task_list_create(request):
    """List visible tasks or create a task with its subtasks (managers)"""
    context = AuthorizationContext.for_request(request)
    if request.method == 'GET':
        tasks = visible_tasks(context)
        status_filter = request.query_params.get('status')
        if status_filter:
            tasks = tasks.filter(status__iexact=status_filter)
        assignee = request.query_params.get('assigned_to')
        if assignee:
            tasks = tasks.filter(assigned_to_id=assignee)
        return Response(TaskSerializer(tasks, many=True).data)
    else:
        if not context.can_manage:
            return Response({'error': IsManager.message}, status=status.HTTP_403_FORBIDDEN)
        data = request.data.copy()
        subtasks_data = data.pop('subtasks', None)
        serializer = TaskSerializer(data=data, context={'subtasks_data': subtasks_data, 'request': request})
        if serializer.is_valid():
            task = serializer.save(created_by=request.user)
            create_audit_log(request, 'create', 'Task', task.id, object_name=task.title)
            return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def task_detail(request, pk):
    """Retrieve a visible task; managers update and delete"""
    task = get_visible_task(request, pk)

    if request.method == 'GET':
        return Response(TaskSerializer(task).data)

    if not AuthorizationContext.for_request(request).can_manage:
        return Response({'error': IsManager.message}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        data = request.data.copy()
        subtasks_data = data.pop('subtasks', None)
        serializer = TaskSerializer(
            task,
            data=data,
            partial=request.method == 'PATCH',
            context={'subtasks_data': subtasks_data, 'request': request}
        )
        if serializer.is_valid():
            task = serializer.save()
            create_audit_log(request, 'update', 'Task', task.id, changes=data, object_name=task.title)
            return Response(TaskSerializer(Task.objects.get(pk=task.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request, 'delete', 'Task', task.id, object_name=task.title)
        task.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def task_set_status(request, pk):
    """Quick status change by the assignee or a manager"""
    task = get_visible_task(request, pk)
    serializer = TaskStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = task.status
    task.status = serializer.validated_data['status']
    task.save(update_fields=['status', 'updated_at'])
    create_audit_log(
        request, 'status_change', 'Task', task.id,
        changes={'status': {'old': old_status, 'new': task.status}}, object_name=task.title
    )
    return Response(TaskSerializer(task).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def task_set_progress(request, pk):
    """Quick progress change; tasks with subtasks derive progress from them"""
    task = get_visible_task(request, pk)
    if task.subtasks.exists():
        return Response({'error': 'Progress of a task with subtasks follows its completed subtasks.'},
                        status=status.HTTP_400_BAD_REQUEST)
    serializer = TaskProgressSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    task.progress = serializer.validated_data['progress']
    task.save(update_fields=['progress', 'updated_at'])
    return Response(TaskSerializer(task).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def subtask_detail(request, pk, subtask_pk):
    """Tick a subtask off (or edit it) and refresh the task's progress"""
    task = get_visible_task(request, pk)
    subtask = get_object_or_404(Subtask, pk=subtask_pk, task=task)
    serializer = SubtaskSerializer(subtask, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save()
    task.recalculate_progress()
    return Response(TaskSerializer(Task.objects.get(pk=task.pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE)])
def task_tree(request):
    """Visible tasks nested under their parent task.

    Ordered by status (In Progress, Delayed, Pending, Completed) then newest
    first. A task whose parent is not visible to the caller becomes a root.
    """
    tasks = TaskSerializer(visible_tasks(AuthorizationContext.for_request(request)), many=True).data
    try:
        roots = build_tree(tasks, parent_field='parent_task', sort_key=task_sort_key)
    except CyclicHierarchyError as e:
        logger.error(f"Task hierarchy can not be built: {e}")
        return Response({'error': str(e), 'cycle': e.cycle}, status=status.HTTP_409_CONFLICT)
    return Response(roots)


@cached_query(cache_ttl=TASK_KPI_CACHE_TTL, key_prefix=f"{REPORTS_PREFIX}:task_kpis")
def get_task_kpis(today):
    open_statuses = [value for value, _label in Task.STATUS_CHOICES if value != Task.STATUS_COMPLETED]
    overdue = Q(tasks__due_date__lt=today, tasks__status__in=open_statuses)
    staff = User.objects.filter(is_active=True).annotate(
        total=Count('tasks'),
        completed=Count('tasks', filter=Q(tasks__status=Task.STATUS_COMPLETED)),
        overdue=Count('tasks', filter=overdue),
    ).order_by('first_name', 'last_name', 'username')

    per_staff = [
        {
            'user_id': user.pk,
            'name': user.get_full_name() or user.username,
            'total': user.total,
            'completed': user.completed,
            'overdue': user.overdue,
            'completion_rate': round(user.completed * 100 / user.total, 2) if user.total else 0,
        }
        for user in staff
    ]

    counts = dict(Task.objects.order_by().values_list('status').annotate(count=Count('id')))
    overall = [
        {'status': value, 'count': counts.get(value, 0)}
        for value, _label in Task.STATUS_CHOICES
    ]
    return {'staff': per_staff, 'overall': overall, 'total': sum(counts.values())}


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page(TASKS_PAGE), IsManager])
def task_kpis(request):
    """Per staff member totals, completions, overdue tasks and completion rate"""
    return Response(get_task_kpis(timezone.localdate()))
