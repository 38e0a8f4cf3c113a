from django.db import transaction
from rest_framework import serializers

from backoffice.core.hierarchy import parent_map, would_create_cycle
from .models import Task, Subtask


class SubtaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subtask
        fields = ['id', 'title', 'completed', 'start_date', 'end_date']

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError({'end_date': 'End date must be on or after the start date.'})
        return attrs


class TaskSerializer(serializers.ModelSerializer):
    """Subtasks are written through context['subtasks_data'] and replace the existing ones"""
    subtasks = SubtaskSerializer(many=True, read_only=True)
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'priority', 'status', 'assigned_to', 'assigned_to_name',
            'created_by', 'due_date', 'supervisor_notes', 'progress', 'parent_task', 'subtasks',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_assigned_to_name(self, obj):
        if obj.assigned_to is None:
            return None
        return obj.assigned_to.get_full_name() or obj.assigned_to.username

    def validate_progress(self, value):
        if value > 100:
            raise serializers.ValidationError("Progress must be between 0 and 100.")
        return value

    def validate_parent_task(self, value):
        if value is None or self.instance is None:
            return value
        parents = parent_map(Task.objects.values('id', 'parent_task'), parent_field='parent_task')
        if would_create_cycle(parents, self.instance.pk, value.pk):
            raise serializers.ValidationError("A task can not be placed under itself or one of its sub-tasks.")
        return value

    def validate(self, attrs):
        if self.instance is None and attrs.get('assigned_to') is None:
            raise serializers.ValidationError({'assigned_to': 'Please assign this task to a staff member.'})

        subtasks_data = self.context.get('subtasks_data')
        self.validated_subtasks = None
        if subtasks_data is not None:
            if not isinstance(subtasks_data, list):
                raise serializers.ValidationError({'subtasks': 'Expected a list of subtasks.'})
            subtasks = SubtaskSerializer(data=subtasks_data, many=True)
            if not subtasks.is_valid():
                raise serializers.ValidationError({'subtasks': subtasks.errors})
            self.validated_subtasks = subtasks.validated_data
        return attrs

    def _write_subtasks(self, task):
        if self.validated_subtasks is not None:
            task.subtasks.all().delete()
            Subtask.objects.bulk_create([Subtask(task=task, **data) for data in self.validated_subtasks])
        task.recalculate_progress()

    def create(self, validated_data):
        with transaction.atomic():
            task = super().create(validated_data)
            self._write_subtasks(task)
        return task

    def update(self, instance, validated_data):
        with transaction.atomic():
            task = super().update(instance, validated_data)
            self._write_subtasks(task)
        return task


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES)


class TaskProgressSerializer(serializers.Serializer):
    progress = serializers.IntegerField(min_value=0, max_value=100)
