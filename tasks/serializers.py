# taskcrm/tasks/serializers.py
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from projects.models import Project
from .ledger import round_half_up
from .models import Comment, FileAttachment, Subtask, Task, TaskStatus, TimeEntry
from .risk import task_risk_score
from .temporal import is_due_soon, is_overdue

User = get_user_model()


class ClockMixin:
    """Serializers that classify tasks read the request clock from the context."""

    def get_now(self):
        return self.context.get('now') or timezone.now()


class SubtaskSerializer(serializers.ModelSerializer):
    assignee = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        allow_null=True,
        required=False
    )

    class Meta:
        model = Subtask
        fields = ['id', 'task', 'title', 'completed', 'assignee', 'due_date']
        read_only_fields = ['task', 'completed']


class TaskSerializer(ClockMixin, serializers.ModelSerializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    assignee = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
        allow_null=True,
        required=False
    )
    dependencies = serializers.PrimaryKeyRelatedField(
        queryset=Task.objects.all(),
        many=True,
        required=False
    )
    assignee_name = serializers.CharField(source='assignee.name', read_only=True, default=None)
    subtasks = SubtaskSerializer(many=True, read_only=True)
    actual_hours = serializers.SerializerMethodField()
    is_overdue = serializers.SerializerMethodField()
    is_due_soon = serializers.SerializerMethodField()
    risk_score = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'project', 'assignee', 'assignee_name',
            'created_by', 'status', 'priority', 'due_date', 'start_date',
            'completed_at', 'tags', 'estimated_hours', 'actual_hours',
            'dependencies', 'subtasks', 'is_overdue', 'is_due_soon', 'risk_score',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'completed_at', 'created_at', 'updated_at']

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Tags must be a list of strings.")
        return value

    def validate_dependencies(self, value):
        if self.instance is not None and any(task.pk == self.instance.pk for task in value):
            raise serializers.ValidationError("A task cannot depend on itself.")
        return value

    def get_actual_hours(self, obj):
        return round_half_up(obj.actual_hours * 100) / 100

    def get_is_overdue(self, obj):
        return is_overdue(obj, self.get_now())

    def get_is_due_soon(self, obj):
        return is_due_soon(obj, self.get_now())

    def get_risk_score(self, obj):
        return task_risk_score(obj, self.get_now())


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices)


class AtRiskTaskSerializer(TaskSerializer):
    """Task representation used by the at-risk listing."""

    class Meta(TaskSerializer.Meta):
        fields = [
            'id', 'title', 'project', 'assignee', 'assignee_name', 'status',
            'priority', 'due_date', 'is_overdue', 'risk_score'
        ]
        read_only_fields = fields


class CommentSerializer(serializers.ModelSerializer):
    author = serializers.PrimaryKeyRelatedField(read_only=True)
    author_name = serializers.CharField(source='author.name', read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'task', 'author', 'author_name', 'content', 'mentions', 'created_at', 'updated_at']
        read_only_fields = ['task', 'author', 'mentions', 'created_at', 'updated_at']
        extra_kwargs = {
            'content': {'required': True}
        }


class FileAttachmentSerializer(serializers.ModelSerializer):
    uploaded_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = FileAttachment
        fields = [
            'id', 'task', 'comment', 'uploaded_by', 'file', 'original_filename',
            'content_type', 'size', 'uploaded_at'
        ]
        read_only_fields = ['task', 'uploaded_by', 'original_filename', 'content_type', 'size', 'uploaded_at']
        extra_kwargs = {
            'file': {'required': True}
        }


class TimeEntrySerializer(serializers.ModelSerializer):
    task_title = serializers.CharField(source='task.title', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True)
    date = serializers.DateField(required=False)

    class Meta:
        model = TimeEntry
        fields = [
            'id', 'task', 'task_title', 'user', 'user_name', 'start_time',
            'end_time', 'duration', 'notes', 'date'
        ]
        read_only_fields = ['task', 'user', 'start_time', 'end_time']

    def validate_date(self, value):
        return value.isoformat()


class ManualTimeEntrySerializer(serializers.Serializer):
    task = serializers.PrimaryKeyRelatedField(queryset=Task.objects.all(), allow_null=True, required=False)
    hours = serializers.IntegerField(min_value=0, default=0)
    minutes = serializers.IntegerField(min_value=0, default=0)
    notes = serializers.CharField(allow_blank=True, required=False, default='')
    date = serializers.DateField(required=False)


class TimerStartSerializer(serializers.Serializer):
    task = serializers.PrimaryKeyRelatedField(queryset=Task.objects.all())


class TimerStopSerializer(serializers.Serializer):
    notes = serializers.CharField(allow_blank=True, required=False, default='')
