# taskcrm/tasks/views.py
from django.contrib.auth import get_user_model
from django.http import FileResponse, HttpResponse
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import filters, generics, permissions, status
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Role
from accounts.permissions import TaskActionPermission, require
from accounts.policy import (
    CHANGE_STATUS, COMMENT, DELETE_TASKS, EDIT_TASK, LOG_TIME, MANAGE_TASKS,
    VIEW_ALL_TASKS, VIEW_ANALYTICS, VIEW_TASK, can, visible_tasks,
)
from departments.models import Department
from projects.models import Project
from . import metrics
from .context import ActionContext
from .ledger import TimeLedger, daily_hours, minutes_by_user, to_csv, total_minutes
from .models import FileAttachment, Task, TimeEntry
from .risk import score_tasks
from .serializers import (
    AtRiskTaskSerializer, CommentSerializer, FileAttachmentSerializer,
    ManualTimeEntrySerializer, SubtaskSerializer, TaskSerializer,
    TaskStatusSerializer, TimeEntrySerializer, TimerStartSerializer,
    TimerStopSerializer,
)
from .services import TaskLifecycleService
from .store import TaskStore
from .temporal import due_soon_tasks, overdue_tasks

User = get_user_model()


def task_queryset():
    return Task.objects.select_related('project', 'assignee').prefetch_related('subtasks', 'time_entries')


def load_task(request, pk, action):
    """Fetch a task through the store and check ``action`` on it."""
    task = TaskStore().tasks.get(pk)
    if task is None:
        raise NotFound("Task not found")
    if not can(request.user, action, task):
        raise PermissionDenied("You don't have permission to do that on this task")
    return task


class ClockedViewMixin:
    """Pins one clock reading per request and shares it with serializers."""

    @property
    def action_context(self):
        if not hasattr(self, '_action_context'):
            self._action_context = ActionContext.from_request(self.request)
        return self._action_context

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['now'] = self.action_context.now
        return context


# ---------------------------------- Tasks ----------------------

class TaskListCreateView(ClockedViewMixin, generics.ListCreateAPIView):
    serializer_class = TaskSerializer
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter, filters.SearchFilter]
    filterset_fields = ['status', 'priority', 'project', 'assignee']
    search_fields = ['title', 'description']
    ordering_fields = ['due_date', 'priority', 'created_at', 'updated_at']

    def get_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), require(MANAGE_TASKS)()]

    def get_queryset(self):
        return visible_tasks(self.request.user, task_queryset())

    def perform_create(self, serializer):
        task = TaskLifecycleService().create_task(self.action_context, **serializer.validated_data)
        if task is None:
            raise ValidationError({'title': ["Title cannot be empty."]})
        serializer.instance = task


class TaskDetailView(ClockedViewMixin, generics.RetrieveUpdateDestroyAPIView):
    serializer_class = TaskSerializer
    permission_classes = [permissions.IsAuthenticated, TaskActionPermission]

    @property
    def task_action(self):
        if self.request.method in permissions.SAFE_METHODS:
            return VIEW_TASK
        if self.request.method == 'DELETE':
            return DELETE_TASKS
        return EDIT_TASK

    def get_queryset(self):
        return task_queryset()

    def perform_update(self, serializer):
        task = TaskLifecycleService().update_task(
            serializer.instance, self.action_context, **serializer.validated_data
        )
        if task is None:
            raise NotFound("Task not found")
        serializer.instance = task_queryset().get(pk=task.pk)

    def perform_destroy(self, instance):
        TaskLifecycleService().delete_task(instance, self.action_context)


class TaskStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(request_body=TaskStatusSerializer, responses={200: TaskSerializer})
    def patch(self, request, pk):
        task = load_task(request, pk, CHANGE_STATUS)
        serializer = TaskStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        context = ActionContext.from_request(request)
        TaskLifecycleService().set_status(task, serializer.validated_data['status'], context)
        task = task_queryset().get(pk=task.pk)
        return Response(TaskSerializer(task, context={'now': context.now}).data)


class SubtaskListCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, task_id):
        task = load_task(request, task_id, VIEW_TASK)
        return Response(SubtaskSerializer(task.subtasks.all(), many=True).data)

    @swagger_auto_schema(request_body=SubtaskSerializer, responses={201: SubtaskSerializer})
    def post(self, request, task_id):
        task = load_task(request, task_id, EDIT_TASK)
        serializer = SubtaskSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subtask = TaskLifecycleService().add_subtask(
            task, ActionContext.from_request(request), **serializer.validated_data
        )
        if subtask is None:
            raise ValidationError({'title': ["Title cannot be empty."]})
        return Response(SubtaskSerializer(subtask).data, status=status.HTTP_201_CREATED)


class SubtaskToggleView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, task_id, pk):
        task = load_task(request, task_id, EDIT_TASK)
        subtask = TaskLifecycleService().toggle_subtask(task, pk, ActionContext.from_request(request))
        if subtask is None:
            raise NotFound("Subtask not found")
        return Response(SubtaskSerializer(subtask).data)


class CommentListCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, task_id):
        task = load_task(request, task_id, VIEW_TASK)
        comments = task.comments.select_related('author')
        return Response(CommentSerializer(comments, many=True).data)

    @swagger_auto_schema(request_body=CommentSerializer, responses={201: CommentSerializer})
    def post(self, request, task_id):
        task = load_task(request, task_id, COMMENT)
        serializer = CommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = TaskLifecycleService().add_comment(
            task, ActionContext.from_request(request), serializer.validated_data['content']
        )
        if comment is None:
            raise ValidationError({'content': ["Comment cannot be empty."]})
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class FileAttachmentListCreateView(generics.ListCreateAPIView):
    serializer_class = FileAttachmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def get_queryset(self):
        task = load_task(self.request, self.kwargs.get('task_id'), VIEW_TASK)
        return FileAttachment.objects.filter(task=task)

    def perform_create(self, serializer):
        task = load_task(self.request, self.kwargs.get('task_id'), COMMENT)
        file = self.request.FILES.get('file')
        serializer.save(
            uploaded_by=self.request.user,
            task=task,
            original_filename=file.name if file else '',
            content_type=getattr(file, 'content_type', '') or '',
        )
        TaskStore().touch_task(task.pk, timezone.now())


class FileAttachmentDetailView(generics.RetrieveDestroyAPIView):
    serializer_class = FileAttachmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        attachment = FileAttachment.objects.select_related('task__project').filter(pk=self.kwargs['pk']).first()
        if attachment is None:
            raise NotFound("Attachment not found")
        if not can(self.request.user, VIEW_TASK, attachment.task):
            raise PermissionDenied("You don't have permission to access this file")
        return attachment

    def perform_destroy(self, instance):
        if instance.uploaded_by_id != self.request.user.pk and not can(self.request.user, DELETE_TASKS):
            raise PermissionDenied("Only the uploader can remove this file")
        instance.file.delete(save=False)
        instance.delete()


class FileAttachmentDownloadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk, format=None):
        attachment = FileAttachment.objects.select_related('task__project').filter(pk=pk).first()
        if attachment is None:
            raise NotFound("Attachment not found")
        if not can(request.user, VIEW_TASK, attachment.task):
            raise PermissionDenied("You don't have permission to access this file")

        response = FileResponse(attachment.file)
        response['Content-Disposition'] = f'attachment; filename="{attachment.original_filename}"'
        return response


# ---------------------------------- Time tracking ----------------------

def visible_time_entries(user):
    entries = TimeEntry.objects.select_related('task', 'user')
    if can(user, VIEW_ALL_TASKS):
        return entries
    return entries.filter(user=user)


class TimeEntryListCreateView(generics.ListCreateAPIView):
    serializer_class = TimeEntrySerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['task', 'user', 'date']

    def get_queryset(self):
        return visible_time_entries(self.request.user)

    @swagger_auto_schema(request_body=ManualTimeEntrySerializer, responses={201: TimeEntrySerializer})
    def post(self, request, *args, **kwargs):
        serializer = ManualTimeEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        task = data.get('task')
        if task is not None and not can(request.user, LOG_TIME, task):
            raise PermissionDenied("You can only log time on your own tasks")
        day = data['date'].isoformat() if data.get('date') else None
        entry = TimeLedger().log_manual(
            task, ActionContext.from_request(request),
            hours=data['hours'], minutes=data['minutes'], notes=data['notes'], day=day,
        )
        if entry is None:
            raise ValidationError("Select a task and enter a duration greater than zero.")
        return Response(TimeEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class TimeEntryDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get_entry(self, request, pk):
        entry = TaskStore().time_entries.get(pk)
        if entry is None:
            raise NotFound("Time entry not found")
        if entry.user_id != request.user.pk and not can(request.user, MANAGE_TASKS):
            raise PermissionDenied("You can only change your own time entries")
        return entry

    def get(self, request, pk):
        return Response(TimeEntrySerializer(self.get_entry(request, pk)).data)

    @swagger_auto_schema(request_body=TimeEntrySerializer, responses={200: TimeEntrySerializer})
    def patch(self, request, pk):
        entry = self.get_entry(request, pk)
        serializer = TimeEntrySerializer(entry, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated = TimeLedger().update_entry(entry.pk, **serializer.validated_data)
        if updated is None:
            raise ValidationError({'duration': ["Duration must be greater than zero."]})
        TaskStore().touch_task(updated.task_id, timezone.now())
        return Response(TimeEntrySerializer(updated).data)

    def delete(self, request, pk):
        entry = self.get_entry(request, pk)
        TimeLedger().delete_entry(entry.pk)
        TaskStore().touch_task(entry.task_id, timezone.now())
        return Response(status=status.HTTP_204_NO_CONTENT)


def session_payload(session, now):
    if session is None:
        return None
    payload = session.to_dict()
    payload['elapsed_seconds'] = session.elapsed_seconds(now)
    return payload


class TimerView(APIView):
    """The current user's running stopwatch."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        now = timezone.now()
        return Response({'timer': session_payload(TimeLedger().active_timer(request.user), now)})

    @swagger_auto_schema(request_body=TimerStartSerializer)
    def post(self, request):
        serializer = TimerStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        task = serializer.validated_data['task']
        if not can(request.user, LOG_TIME, task):
            raise PermissionDenied("You can only track time on your own tasks")

        context = ActionContext.from_request(request)
        session = TimeLedger().start_timer(task, context)
        if session is None:
            raise ValidationError("A timer is already running. Stop it before starting another.")
        return Response({'timer': session_payload(session, context.now)}, status=status.HTTP_201_CREATED)


class TimerStopView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(request_body=TimerStopSerializer)
    def post(self, request):
        serializer = TimerStopSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = TimeLedger().stop_timer(ActionContext.from_request(request), serializer.validated_data['notes'])
        return Response({'entry': TimeEntrySerializer(entry).data if entry is not None else None})


class TimeSummaryView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        context = ActionContext.from_request(request)
        entries = list(visible_time_entries(request.user))
        names = dict(User.objects.filter(
            pk__in={entry.user_id for entry in entries}
        ).values_list('pk', 'email'))
        per_user = [
            {'user': user_id, 'email': names.get(user_id), 'minutes': minutes}
            for user_id, minutes in minutes_by_user(entries).items()
        ]
        today = context.today.isoformat()
        return Response({
            'total_minutes': total_minutes(entries),
            'today_minutes': total_minutes(e for e in entries if e.date == today),
            'daily_hours': daily_hours(entries, context.today),
            'per_user': per_user,
        })


class TimeEntryExportView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        entries = visible_time_entries(request.user)
        response = HttpResponse(to_csv(entries), content_type='text/csv')
        filename = f"time-entries-{timezone.localdate().isoformat()}.csv"
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response


# ---------------------------------- Dashboards ----------------------

class AtRiskTaskListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        now = timezone.now()
        tasks = visible_tasks(request.user, task_queryset())
        scored = score_tasks(tasks, now)
        serializer = AtRiskTaskSerializer([task for task, _ in scored], many=True, context={'now': now})
        return Response(serializer.data)


class DeadlineTaskListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        now = timezone.now()
        tasks = list(visible_tasks(request.user, task_queryset()))
        context = {'now': now}
        return Response({
            'overdue': TaskSerializer(overdue_tasks(tasks, now), many=True, context=context).data,
            'due_soon': TaskSerializer(due_soon_tasks(tasks, now), many=True, context=context).data,
        })


class TaskStatisticsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Task KPIs over the tasks visible to the authenticated user",
        responses={
            200: openapi.Response(
                description="Task statistics data",
                schema=openapi.Schema(
                    type=openapi.TYPE_OBJECT,
                    properties={
                        'kpis': openapi.Schema(
                            type=openapi.TYPE_OBJECT,
                            properties={
                                'total_tasks': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'completed_tasks': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'in_progress_tasks': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'overdue_tasks': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'completion_rate': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'total_hours': openapi.Schema(type=openapi.TYPE_NUMBER),
                                'active_projects': openapi.Schema(type=openapi.TYPE_INTEGER),
                                'average_completion_hours': openapi.Schema(type=openapi.TYPE_NUMBER),
                            }
                        ),
                        'status_distribution': openapi.Schema(
                            type=openapi.TYPE_ARRAY,
                            items=openapi.Schema(
                                type=openapi.TYPE_OBJECT,
                                properties={
                                    'status': openapi.Schema(type=openapi.TYPE_STRING),
                                    'name': openapi.Schema(type=openapi.TYPE_STRING),
                                    'value': openapi.Schema(type=openapi.TYPE_INTEGER),
                                }
                            )
                        ),
                        'priority_distribution': openapi.Schema(
                            type=openapi.TYPE_ARRAY,
                            items=openapi.Schema(
                                type=openapi.TYPE_OBJECT,
                                properties={
                                    'priority': openapi.Schema(type=openapi.TYPE_STRING),
                                    'name': openapi.Schema(type=openapi.TYPE_STRING),
                                    'value': openapi.Schema(type=openapi.TYPE_INTEGER),
                                }
                            )
                        ),
                    }
                )
            ),
            401: "Unauthorized"
        },
        security=[{"Bearer": []}]
    )
    def get(self, request):
        now = timezone.now()
        tasks = list(visible_tasks(request.user, task_queryset()))
        project_ids = {task.project_id for task in tasks}
        projects = Project.objects.filter(pk__in=project_ids)
        return Response({
            'kpis': metrics.kpis(tasks, projects, now),
            'status_distribution': metrics.status_distribution(tasks),
            'priority_distribution': metrics.priority_distribution(tasks),
        })


class AnalyticsMixin:
    permission_classes = [permissions.IsAuthenticated, require(VIEW_ANALYTICS)]

    def collect(self, now):
        tasks = list(task_queryset())
        departments = list(Department.objects.values_list('code', 'name'))
        employees = User.objects.filter(role=Role.EMPLOYEE, is_active=True)
        return {
            'tasks': tasks,
            'departments': metrics.department_rollups(departments, tasks, now),
            'employees': metrics.sort_rollups(metrics.employee_rollups(employees, tasks, now)),
        }


class DepartmentPerformanceView(AnalyticsMixin, APIView):
    def get(self, request):
        rollups = self.collect(timezone.now())['departments']
        return Response({'departments': rollups, **metrics.extremes(rollups)})


class EmployeePerformanceView(AnalyticsMixin, APIView):
    def get(self, request):
        rollups = self.collect(timezone.now())['employees']
        return Response({'employees': rollups, **metrics.extremes(rollups)})


class WorkloadView(AnalyticsMixin, APIView):
    def get(self, request):
        users = User.objects.filter(is_active=True)
        return Response(metrics.workloads(users, task_queryset()))


class AnalyticsReportView(AnalyticsMixin, APIView):
    def get(self, request):
        now = timezone.now()
        data = self.collect(now)
        summary = metrics.kpis(data['tasks'], Project.objects.all(), now)
        today = timezone.localdate()
        report = metrics.analytics_report_csv(summary, data['departments'], data['employees'], today)
        response = HttpResponse(report, content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="analytics-{today.isoformat()}.csv"'
        return response
