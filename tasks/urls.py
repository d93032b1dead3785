from django.urls import path
from .views import (
    TaskListCreateView, TaskDetailView, TaskStatusView,
    SubtaskListCreateView, SubtaskToggleView,
    CommentListCreateView,
    FileAttachmentListCreateView, FileAttachmentDetailView, FileAttachmentDownloadView,
    TimeEntryListCreateView, TimeEntryDetailView, TimerView, TimerStopView,
    TimeSummaryView, TimeEntryExportView,
    AtRiskTaskListView, DeadlineTaskListView, TaskStatisticsView,
    DepartmentPerformanceView, EmployeePerformanceView, WorkloadView, AnalyticsReportView,
)

urlpatterns = [
    # Task endpoints
    path('', TaskListCreateView.as_view(), name='task-list-create'),
    path('<int:pk>/', TaskDetailView.as_view(), name='task-detail'),
    path('<int:pk>/status/', TaskStatusView.as_view(), name='task-status'),
    path('at-risk/', AtRiskTaskListView.as_view(), name='task-at-risk'),
    path('deadlines/', DeadlineTaskListView.as_view(), name='task-deadlines'),
    path('stats/', TaskStatisticsView.as_view(), name='task-stats'),

    # Subtasks and comments (nested under tasks)
    path('<int:task_id>/subtasks/', SubtaskListCreateView.as_view(), name='subtask-list-create'),
    path('<int:task_id>/subtasks/<int:pk>/toggle/', SubtaskToggleView.as_view(), name='subtask-toggle'),
    path('<int:task_id>/comments/', CommentListCreateView.as_view(), name='comment-list-create'),

    # File Attachment endpoints
    path('<int:task_id>/attachments/', FileAttachmentListCreateView.as_view(), name='fileattachment-list-create'),
    path('attachments/<int:pk>/', FileAttachmentDetailView.as_view(), name='fileattachment-detail'),
    path('attachments/<int:pk>/download/', FileAttachmentDownloadView.as_view(), name='fileattachment-download'),

    # Time tracking
    path('time-entries/', TimeEntryListCreateView.as_view(), name='time-entry-list-create'),
    path('time-entries/<int:pk>/', TimeEntryDetailView.as_view(), name='time-entry-detail'),
    path('time-entries/summary/', TimeSummaryView.as_view(), name='time-entry-summary'),
    path('time-entries/export/', TimeEntryExportView.as_view(), name='time-entry-export'),
    path('timer/', TimerView.as_view(), name='timer'),
    path('timer/stop/', TimerStopView.as_view(), name='timer-stop'),

    # Analytics
    path('analytics/departments/', DepartmentPerformanceView.as_view(), name='analytics-departments'),
    path('analytics/employees/', EmployeePerformanceView.as_view(), name='analytics-employees'),
    path('analytics/workload/', WorkloadView.as_view(), name='analytics-workload'),
    path('analytics/report/', AnalyticsReportView.as_view(), name='analytics-report'),
]
