# taskcrm/activity/views.py
from django.db.models import Q
from rest_framework import generics, permissions

from accounts.policy import VIEW_ALL_TASKS, can
from projects.models import Project
from .models import ActivityLog
from .serializers import ActivityLogSerializer


def accessible_project_ids(user):
    return Project.objects.filter(
        Q(members=user) | Q(created_by=user)
    ).values_list('id', flat=True)


def filter_by_params(queryset, params):
    content_type = params.get('content_type')
    object_id = params.get('object_id')
    action = params.get('action')
    if content_type:
        queryset = queryset.filter(content_type__model=content_type)
    if object_id:
        queryset = queryset.filter(object_id=object_id)
    if action:
        queryset = queryset.filter(action=action)
    return queryset


class ActivityLogListView(generics.ListAPIView):
    serializer_class = ActivityLogSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = ActivityLog.objects.select_related('user', 'content_type')
        if not can(user, VIEW_ALL_TASKS):
            queryset = queryset.filter(
                Q(project_id__in=list(accessible_project_ids(user))) | Q(user=user)
            )
        return filter_by_params(queryset, self.request.query_params)


class ProjectActivityLogListView(generics.ListAPIView):
    serializer_class = ActivityLogSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        project_id = self.kwargs.get('project_id')
        user = self.request.user

        if not can(user, VIEW_ALL_TASKS) and project_id not in set(accessible_project_ids(user)):
            return ActivityLog.objects.none()

        queryset = ActivityLog.objects.filter(project_id=project_id).select_related('user', 'content_type')
        return filter_by_params(queryset, self.request.query_params)


class MemberActivityLogListView(ProjectActivityLogListView):
    """Activity of one user within a project"""

    def get_queryset(self):
        return super().get_queryset().filter(user_id=self.kwargs.get('member_id'))
