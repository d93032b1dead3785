# taskcrm/projects/views.py
import logging

from django.db.models import Q
from rest_framework import generics, permissions

from accounts.permissions import require
from accounts.policy import MANAGE_PROJECTS, VIEW_ALL_TASKS, can
from tasks.store import TaskStore
from .models import Project
from .serializers import ProjectSerializer

logger = logging.getLogger(__name__)


def visible_projects(user):
    queryset = Project.objects.select_related('created_by').prefetch_related('members')
    if can(user, VIEW_ALL_TASKS):
        return queryset
    return queryset.filter(Q(members=user) | Q(created_by=user)).distinct()


class ProjectPermissionsMixin:
    def get_permissions(self):
        if self.request.method in permissions.SAFE_METHODS:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), require(MANAGE_PROJECTS)()]


class ProjectListCreateView(ProjectPermissionsMixin, generics.ListCreateAPIView):
    serializer_class = ProjectSerializer

    def get_queryset(self):
        queryset = visible_projects(self.request.user)
        department = self.request.query_params.get('department')
        status = self.request.query_params.get('status')
        if department:
            queryset = queryset.filter(department=department)
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    def perform_create(self, serializer):
        project = serializer.save(created_by=self.request.user, last_modified_by=self.request.user)
        logger.info(f"Project {project.pk} created by user {self.request.user.pk}")


class ProjectDetailView(ProjectPermissionsMixin, generics.RetrieveUpdateDestroyAPIView):
    serializer_class = ProjectSerializer

    def get_queryset(self):
        return visible_projects(self.request.user)

    def perform_update(self, serializer):
        serializer.save(last_modified_by=self.request.user)

    def perform_destroy(self, instance):
        TaskStore().delete_project(instance.pk)
