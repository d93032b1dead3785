# taskcrm/activity/urls.py
from django.urls import path
from .views import ActivityLogListView, ProjectActivityLogListView, MemberActivityLogListView

urlpatterns = [
    path('logs/', ActivityLogListView.as_view(), name='activity-log-list'),
    path('projects/<int:project_id>/logs/', ProjectActivityLogListView.as_view(), name='project-activity-logs'),
    path(
        'projects/<int:project_id>/members/<int:member_id>/logs/',
        MemberActivityLogListView.as_view(),
        name='project-member-activity-logs'
    ),
]
