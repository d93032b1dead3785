from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Role
from projects.models import Project
from tasks.context import ActionContext
from tasks.models import Task, TaskStatus
from tasks.services import TaskLifecycleService
from .models import ActivityLog

User = get_user_model()


class ActivitySignalTest(TestCase):
    def setUp(self):
        self.manager = User.objects.create_user(
            email='manager@example.com', password='testpass123', role=Role.MANAGEMENT
        )
        self.employee = User.objects.create_user(email='worker@example.com', password='testpass123')
        self.project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)
        self.service = TaskLifecycleService()
        self.task = self.service.create_task(
            ActionContext(self.manager), title='Close books', project=self.project, assignee=self.employee
        )

    def test_creation_is_logged(self):
        log = ActivityLog.objects.get(action='create', object_id=self.task.pk, content_type__model='task')
        self.assertEqual(log.user, self.manager)
        self.assertEqual(log.project_id, self.project.pk)

    def test_status_change_is_logged_once_with_states(self):
        self.service.set_status(self.task, TaskStatus.IN_PROGRESS, ActionContext(self.employee))

        logs = ActivityLog.objects.filter(object_id=self.task.pk, content_type__model='task')
        status_logs = logs.filter(action='status_change')
        self.assertEqual(status_logs.count(), 1)
        self.assertEqual((status_logs[0].from_state, status_logs[0].to_state), ('todo', 'in_progress'))
        self.assertEqual(status_logs[0].user, self.employee)
        self.assertFalse(logs.filter(action='update').exists())

    def test_field_updates_are_diffed(self):
        self.service.update_task(self.task, ActionContext(self.manager), title='Close the books')
        log = ActivityLog.objects.get(action='update', object_id=self.task.pk, content_type__model='task')
        self.assertEqual(log.changes, {'title': {'from': 'Close books', 'to': 'Close the books'}})

    def test_comment_is_logged(self):
        self.service.add_comment(self.task, ActionContext(self.employee), 'All reconciled')
        log = ActivityLog.objects.get(action='comment')
        self.assertEqual(log.comment_text, 'All reconciled')
        self.assertEqual(log.object_id, self.task.pk)

    def test_deletion_is_logged(self):
        task_id = self.task.pk
        self.service.delete_task(self.task, ActionContext(self.manager))
        log = ActivityLog.objects.get(action='delete', object_id=task_id, content_type__model='task')
        self.assertEqual(log.to_state, 'Deleted')
        self.assertIsNone(log.safe_content_object)


class ActivityLogViewsTest(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(
            email='manager@example.com', password='testpass123', role=Role.MANAGEMENT
        )
        self.member = User.objects.create_user(email='member@example.com', password='testpass123')
        self.outsider = User.objects.create_user(email='outsider@example.com', password='testpass123')
        self.project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)
        self.project.members.add(self.member)
        Task.objects.create(project=self.project, title='Close books', last_modified_by=self.manager)

    def test_project_logs_visible_to_members(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get(reverse('project-activity-logs', args=[self.project.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(len(response.data) >= 1)

    def test_project_logs_hidden_from_outsiders(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(reverse('project-activity-logs', args=[self.project.pk]))
        self.assertEqual(response.data, [])

        response = self.client.get(reverse('activity-log-list'))
        self.assertEqual(response.data, [])

    def test_filter_by_action(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('activity-log-list'), {'action': 'create'})
        self.assertTrue(all(row['action'] == 'create' for row in response.data))
        self.assertTrue(len(response.data) >= 2)
