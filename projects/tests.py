from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Role
from tasks.models import Comment, Subtask, Task, TaskStatus, TimeEntry
from .models import Project

User = get_user_model()


class ProjectViewsTest(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(
            email='manager@example.com', password='testpass123', role=Role.MANAGEMENT
        )
        self.employee = User.objects.create_user(email='worker@example.com', password='testpass123')
        self.outsider = User.objects.create_user(email='outsider@example.com', password='testpass123')
        self.project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)
        self.project.members.add(self.employee)

    def test_manager_creates_project(self):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post(reverse('project-list-create'), {
            'name': 'Hotline', 'department': 'call_center', 'members': [self.employee.pk],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.manager.pk)
        self.assertEqual(response.data['department_name'], 'Call Center')
        self.assertEqual(response.data['completion_rate'], 0)

    def test_unknown_department_and_bad_dates_are_rejected(self):
        self.client.force_authenticate(user=self.manager)
        url = reverse('project-list-create')
        response = self.client.post(url, {'name': 'X', 'department': 'marketing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {
            'name': 'X', 'department': 'hr', 'start_date': '2024-05-10', 'end_date': '2024-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_create_project(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('project-list-create'), {'name': 'X', 'department': 'hr'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_members_see_their_projects_only(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.get(reverse('project-list-create'))
        self.assertEqual([p['id'] for p in response.data], [self.project.pk])

        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(reverse('project-list-create'))
        self.assertEqual(response.data, [])

    def test_completion_rate_and_cascade_delete(self):
        for i in range(10):
            task = Task.objects.create(
                project=self.project, title=f'task {i}',
                status=TaskStatus.DONE if i < 4 else TaskStatus.IN_PROGRESS,
            )
            Subtask.objects.create(task=task, title='step')
            Comment.objects.create(task=task, author=self.employee, content='note')
            TimeEntry.objects.create(
                task=task, user=self.employee, start_time=task.created_at, duration=15, date='2024-05-15'
            )

        self.client.force_authenticate(user=self.manager)
        response = self.client.get(reverse('project-detail', args=[self.project.pk]))
        self.assertEqual(response.data['task_count'], 10)
        self.assertEqual(response.data['completion_rate'], 40)

        response = self.client.delete(reverse('project-detail', args=[self.project.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Task.objects.exists())
        self.assertFalse(Subtask.objects.exists())
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(TimeEntry.objects.exists())
        self.assertFalse(Project.objects.exists())
