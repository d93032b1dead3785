from django.test import TestCase
from django.contrib.auth import get_user_model

from projects.models import Project
from tasks.models import Task
from .models import Role
from .policy import (
    CHANGE_STATUS, COMMENT, DELETE_TASKS, EDIT_TASK, INVITE_USERS, LOG_TIME,
    MANAGE_DEPARTMENTS, MANAGE_USERS, VIEW_ANALYTICS, VIEW_TASK,
    can, capabilities_for, visible_tasks,
)

# Get the custom user model
User = get_user_model()


class CustomUserModelTest(TestCase):
    def test_create_user(self):
        # Test creating a user with required fields
        user = User.objects.create_user(
            email='test@example.com',
            first_name='John',
            last_name='Doe',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')
        self.assertEqual(user.role, Role.EMPLOYEE)
        self.assertEqual(user.name, 'John Doe')
        self.assertTrue(user.is_active)
        self.assertEqual(user.mention_handles, {'test', 'john'})

    def test_create_superuser_is_admin(self):
        user = User.objects.create_superuser(email='root@example.com', password='testpass123')
        self.assertEqual(user.role, Role.ADMIN)
        self.assertEqual(user.name, 'root@example.com')

    def test_email_uniqueness(self):
        # Test that the email field is unique
        User.objects.create_user(
            email='test@example.com',
            first_name='John',
            last_name='Doe',
            password='testpass123'
        )
        with self.assertRaises(Exception):  # Should raise an error if email is not unique
            User.objects.create_user(
                email='test@example.com',
                first_name='Jane',
                last_name='Doe',
                password='testpass123'
            )

    def test_active_reviewers(self):
        User.objects.create_user(email='a@example.com', password='x', role=Role.ADMIN)
        User.objects.create_user(email='m@example.com', password='x', role=Role.MANAGEMENT)
        User.objects.create_user(email='gone@example.com', password='x', role=Role.MANAGEMENT, is_active=False)
        User.objects.create_user(email='e@example.com', password='x')
        emails = set(User.objects.active_reviewers().values_list('email', flat=True))
        self.assertEqual(emails, {'a@example.com', 'm@example.com'})


class AccessPolicyTest(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='x', role=Role.ADMIN)
        self.manager = User.objects.create_user(email='manager@example.com', password='x', role=Role.MANAGEMENT)
        self.assignee = User.objects.create_user(email='worker@example.com', password='x')
        self.member = User.objects.create_user(email='member@example.com', password='x')
        self.outsider = User.objects.create_user(email='outsider@example.com', password='x')
        self.project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)
        self.project.members.add(self.member)
        self.task = Task.objects.create(
            project=self.project, title='Close books', assignee=self.assignee, created_by=self.manager
        )

    def test_role_capabilities(self):
        self.assertTrue(can(self.admin, MANAGE_USERS))
        self.assertTrue(can(self.admin, MANAGE_DEPARTMENTS))
        self.assertFalse(can(self.manager, MANAGE_USERS))
        self.assertTrue(can(self.manager, INVITE_USERS))
        self.assertTrue(can(self.manager, VIEW_ANALYTICS))
        self.assertEqual(capabilities_for(self.assignee), frozenset())

    def test_assignee_may_work_on_task(self):
        for action in (VIEW_TASK, EDIT_TASK, CHANGE_STATUS, LOG_TIME, COMMENT):
            self.assertTrue(can(self.assignee, action, self.task), action)
        self.assertFalse(can(self.assignee, DELETE_TASKS, self.task))

    def test_project_members_observe_only(self):
        self.assertTrue(can(self.member, VIEW_TASK, self.task))
        self.assertTrue(can(self.member, COMMENT, self.task))
        self.assertFalse(can(self.member, CHANGE_STATUS, self.task))
        self.assertFalse(can(self.member, LOG_TIME, self.task))

    def test_outsider_and_inactive_users_are_denied(self):
        self.assertFalse(can(self.outsider, VIEW_TASK, self.task))
        self.manager.is_active = False
        self.assertFalse(can(self.manager, DELETE_TASKS, self.task))
        self.assertFalse(can(None, VIEW_TASK, self.task))

    def test_visible_tasks(self):
        queryset = Task.objects.all()
        self.assertEqual(list(visible_tasks(self.admin, queryset)), [self.task])
        self.assertEqual(list(visible_tasks(self.member, queryset)), [self.task])
        self.assertEqual(list(visible_tasks(self.outsider, queryset)), [])


from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from notifications.models import Notification, NotificationType
from tasks.models import Comment, TimeEntry
from .serializers import ACCOUNT_DEACTIVATED, INVALID_CREDENTIALS


class UserLoginViewTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email='test@example.com',
            first_name='John',
            last_name='Doe',
            password='testpass123'
        )
        self.url = reverse('login')

    def test_login_success_stamps_last_login(self):
        self.assertIsNone(self.user.last_login)
        response = self.client.post(self.url, {'email': 'test@example.com', 'password': 'testpass123'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access_token', response.data)
        self.assertIn('refresh_token', response.data)
        self.assertEqual(response.data['user']['role'], Role.EMPLOYEE)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)

    def test_login_wrong_password(self):
        response = self.client.post(self.url, {'email': 'test@example.com', 'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['detail'], INVALID_CREDENTIALS)

    def test_login_deactivated_account(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post(self.url, {'email': 'test@example.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['detail'], ACCOUNT_DEACTIVATED)

    def test_logout_blacklists_refresh_token(self):
        refresh = RefreshToken.for_user(self.user)
        self.client.force_authenticate(user=self.user)

        response = self.client.post(reverse('logout'), {'refresh': str(refresh)})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('logout'), {'refresh': 'garbage'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class UserManagementViewTest(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', role=Role.ADMIN)
        self.manager = User.objects.create_user(
            email='manager@example.com', password='testpass123', role=Role.MANAGEMENT
        )
        self.employee = User.objects.create_user(
            email='worker@example.com', first_name='Sam', last_name='Worker', password='testpass123'
        )

    def test_manager_invites_employee_but_not_admin(self):
        self.client.force_authenticate(user=self.manager)
        payload = {
            'email': 'new@example.com', 'first_name': 'New', 'last_name': 'Hire',
            'password': 'longpassword', 'role': 'employee', 'department': 'finance',
        }
        response = self.client.post(reverse('user-list-create'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        self.assertTrue(User.objects.get(email='new@example.com').check_password('longpassword'))

        payload.update(email='boss@example.com', role='admin')
        response = self.client.post(reverse('user-list-create'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_search_matches_name_and_email(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.get(reverse('user-list-create'), {'search': 'sam'})
        self.assertEqual([u['email'] for u in response.data], ['worker@example.com'])

        response = self.client.get(reverse('user-list-create'), {'search': 'manager@'})
        self.assertEqual([u['email'] for u in response.data], ['manager@example.com'])

    def test_employee_cannot_create_users(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.post(reverse('user-list-create'), {'email': 'x@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_role_is_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(reverse('user-detail', args=[self.employee.pk]), {'role': 'owner'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deactivate_and_activate(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse('user-activation', args=[self.employee.pk])

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

        response = self.client.post(url)
        self.assertTrue(response.data['is_active'])

        self.client.force_authenticate(user=self.manager)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_user_cascades(self):
        project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)
        task = Task.objects.create(project=project, title='Close books', assignee=self.employee)
        other = Task.objects.create(project=project, title='Review', assignee=self.manager)
        Comment.objects.create(task=other, author=self.employee, content='done?')
        TimeEntry.objects.create(
            task=other, user=self.employee, start_time=task.created_at, duration=10, date='2024-05-15'
        )
        Notification.objects.create(
            user=self.employee, type=NotificationType.TASK_ASSIGNED, title='New Task Assigned', message='m'
        )

        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(reverse('user-detail', args=[self.employee.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.employee.pk).exists())
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())
        self.assertTrue(Task.objects.filter(pk=other.pk).exists())
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(TimeEntry.objects.exists())

    def test_admin_cannot_delete_self(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(reverse('user-detail', args=[self.admin.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_profile_update(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.patch(reverse('profile-detail'), {'position': 'Analyst', 'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.employee.refresh_from_db()
        self.assertEqual(self.employee.position, 'Analyst')
        self.assertEqual(self.employee.role, Role.EMPLOYEE)
