from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings

from accounts.models import Role
from projects.models import Project
from tasks.models import Task, TaskStatus
from .models import Notification, NotificationType
from .services import NotificationDispatcher, emit_deadline_reminders
from .tasks import deliver_notification_email

User = get_user_model()

NOW = datetime(2024, 5, 15, 9, 0, tzinfo=dt_timezone.utc)


class NotificationDispatcherTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email='test@example.com',
            first_name='John',
            last_name='Doe',
            password='testpass123'
        )
        self.sender = User.objects.create_user(
            email='boss@example.com',
            first_name='Jane',
            last_name='Boss',
            password='testpass123',
            role=Role.MANAGEMENT
        )

    def test_notify_persists_unread_notification(self):
        dispatcher = NotificationDispatcher(send_emails=False)
        notification = dispatcher.notify(
            self.user, NotificationType.TASK_UPDATED, 'Updated', 'Something changed', from_user=self.sender
        )
        self.assertIsNotNone(notification.pk)
        self.assertFalse(notification.is_read)
        self.assertEqual(list(dispatcher.unread_for(self.user)), [notification])

    def test_email_copy_is_queued_when_enabled(self):
        dispatcher = NotificationDispatcher(send_emails=True)
        with mock.patch('notifications.tasks.deliver_notification_email.delay') as delay:
            notification = dispatcher.notify(self.user, NotificationType.TASK_UPDATED, 'Updated', 'Body')
        delay.assert_called_once_with(notification.pk)

    def test_mark_read(self):
        dispatcher = NotificationDispatcher(send_emails=False)
        notification = dispatcher.notify(self.user, NotificationType.TASK_UPDATED, 'Updated', 'Body')

        self.assertIsNone(dispatcher.mark_read(notification.pk, self.sender))
        self.assertTrue(dispatcher.mark_read(notification.pk, self.user).is_read)
        self.assertIsNone(dispatcher.mark_read(9999, self.user))

    def test_mark_all_read(self):
        dispatcher = NotificationDispatcher(send_emails=False)
        for i in range(3):
            dispatcher.notify(self.user, NotificationType.TASK_UPDATED, f'Update {i}', 'Body')
        self.assertEqual(dispatcher.mark_all_read(self.user), 3)
        self.assertEqual(dispatcher.mark_all_read(self.user), 0)

    @override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
    def test_email_delivery_task(self):
        notification = NotificationDispatcher(send_emails=False).notify(
            self.user, NotificationType.DEADLINE_REMINDER, 'Deadline Approaching', 'Soon'
        )
        self.assertTrue(deliver_notification_email(notification.pk))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['test@example.com'])
        self.assertEqual(mail.outbox[0].subject, 'Deadline Approaching')

    def test_email_delivery_for_missing_notification(self):
        self.assertFalse(deliver_notification_email(9999))


class DeadlineReminderTest(TestCase):
    def setUp(self):
        self.manager = User.objects.create_user(
            email='boss@example.com', first_name='Jane', last_name='Boss',
            password='testpass123', role=Role.MANAGEMENT
        )
        self.employee = User.objects.create_user(
            email='test@example.com', first_name='John', last_name='Doe', password='testpass123'
        )
        self.project = Project.objects.create(name='Payroll', department='finance', created_by=self.manager)

    def test_reminders_are_sent_once_per_day(self):
        due_soon = Task.objects.create(
            project=self.project, title='Close books', assignee=self.employee, due_date=NOW + timedelta(days=1)
        )
        Task.objects.create(
            project=self.project, title='Far away', assignee=self.employee, due_date=NOW + timedelta(days=10)
        )
        Task.objects.create(
            project=self.project, title='Finished', assignee=self.employee,
            status=TaskStatus.DONE, due_date=NOW + timedelta(days=1)
        )
        dispatcher = NotificationDispatcher(send_emails=False)

        self.assertEqual(emit_deadline_reminders(NOW, dispatcher), 1)
        self.assertEqual(emit_deadline_reminders(NOW + timedelta(hours=2), dispatcher), 0)
        self.assertEqual(emit_deadline_reminders(NOW + timedelta(hours=20), dispatcher), 1)

        reminders = Notification.objects.filter(type=NotificationType.DEADLINE_REMINDER)
        self.assertEqual(reminders.count(), 2)
        self.assertTrue(all(n.task_id == due_soon.pk for n in reminders))

    def test_inactive_assignees_are_skipped(self):
        self.employee.is_active = False
        self.employee.save()
        Task.objects.create(
            project=self.project, title='Close books', assignee=self.employee, due_date=NOW + timedelta(days=1)
        )
        self.assertEqual(emit_deadline_reminders(NOW, NotificationDispatcher(send_emails=False)), 0)


# ------------------------------------------------------------------------views.py tests
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status


class NotificationViewsTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email='test@example.com', first_name='John', last_name='Doe', password='testpass123'
        )
        self.other = User.objects.create_user(
            email='other@example.com', first_name='Jane', last_name='Roe', password='testpass123'
        )
        self.client.force_authenticate(user=self.user)
        dispatcher = NotificationDispatcher(send_emails=False)
        self.first = dispatcher.notify(self.user, NotificationType.TASK_UPDATED, 'First', 'Body', now=NOW)
        self.second = dispatcher.notify(
            self.user, NotificationType.TASK_UPDATED, 'Second', 'Body', now=NOW + timedelta(minutes=5)
        )
        dispatcher.notify(self.other, NotificationType.TASK_UPDATED, 'Not yours', 'Body')

    def test_list_newest_first(self):
        response = self.client.get(reverse('notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data], ['Second', 'First'])

    def test_unread_filter_and_mark_read(self):
        response = self.client.patch(reverse('notification-mark-read', args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

        response = self.client.get(reverse('notification-list'), {'unread': 'true'})
        self.assertEqual([n['title'] for n in response.data], ['Second'])

    def test_cannot_mark_someone_elses_notification(self):
        foreign = Notification.objects.get(user=self.other)
        response = self.client.patch(reverse('notification-mark-read', args=[foreign.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_read(self):
        response = self.client.post(reverse('notification-mark-all-read'))
        self.assertEqual(response.data, {'updated': 2})
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.assertTrue(Notification.objects.filter(user=self.other, is_read=False).exists())
