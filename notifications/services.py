# taskcrm/notifications/services.py
import logging

from django.conf import settings
from django.utils import timezone

from .models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Delivery side of notifications.

    Callers build an unsaved :class:`Notification` and hand it over; the
    dispatcher persists it for the in-app inbox and, when enabled, queues an
    e-mail copy.
    """

    def __init__(self, send_emails=None):
        self.send_emails = settings.NOTIFICATION_EMAILS_ENABLED if send_emails is None else send_emails

    def deliver(self, notification):
        notification.save()
        logger.info(f"Notification {notification.type} delivered to user {notification.user_id}")
        if self.send_emails and notification.user.email:
            from .tasks import deliver_notification_email
            deliver_notification_email.delay(notification.pk)
        return notification

    def notify(self, recipient, type, title, message, task=None, project=None, from_user=None, now=None):
        notification = Notification(
            user=recipient,
            type=type,
            title=title,
            message=message,
            task=task,
            project=project if project is not None else getattr(task, 'project', None),
            from_user=from_user,
        )
        if now is not None:
            notification.created_at = now
        return self.deliver(notification)

    def unread_for(self, user):
        return Notification.objects.filter(user=user, is_read=False)

    def mark_read(self, notification_id, user):
        notification = Notification.objects.filter(pk=notification_id, user=user).first()
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
        return notification

    def mark_all_read(self, user):
        return Notification.objects.filter(user=user, is_read=False).update(is_read=True)


def emit_deadline_reminders(now, dispatcher=None):
    """Remind assignees of due-soon tasks, at most once per task per day."""
    from tasks.models import Task, TaskStatus
    from tasks.temporal import is_due_soon

    dispatcher = dispatcher or NotificationDispatcher()
    today = timezone.localtime(now).date()
    sent = 0

    candidates = (
        Task.objects.exclude(status=TaskStatus.DONE)
        .filter(assignee__isnull=False, due_date__isnull=False)
        .select_related('assignee', 'project')
    )
    for task in candidates:
        if not is_due_soon(task, now) or not task.assignee.is_active:
            continue
        already_sent = Notification.objects.filter(
            user=task.assignee,
            task=task,
            type=NotificationType.DEADLINE_REMINDER,
            created_at__date=today,
        ).exists()
        if already_sent:
            continue
        dispatcher.notify(
            task.assignee,
            NotificationType.DEADLINE_REMINDER,
            'Deadline Approaching',
            f'"{task.title}" is due {task.due_date:%b %d, %Y %H:%M}',
            task=task,
            now=now,
        )
        sent += 1

    logger.info(f"Sent {sent} deadline reminders")
    return sent
