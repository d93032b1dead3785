# taskcrm/notifications/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone


class NotificationType(models.TextChoices):
    TASK_ASSIGNED = 'task_assigned', 'Task Assigned'
    TASK_UPDATED = 'task_updated', 'Task Updated'
    COMMENT_MENTION = 'comment_mention', 'Comment Mention'
    DEADLINE_REMINDER = 'deadline_reminder', 'Deadline Reminder'
    STATUS_CHANGE = 'status_change', 'Status Change'
    REVIEW_REQUEST = 'review_request', 'Review Request'


class Notification(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=30, choices=NotificationType.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()
    task = models.ForeignKey(
        'tasks.Task',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    from_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sent_notifications'
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read']),
        ]

    def __str__(self):
        return f"Notification for {self.user.email}: {self.title[:20]}..."
