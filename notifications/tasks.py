import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import Notification
from .services import emit_deadline_reminders

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def deliver_notification_email(self, notification_id):
    """E-mail copy of an in-app notification."""
    notification = Notification.objects.select_related('user').filter(pk=notification_id).first()
    if notification is None:
        logger.warning(f"Notification {notification_id} vanished before e-mail delivery")
        return False

    try:
        send_mail(
            subject=notification.title,
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[notification.user.email],
            fail_silently=False,
        )
    except Exception as exc:
        logger.error(f"E-mail for notification {notification_id} failed: {exc}")
        raise self.retry(exc=exc, countdown=120)
    return True


@shared_task
def send_deadline_reminders():
    return emit_deadline_reminders(timezone.now())
