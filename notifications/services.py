import logging

from django.db import transaction
from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


def _wants_email(user):
    pref = getattr(user, "ui_pref", None)
    return bool(pref and pref.email_notifications)


def notify(user, title, message="", link=""):
    """Create an in-app notification and queue the email copy if the user opted in."""
    notification = Notification.objects.create(
        user=user, title=title, message=message, link=link
    )
    if _wants_email(user):
        from jobs.tasks import send_notification_email

        transaction.on_commit(lambda: send_notification_email.delay(notification.pk))
    return notification


def notifications_for(user, unread_only=False, limit=50):
    qs = Notification.objects.filter(user=user)
    if unread_only:
        qs = qs.filter(is_read=False)
    return list(qs.order_by("is_read", "-created_at")[:limit])


def unread_count(user):
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_read(user, notification_id):
    return Notification.objects.filter(user=user, pk=notification_id).update(is_read=True)


def mark_all_read(user):
    return Notification.objects.filter(user=user, is_read=False).update(is_read=True)


def serialize_notification(n):
    return {
        "id": n.pk,
        "title": n.title,
        "message": n.message,
        "link": n.link,
        "is_read": n.is_read,
        "created_at": timezone.localtime(n.created_at).isoformat(),
    }
