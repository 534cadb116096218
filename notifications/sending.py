import logging

from anymail.message import AnymailMessage
from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


def render_notification(notification):
    context = {
        "notification": notification,
        "user": notification.user,
        "site_url": settings.SITE_URL,
        "link": f"{settings.SITE_URL.rstrip('/')}{notification.link}" if notification.link else "",
    }
    subject = notification.title
    text = render_to_string("emails/notification.txt", context)
    html = render_to_string("emails/notification.html", context)
    return subject, text, html


def send_notification_email(notification):
    # one email per notification
    if notification.emailed_at is not None:
        return False
    user = notification.user
    if not user.email or not user.is_active:
        return False
    subject, text, html = render_notification(notification)
    msg = AnymailMessage(subject=subject, to=[user.email])
    msg.body = text
    msg.attach_alternative(html, "text/html")
    msg.metadata = {"notification_id": notification.pk, "user_id": user.pk}
    msg.tags = ["notification"]
    msg.send()
    notification.emailed_at = timezone.now()
    notification.save(update_fields=["emailed_at"])
    logger.info("Notification %s emailed to user %s", notification.pk, user.pk)
    return True
