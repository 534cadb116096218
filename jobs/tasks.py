import logging

from django_rq import job

from audit import services as audit_services
from notifications import sending
from notifications.models import Notification

logger = logging.getLogger(__name__)


@job("mail")
def send_notification_email(notification_id: int):
    notification = (
        Notification.objects.select_related("user").filter(pk=notification_id).first()
    )
    if notification is None:
        logger.warning("Notification %s vanished before it could be emailed", notification_id)
        return False
    return sending.send_notification_email(notification)


@job("default")
def cleanup_auth_logs(days: int = None):
    return audit_services.cleanup(days)
