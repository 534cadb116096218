from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from audit.models import AuthLog
from notifications.models import Notification

from . import tasks

User = get_user_model()


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class TaskTests(TestCase):
    def test_send_notification_email(self):
        user = User.objects.create_user(email="s@example.com", password="x")
        notification = Notification.objects.create(user=user, title="Hello")
        self.assertTrue(tasks.send_notification_email(notification.pk))
        self.assertEqual(len(mail.outbox), 1)

    def test_missing_notification(self):
        with self.assertLogs("jobs.tasks", level="WARNING"):
            self.assertFalse(tasks.send_notification_email(424242))

    def test_cleanup_auth_logs(self):
        log = AuthLog.objects.create(email="a@example.com", event_type=AuthLog.EVENT_LOGOUT)
        AuthLog.objects.filter(pk=log.pk).update(created_at=timezone.now() - timedelta(days=100))
        self.assertEqual(tasks.cleanup_auth_logs(days=90), 1)


class ApplySchedulesTests(TestCase):
    @override_settings(AUTH_LOG_CLEANUP_CRON="0 3 * * *")
    def test_replaces_existing_cleanup_job(self):
        stale = mock.Mock(func_name="jobs.tasks.cleanup_auth_logs")
        other = mock.Mock(func_name="jobs.tasks.send_notification_email")
        scheduler = mock.Mock()
        scheduler.get_jobs.return_value = [stale, other]
        out = StringIO()
        with mock.patch(
            "jobs.management.commands.apply_schedules.get_scheduler", return_value=scheduler
        ):
            call_command("apply_schedules", stdout=out)
        scheduler.cancel.assert_called_once_with(stale)
        scheduler.cron.assert_called_once_with(
            "0 3 * * *", func=tasks.cleanup_auth_logs, repeat=None, queue_name="default"
        )
        self.assertIn("0 3 * * *", out.getvalue())
