from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import Client, TestCase, override_settings
from django.urls import reverse

from . import services
from .models import Notification
from .sending import send_notification_email

User = get_user_model()


class NotifyTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="s@example.com", password="x", full_name="Stu")

    def opt_in(self):
        pref = self.user.ui_pref
        pref.email_notifications = True
        pref.save()

    def test_in_app_only_by_default(self):
        with mock.patch("jobs.tasks.send_notification_email.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                services.notify(self.user, "Topic approved")
        delay.assert_not_called()
        self.assertEqual(services.unread_count(self.user), 1)

    def test_email_queued_after_commit_when_opted_in(self):
        self.opt_in()
        with mock.patch("jobs.tasks.send_notification_email.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                notification = services.notify(self.user, "Topic approved")
        delay.assert_called_once_with(notification.pk)

    def test_unread_first_then_newest(self):
        first = services.notify(self.user, "one")
        second = services.notify(self.user, "two")
        services.mark_read(self.user, second.pk)
        items = services.notifications_for(self.user)
        self.assertEqual(items, [first, second])
        self.assertEqual(services.notifications_for(self.user, unread_only=True), [first])

    def test_mark_read_scoped_to_owner(self):
        other = User.objects.create_user(email="o@example.com", password="x")
        notification = services.notify(self.user, "mine")
        self.assertEqual(services.mark_read(other, notification.pk), 0)
        self.assertEqual(services.mark_all_read(self.user), 1)
        self.assertEqual(services.unread_count(self.user), 0)


@override_settings(
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
    SITE_URL="https://portal.example.com",
)
class SendingTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="s@example.com", password="x", full_name="Stu")
        self.notification = Notification.objects.create(
            user=self.user, title="Report graded", message="Your report was graded", link="/me/"
        )

    def test_sends_once(self):
        self.assertTrue(send_notification_email(self.notification))
        self.assertFalse(send_notification_email(self.notification))
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.subject, "Report graded")
        self.assertEqual(message.to, ["s@example.com"])
        self.assertIn("https://portal.example.com/me/", message.body)
        self.assertIsNotNone(Notification.objects.get(pk=self.notification.pk).emailed_at)

    def test_inactive_user_skipped(self):
        self.user.is_active = False
        self.user.save()
        self.assertFalse(send_notification_email(self.notification))
        self.assertEqual(mail.outbox, [])


class ViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="s@example.com", password="x")
        self.client = Client()
        self.client.force_login(self.user)

    def test_list_and_read(self):
        notification = services.notify(self.user, "hello")
        data = self.client.get(reverse("notifications:list")).json()
        self.assertEqual(data["unread"], 1)
        self.assertEqual(data["notifications"][0]["title"], "hello")
        resp = self.client.post(reverse("notifications:read", args=[notification.pk]))
        self.assertEqual(resp.json(), {"updated": 1})
        self.assertEqual(self.client.post(reverse("notifications:read_all")).json(), {"updated": 0})
