from datetime import timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_login_failed
from django.core.management import call_command
from django.test import Client, RequestFactory, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from . import services
from .models import AuthLog

User = get_user_model()


def failed(email, **extra):
    return services.record(
        AuthLog.EVENT_LOGIN_FAILED, email=email, status=AuthLog.STATUS_FAILED, **extra
    )


def age(log, **delta):
    AuthLog.objects.filter(pk=log.pk).update(created_at=timezone.now() - timedelta(**delta))


class RecordTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="t@example.com", password="x", role="teacher", full_name="Teach"
        )

    def test_record_keeps_role_and_request_details(self):
        request = RequestFactory().get(
            "/", HTTP_X_FORWARDED_FOR="10.0.0.9, 10.0.0.1", HTTP_USER_AGENT="pytest"
        )
        log = services.record(AuthLog.EVENT_LOGIN_SUCCESS, request=request, user=self.user)
        self.assertEqual(log.email, "t@example.com")
        self.assertEqual(log.metadata, {"role": "teacher"})
        self.assertEqual(log.ip_address, "10.0.0.9")
        self.assertEqual(log.user_agent, "pytest")

    def test_record_without_request(self):
        log = failed("ghost@example.com")
        self.assertIsNone(log.user)
        self.assertIsNone(log.ip_address)
        self.assertEqual(log.user_agent, "")


class ListTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="s@example.com", password="x", role="student", full_name="Alice"
        )
        for _ in range(25):
            services.record(AuthLog.EVENT_LOGIN_SUCCESS, user=self.user)
        failed("bob@example.com")

    def test_paginated_newest_first(self):
        result = services.list_logs({}, page=1)
        self.assertEqual(result["total"], 26)
        self.assertEqual(result["total_pages"], 2)
        self.assertEqual(len(result["logs"]), 20)
        self.assertEqual(result["logs"][0].email, "bob@example.com")
        self.assertEqual(len(services.list_logs({}, page=2)["logs"]), 6)

    def test_filters(self):
        self.assertEqual(services.list_logs({"status": "failed"})["total"], 1)
        self.assertEqual(services.list_logs({"event_type": "login_success"})["total"], 25)
        self.assertEqual(services.list_logs({"search": "alice"})["total"], 25)
        self.assertEqual(services.list_logs({"role": "student"})["total"], 25)
        tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()
        self.assertEqual(services.list_logs({"date_from": tomorrow})["total"], 0)


class StatsTests(TestCase):
    def test_counts_and_chart(self):
        user = User.objects.create_user(email="a@example.com", password="x")
        services.record(AuthLog.EVENT_LOGIN_SUCCESS, user=user)
        services.record(AuthLog.EVENT_LOGOUT, user=user)
        failed("a@example.com")
        old = failed("a@example.com")
        age(old, days=20)
        data = services.stats("7days")
        self.assertEqual(data["total"], 3)
        self.assertEqual(data["login_failed"], 1)
        self.assertEqual(data["unique_users"], 1)
        self.assertEqual(data["period"], "7days")
        self.assertEqual(sum(row["failed"] for row in data["chart_data"]), 1)
        self.assertEqual(services.stats("30days")["total"], 4)
        self.assertEqual(services.stats("forever")["period"], "7days")

    def test_suspicious_logins_threshold(self):
        for _ in range(3):
            failed("mallory@example.com")
        for _ in range(2):
            failed("oops@example.com")
        stale = failed("oops@example.com")
        age(stale, hours=48)
        alerts = services.suspicious_logins(threshold=3, hours=24)
        self.assertEqual(alerts, [{"email": "mallory@example.com", "attempts": 3}])

    def test_cleanup_removes_old_rows(self):
        keep = failed("a@example.com")
        drop = failed("b@example.com")
        age(drop, days=120)
        self.assertEqual(services.cleanup(days=90), 1)
        self.assertEqual(list(AuthLog.objects.values_list("pk", flat=True)), [keep.pk])

    def test_cleanup_command(self):
        age(failed("a@example.com"), days=10)
        out = StringIO()
        call_command("cleanup_auth_logs", "--days", "5", stdout=out)
        self.assertIn("Deleted 1", out.getvalue())


@override_settings(AXES_ENABLED=False)
class SignalTests(TestCase):
    def test_failed_login_is_logged_with_known_user(self):
        user = User.objects.create_user(email="known@example.com", password="x")
        user_login_failed.send(
            sender=__name__,
            credentials={"email": "KNOWN@example.com"},
            request=RequestFactory().get("/"),
        )
        log = AuthLog.objects.get(event_type=AuthLog.EVENT_LOGIN_FAILED)
        self.assertEqual(log.user, user)
        self.assertEqual(log.status, AuthLog.STATUS_FAILED)

    def test_successful_login_is_logged(self):
        user = User.objects.create_user(email="in@example.com", password="x")
        Client().force_login(user)
        self.assertTrue(
            AuthLog.objects.filter(user=user, event_type=AuthLog.EVENT_LOGIN_SUCCESS).exists()
        )

    def test_audit_failure_does_not_break_login(self):
        with mock.patch("audit.services.record", side_effect=RuntimeError("db down")):
            with self.assertLogs("audit.signals", level="ERROR"):
                user_login_failed.send(sender=__name__, credentials={"email": "x@example.com"})
        self.assertFalse(AuthLog.objects.exists())


class ViewTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="admin@example.com", password="x", role="admin")
        self.client = Client()
        self.client.force_login(self.admin)

    def test_list_serializes_rows(self):
        failed("bob@example.com")
        data = self.client.get(reverse("audit:list"), {"status": "failed"}).json()
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["logs"][0]["email"], "bob@example.com")

    def test_non_admin_forbidden(self):
        student = User.objects.create_user(email="s@example.com", password="x", role="student")
        client = Client()
        client.force_login(student)
        self.assertEqual(client.get(reverse("audit:list")).status_code, 403)

    def test_cleanup_requires_post(self):
        self.assertEqual(self.client.get(reverse("audit:cleanup")).status_code, 405)
        self.assertEqual(self.client.post(reverse("audit:cleanup")).json(), {"deleted": 0})

    def test_export_is_xlsx(self):
        failed("bob@example.com")
        resp = self.client.get(reverse("audit:export"))
        self.assertEqual(resp.status_code, 200)
        self.assertIn("spreadsheetml", resp["Content-Type"])
        self.assertIn("auth_logs_", resp["Content-Disposition"])
