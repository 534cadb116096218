from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from academics.models import ClassStudent, CourseClass, Session
from submissions.models import Report
from topics.models import Topic

from . import provisioning, services

User = get_user_model()


def row(code, name="Student", **extra):
    return {"student_code": code, "full_name": name, **extra}


@override_settings(
    STUDENT_EMAIL_DOMAIN="uni.example.com",
    PROVISION_ACCOUNT_DELAY_SECONDS=0,
    PROVISION_RETRY_DELAY_SECONDS=0,
    PROVISION_MAX_ATTEMPTS=3,
)
class ProvisioningTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.course_class = CourseClass.objects.create(session=self.session, code="CS", name="CS")

    def members(self):
        return set(
            ClassStudent.objects.filter(course_class=self.course_class).values_list(
                "student__student_code", flat=True
            )
        )

    def test_student_email(self):
        self.assertEqual(provisioning.student_email("SV001"), "sv001@uni.example.com")

    def test_creates_accounts_with_code_as_password(self):
        result = provisioning.provision_students(
            self.course_class,
            [row("SV001", "An", birth_date="2003-04-05", gender="Female"), row("SV002", "Binh")],
        )
        self.assertEqual(result, {"created": 2, "skipped": 0, "added_to_class": 2, "errors": []})
        user = User.objects.get(email="sv001@uni.example.com")
        self.assertTrue(user.check_password("SV001"))
        self.assertEqual(user.role, "student")
        self.assertEqual(user.birth_date.year, 2003)
        self.assertEqual(user.gender, "female")
        self.assertEqual(self.members(), {"SV001", "SV002"})

    def test_existing_account_skipped_but_enrolled(self):
        User.objects.create_user(
            email="sv001@uni.example.com", password="x", role="student", student_code="SV001"
        )
        result = provisioning.provision_students(self.course_class, [row("SV001")])
        self.assertEqual((result["created"], result["skipped"], result["added_to_class"]), (0, 1, 1))
        self.assertEqual(self.members(), {"SV001"})

    def test_missing_fields_reported_per_row(self):
        result = provisioning.provision_students(
            self.course_class, [row("", "No code"), row("SV003", "  "), row("SV004")]
        )
        self.assertEqual(result["created"], 1)
        self.assertEqual(
            result["errors"],
            [
                {"student_code": "unknown", "error": "Missing required fields"},
                {"student_code": "SV003", "error": "Missing required fields"},
            ],
        )

    def test_duplicate_student_code_reported(self):
        User.objects.create_user(email="other@example.com", password="x", student_code="SV005")
        result = provisioning.provision_students(self.course_class, [row("SV005")])
        self.assertEqual(result["created"], 0)
        self.assertEqual(
            result["errors"][0]["error"], "An account with this student code already exists"
        )
        self.assertEqual(result["added_to_class"], 0)

    def test_rate_limited_creation_is_retried(self):
        real = provisioning._create_account
        calls = []

        def flaky(data):
            calls.append(data["student_code"])
            if len(calls) == 1:
                raise OperationalError("rate limit exceeded")
            return real(data)

        with mock.patch("students.provisioning._create_account", side_effect=flaky), \
                mock.patch("students.provisioning.time.sleep") as sleep:
            result = provisioning.provision_students(self.course_class, [row("SV006")])
        self.assertEqual(calls, ["SV006", "SV006"])
        self.assertEqual(result["created"], 1)
        sleep.assert_called_once_with(0)

    def test_retries_are_bounded(self):
        with mock.patch(
            "students.provisioning._create_account",
            side_effect=OperationalError("rate limit exceeded"),
        ) as create, mock.patch("students.provisioning.time.sleep"):
            result = provisioning.provision_students(self.course_class, [row("SV007")])
        self.assertEqual(create.call_count, 3)
        self.assertEqual(result["errors"], [{"student_code": "SV007", "error": "rate limit exceeded"}])

    def test_other_failures_not_retried(self):
        with mock.patch(
            "students.provisioning._create_account", side_effect=OperationalError("disk full")
        ) as create:
            result = provisioning.provision_students(self.course_class, [row("SV008")])
        self.assertEqual(create.call_count, 1)
        self.assertEqual(result["errors"][0]["error"], "disk full")

    @override_settings(PROVISION_ACCOUNT_DELAY_SECONDS=0.5)
    def test_pause_between_accounts(self):
        with mock.patch("students.provisioning.time.sleep") as sleep:
            provisioning.provision_students(
                self.course_class, [row("SV010"), row("SV011"), row("SV012")]
            )
        self.assertEqual(sleep.call_count, 2)


@override_settings(STUDENT_EMAIL_DOMAIN="uni.example.com", PROVISION_ACCOUNT_DELAY_SECONDS=0)
class ProvisionApiTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.course_class = CourseClass.objects.create(session=self.session, code="CS", name="CS")
        self.admin = User.objects.create_user(email="admin@example.com", password="x", role="admin")
        self.url = reverse("students:provision")

    def post(self, client, payload):
        return client.post(self.url, data=payload, content_type="application/json")

    def test_anonymous_gets_401(self):
        resp = self.post(Client(), {"classId": self.course_class.pk, "students": []})
        self.assertEqual(resp.status_code, 401)

    def test_non_admin_gets_403(self):
        student = User.objects.create_user(email="s@example.com", password="x", role="student")
        client = Client()
        client.force_login(student)
        resp = self.post(client, {"classId": self.course_class.pk, "students": []})
        self.assertEqual(resp.status_code, 403)

    def test_bad_body_and_unknown_class(self):
        client = Client()
        client.force_login(self.admin)
        resp = self.post(client, {"students": []})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Invalid request body")
        resp = self.post(client, {"classId": 9999, "students": []})
        self.assertEqual(resp.status_code, 404)

    def test_provision(self):
        client = Client()
        client.force_login(self.admin)
        resp = self.post(
            client,
            {
                "classId": self.course_class.pk,
                "students": [row("SV001", "An", phone=None), {"full_name": "Nameless"}],
            },
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {
                "created": 1,
                "skipped": 0,
                "added_to_class": 1,
                "errors": [{"student_code": "unknown", "error": "Missing required fields"}],
            },
        )

    def test_empty_list_is_accepted(self):
        client = Client()
        client.force_login(self.admin)
        resp = self.post(client, {"classId": self.course_class.pk, "students": []})
        self.assertEqual(resp.json()["created"], 0)


class ProgressTests(TestCase):
    def statuses(self, status):
        topic = Topic(status=status)
        return [step["status"] for step in services.progress_steps(topic)]

    def test_pending_is_at_registration(self):
        self.assertEqual(self.statuses("pending"), ["current", "pending", "pending", "pending", "pending"])
        self.assertEqual(self.statuses("revision")[0], "current")

    def test_approved_works_on_first_report(self):
        self.assertEqual(
            self.statuses("approved"), ["completed", "current", "pending", "pending", "pending"]
        )

    def test_submitted(self):
        self.assertEqual(
            self.statuses("submitted"), ["completed", "completed", "completed", "current", "pending"]
        )

    def test_completed_and_rejected(self):
        self.assertEqual(set(self.statuses("completed")), {"completed"})
        self.assertEqual(
            self.statuses("rejected"), ["completed", "pending", "pending", "pending", "pending"]
        )

    def test_next_deadline_skips_past_dates(self):
        now = timezone.now()
        session = Session(
            name="S",
            registration_end=now + timedelta(days=1),
            report1_deadline=now - timedelta(days=1),
            report2_deadline=now + timedelta(days=20),
            final_deadline=now + timedelta(days=10),
        )
        self.assertEqual(services.next_deadline(session, now)["key"], "final")
        self.assertIsNone(services.next_deadline(None))
        self.assertIsNone(services.next_deadline(Session(name="Empty"), now))


class StudentDashboardTests(TestCase):
    def setUp(self):
        now = timezone.now()
        self.session = Session.objects.create(
            name="S", academic_year="2025-2026", report1_deadline=now + timedelta(days=3)
        )
        self.teacher = User.objects.create_user(email="t@example.com", password="x", role="teacher")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS", name="CS", advisor=self.teacher
        )
        self.student = User.objects.create_user(email="s@example.com", password="x", role="student")
        ClassStudent.objects.create(course_class=self.course_class, student=self.student)

    def test_without_topic(self):
        data = services.dashboard(self.student)
        self.assertFalse(data["has_topic"])
        self.assertEqual(data["course_class"], self.course_class)
        self.assertEqual(data["next_deadline"]["key"], "report1")

    def test_with_topic_counts_report_phases(self):
        topic = Topic.objects.create(
            session=self.session,
            course_class=self.course_class,
            student=self.student,
            advisor=self.teacher,
            title="Thesis",
            status=Topic.STATUS_IN_PROGRESS,
        )
        for version in (1, 2):
            Report.objects.create(
                topic=topic,
                phase="report1",
                version=version,
                file_path=f"{topic.pk}/report1/v{version}/r.pdf",
                file_name="r.pdf",
                file_size=1,
                student=self.student,
            )
        data = services.dashboard(self.student)
        self.assertTrue(data["has_topic"])
        self.assertEqual(data["advisor"], self.teacher)
        self.assertEqual(data["reports_submitted"], 1)
        self.assertEqual(data["total_reports"], 4)

    def test_view_renders(self):
        client = Client()
        client.force_login(self.student)
        resp = client.get(reverse("students:dashboard"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "You have not registered a topic yet.")
