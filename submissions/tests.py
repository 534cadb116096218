import os
import shutil
import tempfile
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from academics.models import CourseClass, Session
from topics.models import Topic

from . import services
from .models import Report

User = get_user_model()

MB = 1024 * 1024


class SubmissionTestCase(TestCase):
    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media)
        self.override.enable()
        now = timezone.now()
        self.session = Session.objects.create(
            name="S",
            academic_year="2025-2026",
            status=Session.STATUS_OPEN,
            registration_end=now - timedelta(days=10),
            report1_deadline=now + timedelta(days=5),
            report2_deadline=now + timedelta(days=30),
            final_deadline=now + timedelta(days=60),
        )
        self.teacher = User.objects.create_user(email="t@example.com", password="x", role="teacher")
        self.reviewer = User.objects.create_user(email="r@example.com", password="x", role="teacher")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS", name="CS", advisor=self.teacher, reviewer=self.reviewer
        )
        self.student = User.objects.create_user(
            email="s@example.com", password="x", role="student", full_name="Stu"
        )
        self.stranger = User.objects.create_user(email="x@example.com", password="x", role="student")
        self.topic = Topic.objects.create(
            session=self.session,
            course_class=self.course_class,
            student=self.student,
            advisor=self.teacher,
            title="Thesis",
            status=Topic.STATUS_APPROVED,
        )

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media, ignore_errors=True)

    def pdf(self, name="report.pdf", size=10):
        return SimpleUploadedFile(name, b"%" * size, content_type="application/pdf")


class ValidationTests(SubmissionTestCase):
    def test_extension_allow_list(self):
        services.validate_file("a.DOCX", 10, "report1")
        services.validate_file("deck.pptx", 10, "slide")
        services.validate_file("code.7z", 10, "source_code")
        with self.assertRaises(services.SubmissionError):
            services.validate_file("deck.pptx", 10, "report1")
        with self.assertRaises(services.SubmissionError):
            services.validate_file("code.tar.gz", 10, "source_code")

    def test_size_limits(self):
        services.validate_file("a.pdf", 50 * MB, "report1")
        with self.assertRaisesMessage(services.SubmissionError, "50MB"):
            services.validate_file("a.pdf", 50 * MB + 1, "report1")
        with self.assertRaisesMessage(services.SubmissionError, "30MB"):
            services.validate_file("a.pdf", 31 * MB, "slide")

    def test_unknown_phase(self):
        with self.assertRaises(services.SubmissionError):
            services.validate_file("a.pdf", 1, "appendix")

    def test_storage_path_layout(self):
        with mock.patch("submissions.services.time.time", return_value=1700000000.123):
            path = services.storage_path(7, "report1", 2, "My Report.PDF")
        self.assertEqual(path, "7/report1/v2/report1_v2_1700000000123.pdf")


class UploadTests(SubmissionTestCase):
    def test_versions_increment_per_phase(self):
        first = services.upload(self.topic, self.student, "report1", self.pdf())
        second = services.upload(self.topic, self.student, "report1", self.pdf())
        self.assertEqual((first.version, second.version), (1, 2))
        self.assertTrue(default_storage.exists(second.file_path))
        self.assertEqual(services.next_version(self.topic, "report2"), 1)

    def test_upload_notifies_advisor(self):
        with mock.patch("submissions.services.notify") as notify:
            report = services.upload(self.topic, self.student, "report1", self.pdf())
        notify.assert_called_once()
        args, kwargs = notify.call_args
        self.assertEqual(args[0], self.teacher)
        self.assertIn(f"version {report.version}", args[2])
        self.assertEqual(kwargs["link"], reverse("submissions:teacher_list"))

    def test_phase_locked_until_previous_deadline(self):
        with self.assertRaisesMessage(services.SubmissionError, "not open"):
            services.upload(self.topic, self.student, "report2", self.pdf())

    def test_only_owner_uploads(self):
        with self.assertRaises(services.SubmissionError):
            services.upload(self.topic, self.stranger, "report1", self.pdf())

    def test_failed_insert_removes_file(self):
        with mock.patch.object(Report.objects, "create", side_effect=RuntimeError("db down")):
            with self.assertRaises(RuntimeError):
                services.upload(self.topic, self.student, "report1", self.pdf())
        stored = [name for _, _, names in os.walk(self.media) for name in names]
        self.assertEqual(stored, [])
        self.assertEqual(Report.objects.count(), 0)

    def test_submission_status(self):
        services.upload(self.topic, self.student, "report1", self.pdf())
        later = timezone.now() + timedelta(days=40)
        status = services.submission_status(self.topic, now=later)
        self.assertTrue(status["report1"]["submitted"])
        self.assertFalse(status["report1"]["is_overdue"])
        self.assertTrue(status["report2"]["is_overdue"])
        self.assertIsNone(status["slide"]["deadline"])
        self.assertFalse(status["slide"]["is_overdue"])

    def test_latest_by_topic_in_phase_order(self):
        services.upload(self.topic, self.student, "report1", self.pdf())
        newest = services.upload(self.topic, self.student, "report1", self.pdf())
        latest = services.latest_by_topic(self.topic)
        self.assertEqual(list(latest), ["report1"])
        self.assertEqual(latest["report1"], newest)


class DownloadTests(SubmissionTestCase):
    def setUp(self):
        super().setUp()
        self.report = services.upload(self.topic, self.student, "report1", self.pdf(size=42))

    def test_token_round_trip(self):
        token = services.download_token(self.report)
        self.assertEqual(services.report_from_token(token), self.report)
        self.assertIsNone(services.report_from_token(token + "x"))

    def test_token_expires(self):
        token = services.download_token(self.report)
        with override_settings(REPORT_DOWNLOAD_TTL_SECONDS=-1):
            self.assertIsNone(services.report_from_token(token))

    def test_visibility(self):
        self.assertTrue(services.can_view(self.student, self.report))
        self.assertTrue(services.can_view(self.teacher, self.report))
        self.assertTrue(services.can_view(self.reviewer, self.report))
        self.assertFalse(services.can_view(self.stranger, self.report))

    def test_download_view(self):
        client = Client()
        client.force_login(self.teacher)
        resp = client.get(services.download_url(self.report))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(b"".join(resp.streaming_content), b"%" * 42)
        resp.close()

    def test_download_forbidden_for_stranger(self):
        client = Client()
        client.force_login(self.stranger)
        self.assertEqual(client.get(services.download_url(self.report)).status_code, 403)

    def test_upload_view(self):
        client = Client()
        client.force_login(self.student)
        resp = client.post(
            reverse("submissions:upload", args=[self.topic.pk]),
            {"phase": "report1", "file": self.pdf(), "note": "second"},
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["version"], 2)
        self.assertIn("download_url", resp.json())

    def test_teacher_listing(self):
        client = Client()
        client.force_login(self.teacher)
        rows = client.get(reverse("submissions:teacher_list")).json()["topics"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(len(rows[0]["reports"]), 1)
