import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from academics.models import CourseClass, Session
from topics.models import Topic

from . import services
from .models import LogbookEntry

User = get_user_model()


class WeekNumberTests(TestCase):
    def test_unknown_approval_is_week_one(self):
        self.assertEqual(services.calculate_week_number(None), 1)

    def test_weeks_counted_from_approval(self):
        now = timezone.now()
        self.assertEqual(services.calculate_week_number(now, now), 1)
        self.assertEqual(services.calculate_week_number(now - timedelta(days=6), now), 1)
        self.assertEqual(services.calculate_week_number(now - timedelta(days=7), now), 2)
        self.assertEqual(services.calculate_week_number(now - timedelta(days=20), now), 3)

    def test_future_approval_clamped(self):
        now = timezone.now()
        self.assertEqual(services.calculate_week_number(now + timedelta(days=10), now), 1)


class LogbookTestCase(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.teacher = User.objects.create_user(email="t@example.com", password="x", role="teacher")
        self.other = User.objects.create_user(email="o@example.com", password="x", role="teacher")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS", name="CS", advisor=self.teacher
        )
        self.student = User.objects.create_user(
            email="s@example.com", password="x", role="student", full_name="Stu"
        )
        self.topic = Topic.objects.create(
            session=self.session,
            course_class=self.course_class,
            student=self.student,
            advisor=self.teacher,
            title="Thesis",
            status=Topic.STATUS_APPROVED,
            approved_at=timezone.now() - timedelta(days=15),
        )


class StudentFlowTests(LogbookTestCase):
    def test_create_defaults_to_current_week(self):
        entry = services.create_entry(
            self.topic,
            self.student,
            {"content": "Set up repo", "completed_tasks": "Read papers\n\nInstall tools"},
        )
        self.assertEqual(entry.week_number, 3)
        self.assertEqual(entry.status, LogbookEntry.STATUS_DRAFT)
        self.assertEqual(entry.completed_tasks, ["Read papers", "Install tools"])

    def test_duplicate_week_refused(self):
        services.create_entry(self.topic, self.student, {"week_number": 1})
        with self.assertRaisesMessage(services.LogbookError, "already exists"):
            services.create_entry(self.topic, self.student, {"week_number": 1})

    def test_explicit_week_numbers_validated(self):
        for value in (0, "0", -2):
            with self.subTest(week_number=value):
                with self.assertRaisesMessage(services.LogbookError, "at least 1"):
                    services.create_entry(self.topic, self.student, {"week_number": value})
        with self.assertRaisesMessage(services.LogbookError, "must be a number"):
            services.create_entry(self.topic, self.student, {"week_number": "three"})
        entry = services.create_entry(self.topic, self.student, {"week_number": ""})
        self.assertEqual(entry.week_number, 3)
        self.assertFalse(LogbookEntry.objects.filter(week_number__lt=1).exists())

    def test_logbook_closed_before_approval(self):
        self.topic.status = Topic.STATUS_PENDING
        with self.assertRaises(services.LogbookError):
            services.create_entry(self.topic, self.student, {})

    def test_submit_on_create(self):
        entry = services.create_entry(self.topic, self.student, {"week_number": 1}, submit=True)
        self.assertEqual(entry.status, LogbookEntry.STATUS_PENDING)
        self.assertIsNotNone(entry.submitted_at)

    def test_update_refused_once_locked(self):
        entry = services.create_entry(self.topic, self.student, {"week_number": 1}, submit=True)
        services.confirm_meeting(entry, self.teacher)
        with self.assertRaises(services.LogbookError):
            services.update_entry(entry, self.student, {"content": "late edit"})

    def test_resubmit_after_revision(self):
        entry = services.create_entry(self.topic, self.student, {"week_number": 1}, submit=True)
        services.request_revision(entry, self.teacher, "Add detail")
        services.update_entry(entry, self.student, {"content": "More detail"})
        services.submit_entry(entry, self.student)
        self.assertEqual(entry.status, LogbookEntry.STATUS_PENDING)


class TeacherFlowTests(LogbookTestCase):
    def setUp(self):
        super().setUp()
        self.entry = services.create_entry(
            self.topic, self.student, {"week_number": 1}, submit=True
        )

    def test_only_advisor_reviews(self):
        with self.assertRaises(services.LogbookError):
            services.approve_entry(self.entry, self.other)

    def test_approve(self):
        services.approve_entry(self.entry, self.teacher, " good ")
        self.assertEqual(self.entry.status, LogbookEntry.STATUS_APPROVED)
        self.assertEqual(self.entry.teacher_note, "good")
        self.assertTrue(self.entry.is_locked)

    def test_revision_needs_note(self):
        with self.assertRaises(services.LogbookError):
            services.request_revision(self.entry, self.teacher, "")

    def test_confirm_and_unconfirm(self):
        services.confirm_meeting(self.entry, self.teacher, "2025-03-01T10:00:00")
        self.assertTrue(self.entry.teacher_confirmed)
        self.assertEqual(self.entry.meeting_date.day, 1)
        services.unconfirm_meeting(self.entry, self.teacher)
        self.assertFalse(LogbookEntry.objects.get(pk=self.entry.pk).teacher_confirmed)

    def test_stats(self):
        services.create_entry(self.topic, self.student, {"week_number": 2})
        services.approve_entry(self.entry, self.teacher)
        stats = services.logbook_stats(self.topic)
        self.assertEqual(stats["total_entries"], 2)
        self.assertEqual(stats["approved_entries"], 1)
        self.assertEqual(stats["expected_weeks"], 3)
        self.assertEqual(stats["completion_rate"], 67)
        self.assertIsNotNone(stats["last_entry_at"])

    def test_topics_with_logbook(self):
        rows = services.topics_with_logbook(self.teacher)
        self.assertEqual([r["topic"] for r in rows], [self.topic])
        self.assertEqual(services.topics_with_logbook(self.other), [])


class LogbookViewTests(LogbookTestCase):
    def test_student_creates_entry(self):
        client = Client()
        client.force_login(self.student)
        resp = client.post(
            reverse("logbook:my_logbook"),
            data=json.dumps({"week_number": 1, "content": "Kickoff", "submit": True}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], "pending")
        overview = client.get(reverse("logbook:my_logbook")).json()
        self.assertEqual(overview["current_week"], 3)
        self.assertEqual(len(overview["entries"]), 1)

    def test_teacher_sees_only_own_topics(self):
        client = Client()
        client.force_login(self.other)
        resp = client.get(reverse("logbook:teacher_topic", args=[self.topic.pk]))
        self.assertEqual(resp.status_code, 404)
