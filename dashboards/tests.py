import io
from unittest import mock

import pandas as pd
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import Client, TestCase
from django.urls import reverse

from academics.models import ClassStudent, CourseClass, Session
from topics.models import Topic

from . import exports, pdf, services
from .excel import workbook_bytes

User = get_user_model()


class DashboardTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.session = Session.objects.create(
            name="Thesis 2025", academic_year="2025-2026", status=Session.STATUS_OPEN
        )
        self.admin = User.objects.create_user(email="admin@example.com", password="x", role="admin")
        self.teacher = User.objects.create_user(
            email="t@example.com", password="x", role="teacher", full_name="Dr T", teacher_code="T01"
        )
        self.other = User.objects.create_user(email="o@example.com", password="x", role="teacher")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS101", name="Intro", advisor=self.teacher
        )
        self.students = []
        for i in range(3):
            student = User.objects.create_user(
                email=f"s{i}@example.com",
                password="x",
                role="student",
                full_name=f"Student {i}",
                student_code=f"S{i}",
            )
            ClassStudent.objects.create(course_class=self.course_class, student=student)
            self.students.append(student)

    def topic(self, student, status=Topic.STATUS_PENDING, title="Thesis"):
        return Topic.objects.create(
            session=self.session,
            course_class=self.course_class,
            student=student,
            advisor=self.teacher,
            title=title,
            status=status,
        )


class AdminStatsTests(DashboardTestCase):
    def test_registration_rate_rounds_half_up(self):
        self.topic(self.students[0])
        self.topic(self.students[1], Topic.STATUS_APPROVED)
        stats = services.admin_stats(self.session)
        self.assertEqual(stats["total_students"], 3)
        self.assertEqual(stats["total_classes"], 1)
        self.assertEqual(stats["total_teachers"], 2)
        self.assertEqual(stats["topic_stats"]["total"], 2)
        self.assertEqual(stats["registration_rate"], 67)

    def test_no_students_no_rate(self):
        empty = Session.objects.create(name="Empty", academic_year="2025-2026")
        self.assertEqual(services.admin_stats(empty)["registration_rate"], 0)

    def test_topic_save_invalidates_cache(self):
        self.assertEqual(services.admin_stats(self.session)["topic_stats"]["total"], 0)
        self.topic(self.students[0])
        self.assertEqual(services.admin_stats(self.session)["topic_stats"]["total"], 1)
        Topic.objects.all().delete()
        self.assertEqual(services.admin_stats(self.session)["topic_stats"]["total"], 0)

    def test_cache_is_served(self):
        first = services.admin_stats(self.session)
        ClassStudent.objects.all().delete()
        self.assertEqual(services.admin_stats(self.session), first)
        self.assertEqual(services.admin_stats(self.session, use_cache=False)["total_students"], 0)

    def test_recent_activities(self):
        self.topic(self.students[0], Topic.STATUS_REJECTED, title="Old idea")
        items = services.recent_activities()
        self.assertEqual(items[0]["action"], "had a topic rejected")
        self.assertEqual(items[0]["target"], "Old idea")


class TeacherDashboardTests(DashboardTestCase):
    def test_stats_and_todos(self):
        self.topic(self.students[0])
        self.topic(self.students[1], Topic.STATUS_SUBMITTED)
        self.topic(self.students[2], Topic.STATUS_COMPLETED)
        stats = services.teacher_stats(self.teacher)
        self.assertEqual(
            stats, {"guiding": 1, "pending_approval": 1, "pending_grades": 1, "completed": 1}
        )
        todos = services.teacher_todos(self.teacher)
        self.assertEqual([t["type"] for t in todos], ["pending_approval", "pending_grading"])
        self.assertEqual(todos[0]["priority"], "high")

    def test_classes_ignore_rejected(self):
        self.topic(self.students[0], Topic.STATUS_REJECTED)
        self.topic(self.students[1], Topic.STATUS_APPROVED)
        rows = services.teacher_classes(self.teacher)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["student_count"], 3)
        self.assertEqual(rows[0]["registered"], 1)
        self.assertEqual(rows[0]["topic_stats"]["rejected"], 1)

    def test_class_students_only_for_advisor(self):
        self.topic(self.students[0])
        rows = services.class_students(self.teacher, self.course_class)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0]["topic"]["title"], "Thesis")
        self.assertIsNone(rows[1]["topic"])
        with self.assertRaises(services.DashboardError):
            services.class_students(self.other, self.course_class)


class ExportTests(DashboardTestCase):
    def test_workbook_round_trips_through_pandas(self):
        data = workbook_bytes([("Sheet", [{"A": 1, "B": "x"}], ["A", "B"])])
        df = pd.read_excel(io.BytesIO(data), sheet_name="Sheet")
        self.assertEqual(list(df.columns), ["A", "B"])
        self.assertEqual(df.iloc[0]["B"], "x")

    def test_workload_counts_every_topic(self):
        self.topic(self.students[0], Topic.STATUS_APPROVED)
        self.topic(self.students[1], Topic.STATUS_IN_PROGRESS)
        self.topic(self.students[2], Topic.STATUS_PENDING)
        rows = {r["Email"]: r for r in exports.workload_rows(self.session)}
        row = rows["t@example.com"]
        self.assertEqual((row["Guiding"], row["Approved"], row["In progress"]), (3, 2, 1))
        self.assertEqual(rows["o@example.com"]["Guiding"], 0)

    def test_roster_marks_unregistered(self):
        self.topic(self.students[0])
        roster = exports.class_roster(self.course_class)
        self.assertEqual([r["no"] for r in roster], [1, 2, 3])
        self.assertEqual(roster[1]["status"], "Not registered")

    def test_roster_html(self):
        self.topic(self.students[0], title="Parking & lots")
        html = pdf.class_pdf_html(self.course_class)
        self.assertIn("CS101 - Intro", html)
        self.assertIn("Advisor: Dr T", html)
        self.assertIn("Parking &amp; lots", html)
        self.assertIn("Not registered", html)

    def test_session_report_sheets(self):
        self.topic(self.students[0])
        sheets = exports.session_report_sheets(self.session)
        self.assertEqual([name for name, _, _ in sheets], ["Summary", "Classes", "Topics"])
        self.assertEqual(len(sheets[2][1]), 1)


class DashboardViewTests(DashboardTestCase):
    def setUp(self):
        super().setUp()
        self.client = Client()

    def test_admin_dashboard_renders(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse("dashboards:admin"), {"session_id": self.session.pk})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Registration rate")

    def test_admin_stats_json(self):
        self.client.force_login(self.admin)
        data = self.client.get(reverse("dashboards:admin_stats")).json()
        self.assertEqual(data["stats"]["total_students"], 3)
        self.assertEqual(data["upcoming_deadlines"], [])

    def test_teacher_dashboard_renders(self):
        self.topic(self.students[0])
        self.client.force_login(self.teacher)
        resp = self.client.get(reverse("dashboards:teacher"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "CS101")

    def test_other_teacher_cannot_read_class(self):
        self.client.force_login(self.other)
        resp = self.client.get(reverse("dashboards:class_students", args=[self.course_class.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_exports(self):
        self.topic(self.students[0])
        self.client.force_login(self.admin)
        resp = self.client.get(reverse("dashboards:export_topics"))
        self.assertEqual(resp["Content-Type"], "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        df = pd.read_excel(io.BytesIO(resp.content), sheet_name="Topics")
        self.assertEqual(df.iloc[0]["Student code"], "S0")
        with mock.patch("dashboards.pdf.html_to_pdf", return_value=b"%PDF-1.7") as render:
            resp = self.client.get(reverse("dashboards:export_class_pdf", args=[self.course_class.pk]))
        self.assertEqual(resp["Content-Type"], "application/pdf")
        self.assertEqual(resp.content, b"%PDF-1.7")
        self.assertIn("Student 0", render.call_args[0][0])

    def test_teacher_grade_export_limited_to_own_class(self):
        self.client.force_login(self.other)
        resp = self.client.get(reverse("dashboards:export_grades", args=[self.course_class.pk]))
        self.assertEqual(resp.status_code, 403)
