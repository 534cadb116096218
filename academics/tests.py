import json
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from . import services
from .models import ClassStudent, CourseClass, Session

User = get_user_model()


def make_user(email, role="student", **extra):
    return User.objects.create_user(email=email, password="pw-12345678", role=role, **extra)


class RegistrationWindowTests(TestCase):
    def setUp(self):
        self.now = timezone.now()
        self.session = Session.objects.create(
            name="Thesis 2025",
            academic_year="2025-2026",
            status=Session.STATUS_OPEN,
            registration_start=self.now - timedelta(days=1),
            registration_end=self.now + timedelta(days=1),
        )

    def test_open_inside_window(self):
        self.assertTrue(services.is_registration_open(self.session, self.now))

    def test_closed_before_and_after(self):
        self.assertFalse(services.is_registration_open(self.session, self.now - timedelta(days=2)))
        self.assertFalse(services.is_registration_open(self.session, self.now + timedelta(days=2)))

    def test_closed_when_not_open_status(self):
        self.session.status = Session.STATUS_DRAFT
        self.assertFalse(services.is_registration_open(self.session, self.now))

    def test_no_session(self):
        self.assertFalse(services.is_registration_open(None))


class DeadlineTests(TestCase):
    def test_days_left_and_flags(self):
        now = timezone.now()
        session = Session.objects.create(
            name="S",
            academic_year="2025-2026",
            registration_end=now - timedelta(days=3),
            report1_deadline=now + timedelta(days=2, hours=1),
            report2_deadline=now + timedelta(days=30),
        )
        items = services.upcoming_deadlines(session, now)
        self.assertEqual([i["key"] for i in items], ["registration_end", "report1_deadline", "report2_deadline"])
        reg, r1, r2 = items
        self.assertTrue(reg["is_past"])
        self.assertFalse(reg["is_urgent"])
        self.assertEqual(r1["days_left"], 3)
        self.assertTrue(r1["is_urgent"])
        self.assertFalse(r2["is_urgent"])

    def test_no_session_no_deadlines(self):
        self.assertEqual(services.upcoming_deadlines(None), [])


class ClassMembershipTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS101", name="Intro", max_students=2
        )
        self.students = [
            make_user(f"s{i}@example.com", student_code=f"S{i}", full_name=f"S {i}") for i in range(3)
        ]
        self.teacher = make_user("t@example.com", role="teacher")

    def test_add_student_rejects_duplicates_and_full_class(self):
        services.add_student(self.course_class, self.students[0])
        with self.assertRaises(services.AcademicsError):
            services.add_student(self.course_class, self.students[0])
        services.add_student(self.course_class, self.students[1])
        with self.assertRaises(services.AcademicsError):
            services.add_student(self.course_class, self.students[2])

    def test_only_students_join(self):
        with self.assertRaises(services.AcademicsError):
            services.add_student(self.course_class, self.teacher)

    def test_add_members_is_idempotent_and_ordered(self):
        ids = [s.pk for s in reversed(self.students)]
        self.assertEqual(services.add_members(self.course_class, ids), 3)
        self.assertEqual(services.add_members(self.course_class, ids), 0)
        joined = list(
            ClassStudent.objects.filter(course_class=self.course_class)
            .order_by("created_at")
            .values_list("student_id", flat=True)
        )
        self.assertEqual(joined, ids)

    def test_remove_student(self):
        services.add_student(self.course_class, self.students[0])
        services.remove_student(self.course_class, self.students[0])
        with self.assertRaises(services.AcademicsError):
            services.remove_student(self.course_class, self.students[0])

    def test_assign_advisor_requires_teacher(self):
        with self.assertRaises(services.AcademicsError):
            services.assign_advisor(self.course_class, self.students[0])
        services.assign_advisor(self.course_class, self.teacher)
        self.assertEqual(CourseClass.objects.get(pk=self.course_class.pk).advisor, self.teacher)

    def test_available_students_excludes_placed(self):
        services.add_student(self.course_class, self.students[0])
        available = list(services.available_students(self.session))
        self.assertNotIn(self.students[0], available)
        self.assertIn(self.students[1], available)

    def test_class_for_student(self):
        services.add_student(self.course_class, self.students[0])
        self.assertEqual(services.class_for_student(self.students[0]), self.course_class)
        self.assertIsNone(services.class_for_student(self.students[1]))


class SessionViewTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin@example.com", role="admin")
        self.client = Client()
        self.client.force_login(self.admin)

    def _post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_create_and_list(self):
        resp = self._post(
            reverse("academics:session_list"),
            {
                "name": "Thesis 2025",
                "academic_year": "2025-2026",
                "semester": 1,
                "session_type": "thesis",
                "status": "open",
            },
        )
        self.assertEqual(resp.status_code, 201)
        listed = self.client.get(reverse("academics:session_list")).json()["sessions"]
        self.assertEqual(listed[0]["name"], "Thesis 2025")
        self.assertEqual(Session.objects.get().created_by, self.admin)

    def test_registration_must_start_before_end(self):
        now = timezone.now()
        resp = self._post(
            reverse("academics:session_list"),
            {
                "name": "Bad",
                "academic_year": "2025-2026",
                "semester": 1,
                "session_type": "thesis",
                "status": "draft",
                "registration_start": (now + timedelta(days=2)).isoformat(),
                "registration_end": now.isoformat(),
            },
        )
        self.assertEqual(resp.status_code, 400)

    def test_duplicate_makes_draft_without_classes(self):
        session = Session.objects.create(
            name="Thesis", academic_year="2025-2026", status=Session.STATUS_OPEN
        )
        CourseClass.objects.create(session=session, code="A", name="A")
        resp = self.client.post(reverse("academics:session_duplicate", args=[session.pk]))
        self.assertEqual(resp.status_code, 201)
        copy = Session.objects.get(pk=resp.json()["id"])
        self.assertEqual(copy.status, Session.STATUS_DRAFT)
        self.assertEqual(copy.name, "Thesis (copy)")
        self.assertEqual(copy.classes.count(), 0)

    def test_import_students(self):
        session = Session.objects.create(name="S", academic_year="2025-2026")
        course_class = CourseClass.objects.create(session=session, code="A", name="A")
        s1 = make_user("a@example.com")
        teacher = make_user("t@example.com", role="teacher")
        resp = self._post(
            reverse("academics:class_import", args=[course_class.pk]),
            {"student_ids": [s1.pk, teacher.pk]},
        )
        self.assertEqual(resp.json(), {"added": 1})

    def test_stats(self):
        session = Session.objects.create(name="S", academic_year="2025-2026")
        data = self.client.get(reverse("academics:session_stats", args=[session.pk])).json()
        self.assertEqual(data["class_count"], 0)
        self.assertEqual(data["topic_stats"]["pending"], 0)
