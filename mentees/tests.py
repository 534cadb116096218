from datetime import timedelta
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.template import Context, Template
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from academics.models import ClassStudent, CourseClass, Session
from topics.models import Topic

from . import health
from .collapsible import CollapsibleGroup
from .grouping import FALLBACK_CLASS, group_students_by_class, should_group_by_class
from .services import kanban_board

User = get_user_model()


def student(code, class_code=None):
    course_class = SimpleNamespace(code=class_code) if class_code else None
    return {"id": code, "class": course_class}


class GroupingTests(TestCase):
    def test_groups_by_class_in_order(self):
        s1, s2, s3 = student(1, "CS102"), student(2, "CS101"), student(3, "CS102")
        grouped = group_students_by_class([s1, s2, s3])
        self.assertEqual(list(grouped), ["CS101", "CS102"])
        self.assertEqual([len(v) for v in grouped.values()], [1, 2])
        self.assertEqual(grouped["CS102"], [s1, s3])

    def test_students_without_class_fall_back(self):
        grouped = group_students_by_class([student(1), student(2, "CS101")])
        self.assertEqual(grouped[FALLBACK_CLASS], [student(1)])

    def test_objects_and_dict_classes(self):
        obj = SimpleNamespace(course_class=SimpleNamespace(code="B"))
        as_dict = {"class": {"code": "A"}}
        self.assertEqual(list(group_students_by_class([obj, as_dict])), ["A", "B"])

    def test_should_group_only_with_several_classes(self):
        self.assertFalse(should_group_by_class([student(1, "CS101"), student(2, "CS101")]))
        self.assertTrue(should_group_by_class([student(1, "CS101"), student(2, "CS102")]))
        self.assertTrue(should_group_by_class([student(1, "CS101"), student(2)]))
        self.assertFalse(should_group_by_class([]))

    def test_keys_sort_ignoring_case(self):
        grouped = group_students_by_class(
            [student(1, "b101"), student(2, "A102"), student(3, "a101")]
        )
        self.assertEqual(list(grouped), ["a101", "A102", "b101"])

    def test_fallback_sorts_among_lowercase_codes(self):
        grouped = group_students_by_class([student(1), student(2, "cs101"), student(3, "zz9")])
        self.assertEqual(list(grouped), ["cs101", FALLBACK_CLASS, "zz9"])

    def test_accented_codes_sort_beside_base_letter(self):
        cases = [
            (["Éco1", "Eco2", "Fin1", "Dat1"], ["Dat1", "Éco1", "Eco2", "Fin1"]),
            (["Điện", "Dược", "Cơ", "Y"], ["Cơ", "Điện", "Dược", "Y"]),
        ]
        for codes, expected in cases:
            with self.subTest(codes=codes):
                students = [student(i, code) for i, code in enumerate(codes)]
                self.assertEqual(list(group_students_by_class(students)), expected)

    def test_every_student_lands_in_exactly_one_group(self):
        layouts = [
            [],
            ["CS101"] * 5,
            ["CS101", None, "cs101", "B2", None],
            ["b", "A", "a", "É", "e", None, "Z"] * 3,
        ]
        for codes in layouts:
            with self.subTest(codes=codes):
                students = [student(i, code) for i, code in enumerate(codes)]
                grouped = group_students_by_class(students)
                flat = [s["id"] for bucket in grouped.values() for s in bucket]
                self.assertEqual(sorted(flat), list(range(len(codes))))
                self.assertTrue(all(grouped.values()))
                for key, bucket in grouped.items():
                    ids = [s["id"] for s in bucket]
                    self.assertEqual(ids, sorted(ids))
                    self.assertTrue(all((s["class"].code if s["class"] else FALLBACK_CLASS) == key
                                        for s in bucket))


class CollapsibleTests(TestCase):
    def test_collapses_past_threshold(self):
        group = CollapsibleGroup("CS101", list(range(12)), threshold=8)
        self.assertTrue(group.should_collapse)
        self.assertEqual(group.visible, list(range(8)))
        self.assertEqual(group.toggle_label, "Show 4 more")
        group.toggle()
        self.assertEqual(len(group.visible), 12)
        self.assertEqual(group.toggle_label, "Collapse")
        group.toggle()
        self.assertEqual(len(group.visible), 8)

    def test_small_groups_never_collapse(self):
        for size in (0, 5, 8):
            group = CollapsibleGroup("x", list(range(size)), threshold=8)
            self.assertFalse(group.should_collapse)
            self.assertEqual(len(group.visible), size)
            self.assertEqual(group.toggle_label, "")
            self.assertEqual(group.overflow, [])

    def test_threshold_boundaries(self):
        threshold = 8
        for size in (threshold - 1, threshold, threshold + 1, 2 * threshold):
            with self.subTest(size=size):
                group = CollapsibleGroup("CS101", list(range(size)), threshold=threshold)
                self.assertEqual(len(group.visible), min(size, threshold))
                self.assertEqual(group.should_collapse, size > threshold)
                if size <= threshold:
                    self.assertEqual(group.toggle_label, "")
                else:
                    self.assertEqual(group.toggle_label, f"Show {size - threshold} more")
                self.assertEqual(group.visible + group.overflow, list(range(size)))
                group.toggle()
                self.assertEqual(group.visible, list(range(size)))

    def test_template_tag_renders_toggle(self):
        cards = [{"student": SimpleNamespace(display_name=f"S{i}", student_code=""), "topic": None}
                 for i in range(10)]
        html = Template(
            "{% load mentees_tags %}{% collapsible_group 'CS101' cards threshold=8 group_id='g1' %}"
        ).render(Context({"cards": cards}))
        self.assertIn("Show 2 more", html)
        self.assertIn('id="g1"', html)
        self.assertEqual(html.count("mentee-card"), 10)


class HealthTests(TestCase):
    def setUp(self):
        self.now = timezone.now()

    def logbook(self, total, expected, idle_days):
        return {
            "total_entries": total,
            "expected_weeks": expected,
            "last_entry_at": self.now - timedelta(days=idle_days, hours=1),
        }

    def test_healthy(self):
        topic = Topic(status=Topic.STATUS_IN_PROGRESS, repo_url="https://git.example.com/x")
        result = health.assess(topic, self.logbook(4, 4, 1), self.now)
        self.assertEqual((result.category, result.score, result.signals), (health.GOOD, 100, []))

    def test_needs_attention(self):
        topic = Topic(status=Topic.STATUS_IN_PROGRESS, repo_url="https://git.example.com/x")
        result = health.assess(topic, self.logbook(3, 4, 8), self.now)
        self.assertEqual(result.score, 65)
        self.assertEqual(result.category, health.ATTENTION)
        self.assertEqual(result.signals[1].text, "Inactive for 8 days")

    def test_danger(self):
        topic = Topic(status=Topic.STATUS_APPROVED)
        result = health.assess(topic, self.logbook(1, 4, 15), self.now)
        self.assertEqual(result.score, 20)
        self.assertEqual(result.category, health.DANGER)

    def test_status_penalties_without_logbook(self):
        self.assertEqual(health.assess(Topic(status=Topic.STATUS_PENDING), None, self.now).score, 90)
        self.assertEqual(health.assess(Topic(status=Topic.STATUS_REJECTED), None, self.now).score, 50)

    def test_empty_logbook_is_behind(self):
        result = health.assess(
            Topic(status=Topic.STATUS_SUBMITTED), {"total_entries": 0, "expected_weeks": 0}, self.now
        )
        self.assertEqual(result.score, 60)

    def test_thresholds(self):
        self.assertEqual(health.category_for(80), health.GOOD)
        self.assertEqual(health.category_for(79), health.ATTENTION)
        self.assertEqual(health.category_for(50), health.ATTENTION)
        self.assertEqual(health.category_for(49), health.DANGER)

    def test_sort_columns(self):
        cards = {
            health.DANGER: [{"health": health.Health(health.DANGER, s)} for s in (40, 10)],
            health.GOOD: [{"health": health.Health(health.GOOD, s)} for s in (85, 100)],
        }
        health.sort_columns(cards)
        self.assertEqual([c["health"].score for c in cards[health.DANGER]], [10, 40])
        self.assertEqual([c["health"].score for c in cards[health.GOOD]], [100, 85])


class KanbanTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.teacher = User.objects.create_user(email="t@example.com", password="x", role="teacher")
        self.classes = [
            CourseClass.objects.create(session=self.session, code=code, name=code, advisor=self.teacher)
            for code in ("CS101", "CS102")
        ]
        self.students = []
        for i, course_class in enumerate([self.classes[0], self.classes[1], self.classes[1]]):
            s = User.objects.create_user(
                email=f"s{i}@example.com",
                password="x",
                role="student",
                full_name=f"Student {i}",
                student_code=f"SV{i}",
            )
            ClassStudent.objects.create(course_class=course_class, student=s)
            self.students.append(s)

    def topic(self, student, course_class, status, title="Thesis"):
        return Topic.objects.create(
            session=self.session,
            course_class=course_class,
            student=student,
            advisor=self.teacher,
            title=title,
            status=status,
        )

    def test_board_columns(self):
        self.topic(self.students[0], self.classes[0], Topic.STATUS_PENDING)
        self.topic(self.students[1], self.classes[1], Topic.STATUS_APPROVED)
        board = kanban_board(self.teacher)
        self.assertEqual(board["total"], 3)
        self.assertEqual(
            board["counts"], {"no_topic": 1, "danger": 0, "attention": 1, "good": 1}
        )
        self.assertTrue(board["group_by_class"])
        self.assertEqual(list(board["grouped"]["no_topic"]), ["CS102"])

    def test_newest_topic_decides(self):
        self.topic(self.students[0], self.classes[0], Topic.STATUS_REJECTED, title="Old")
        self.topic(self.students[0], self.classes[0], Topic.STATUS_PENDING, title="New")
        board = kanban_board(self.teacher)
        self.assertEqual(board["columns"]["good"][0]["topic"].title, "New")
        self.assertEqual(board["counts"]["attention"], 0)

    def test_search(self):
        self.topic(self.students[0], self.classes[0], Topic.STATUS_PENDING, title="Parking lots")
        self.assertEqual(kanban_board(self.teacher, "parking")["total"], 1)
        self.assertEqual(kanban_board(self.teacher, "sv2")["total"], 1)
        self.assertEqual(kanban_board(self.teacher, "nobody")["total"], 0)

    def test_view_renders(self):
        self.topic(self.students[0], self.classes[0], Topic.STATUS_PENDING)
        client = Client()
        client.force_login(self.teacher)
        resp = client.get(reverse("mentees:kanban"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Student 0")
        self.assertContains(resp, "On track")
        self.assertEqual(client.get(reverse("mentees:kanban"), {"q": "zzz"}).status_code, 200)
