import json

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse

from academics.models import CourseClass, Session
from topics.models import Topic

from . import services
from .models import ROLE_ADVISOR, ROLE_REVIEWER, GradingCriterion, TopicGrade

User = get_user_model()


class CriteriaTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S1", academic_year="2025-2026")
        self.other = Session.objects.create(name="S2", academic_year="2025-2026")

    def test_defaults_created_on_first_read(self):
        criteria = services.criteria_by_session(self.session)
        self.assertEqual(len(criteria[ROLE_ADVISOR]), 4)
        self.assertEqual(criteria[ROLE_REVIEWER], [])
        weights = sum(c["weight"] for c in criteria[ROLE_ADVISOR])
        self.assertAlmostEqual(weights, 1.0)
        self.assertEqual(GradingCriterion.objects.filter(session=self.session).count(), 3)
        services.criteria_by_session(self.session)
        self.assertEqual(GradingCriterion.objects.filter(session=self.session).count(), 3)

    def test_add_update_delete_by_index(self):
        services.add_criterion(self.session, ROLE_REVIEWER, {"name": "Clarity", "weight": 0.5})
        items = services.add_criterion(self.session, ROLE_REVIEWER, {"name": "Depth", "weight": 0.5})
        self.assertEqual([i["name"] for i in items], ["Clarity", "Depth"])
        items = services.update_criterion(self.session, ROLE_REVIEWER, 1, {"weight": 0.3})
        self.assertEqual(items[1]["weight"], 0.3)
        self.assertEqual(items[1]["name"], "Depth")
        items = services.delete_criterion(self.session, ROLE_REVIEWER, 0)
        self.assertEqual([i["name"] for i in items], ["Depth"])
        with self.assertRaises(services.GradingError):
            services.delete_criterion(self.session, ROLE_REVIEWER, 5)

    def test_invalid_criterion(self):
        with self.assertRaises(services.GradingError):
            services.add_criterion(self.session, ROLE_REVIEWER, {"name": "", "weight": 0.5})
        with self.assertRaises(services.GradingError):
            services.add_criterion(self.session, ROLE_REVIEWER, {"name": "X", "weight": 2})
        with self.assertRaises(services.GradingError):
            services.add_criterion(self.session, "parent", {"name": "X"})

    def test_non_finite_criterion_numbers(self):
        for bad in ({"max_score": "inf"}, {"weight": "nan"}, {"max_score": float("-inf")}):
            with self.assertRaises(services.GradingError):
                services.add_criterion(self.session, ROLE_REVIEWER, {"name": "X", "weight": 0.5, **bad})
        self.assertEqual(services.criteria_by_session(self.session)[ROLE_REVIEWER], [])

    def test_copy_between_sessions(self):
        with self.assertRaises(services.GradingError):
            services.copy_criteria(self.other, self.session)
        services.criteria_by_session(self.session)
        services.copy_criteria(self.session, self.other)
        self.assertEqual(len(services.criteria_by_session(self.other)[ROLE_ADVISOR]), 4)

    def test_list_one_row_per_criterion(self):
        services.criteria_by_session(self.session)
        rows = services.list_criteria(self.session.pk)
        self.assertEqual(len(rows), 4)
        self.assertEqual(rows[0]["index"], 0)
        self.assertEqual(rows[0]["session_name"], "S1")


class GradeTests(TestCase):
    def setUp(self):
        self.session = Session.objects.create(name="S", academic_year="2025-2026")
        self.advisor = User.objects.create_user(email="a@example.com", password="x", role="teacher")
        self.reviewer = User.objects.create_user(email="r@example.com", password="x", role="teacher")
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS", name="CS", advisor=self.advisor, reviewer=self.reviewer
        )
        self.student = User.objects.create_user(email="s@example.com", password="x", role="student")
        self.topic = Topic.objects.create(
            session=self.session,
            course_class=self.course_class,
            student=self.student,
            advisor=self.advisor,
            title="T",
            status=Topic.STATUS_SUBMITTED,
        )

    def grade_all(self, score=8):
        names = [c["name"] for c in services.criteria_by_session(self.session)[ROLE_ADVISOR]]
        return services.save_grades(
            self.topic,
            self.advisor,
            ROLE_ADVISOR,
            [{"criterion_name": n, "score": score} for n in names],
        )

    def test_upsert_per_criterion(self):
        services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", 7)
        services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", "8.5")
        grades = TopicGrade.objects.filter(topic=self.topic)
        self.assertEqual(grades.count(), 1)
        self.assertEqual(float(grades.get().score), 8.5)

    def test_score_range_and_criterion(self):
        with self.assertRaises(services.GradingError):
            services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", 11)
        with self.assertRaises(services.GradingError):
            services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Charisma", 5)

    def test_non_finite_scores_rejected(self):
        for bad in ("NaN", "sNaN", "Infinity", "-inf"):
            with self.assertRaisesMessage(services.GradingError, "number"):
                services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", bad)
        self.assertFalse(TopicGrade.objects.exists())

    def test_only_assigned_graders(self):
        with self.assertRaises(services.GradingError):
            services.save_grade(self.topic, self.reviewer, ROLE_ADVISOR, "Product/Code", 5)

    def test_pending_topics_not_gradable(self):
        self.topic.status = Topic.STATUS_PENDING
        with self.assertRaises(services.GradingError):
            services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", 5)

    def test_submit_locks_grades(self):
        self.grade_all()
        self.assertEqual(services.submit_grades(self.topic, self.advisor, ROLE_ADVISOR), 4)
        with self.assertRaises(services.GradingError):
            services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", 5)
        with self.assertRaises(services.GradingError):
            services.submit_grades(self.topic, self.advisor, ROLE_ADVISOR)

    def test_gradable_topics_progress(self):
        services.save_grade(self.topic, self.advisor, ROLE_ADVISOR, "Product/Code", 7)
        rows = services.gradable_topics(self.advisor)
        self.assertEqual(len(rows), 1)
        status = rows[0]["grading_status"]
        self.assertEqual((status["total"], status["graded"], status["percentage"]), (4, 1, 25))
        self.assertFalse(status["is_complete"])

    def test_weighted_total(self):
        self.grade_all(score=8)
        self.assertEqual(services.weighted_total(self.topic), 8.0)

    def test_nan_score_through_view_is_400(self):
        client = Client()
        client.force_login(self.advisor)
        resp = client.post(
            reverse("grading:topic_grades", args=[self.topic.pk]),
            data=json.dumps({"grades": [{"criterion_name": "Product/Code", "score": "NaN"}]}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_student_summary_uses_final_grades_only(self):
        self.grade_all(score=7)
        summary = services.student_grade_summary(self.topic)
        self.assertFalse(summary["has_grades"])
        services.submit_grades(self.topic, self.advisor, ROLE_ADVISOR)
        summary = services.student_grade_summary(self.topic)
        self.assertTrue(summary["has_grades"])
        self.assertEqual(summary["total_score"], 28.0)
        self.assertEqual(summary["max_possible"], 40.0)
        self.assertEqual(summary["average_score"], 7.0)

    def test_grade_through_view(self):
        client = Client()
        client.force_login(self.advisor)
        resp = client.post(
            reverse("grading:topic_grades", args=[self.topic.pk]),
            data=json.dumps({"grades": [{"criterion_name": "Product/Code", "score": 9}]}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["grades"][0]["score"], 9.0)
        resp = client.post(reverse("grading:submit_grades", args=[self.topic.pk]))
        self.assertEqual(resp.json(), {"finalized": 1})
