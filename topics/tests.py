import json
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from academics.models import ClassStudent, CourseClass, Session
from notifications.models import Notification

from . import services
from .models import SampleTopic, Topic

User = get_user_model()


class TopicTestCase(TestCase):
    def setUp(self):
        now = timezone.now()
        self.session = Session.objects.create(
            name="Thesis 2025",
            academic_year="2025-2026",
            status=Session.STATUS_OPEN,
            registration_start=now - timedelta(days=1),
            registration_end=now + timedelta(days=7),
        )
        self.teacher = User.objects.create_user(
            email="teacher@example.com", password="pw-12345678", role="teacher", full_name="Dr T"
        )
        self.other_teacher = User.objects.create_user(
            email="other@example.com", password="pw-12345678", role="teacher"
        )
        self.course_class = CourseClass.objects.create(
            session=self.session, code="CS101", name="Intro", advisor=self.teacher
        )
        self.student = self.make_student("S001")
        self.sample = SampleTopic.objects.create(
            teacher=self.teacher,
            session=self.session,
            title="Parking lot detector",
            description="Vision",
            technologies=["python"],
            max_students=1,
        )

    def make_student(self, code):
        student = User.objects.create_user(
            email=f"{code.lower()}@example.com",
            password="pw-12345678",
            role="student",
            full_name=f"Student {code}",
            student_code=code,
        )
        ClassStudent.objects.create(course_class=self.course_class, student=student)
        return student


class RegistrationTests(TopicTestCase):
    def test_register_from_sample_copies_fields_and_counts(self):
        topic = services.register_from_sample(self.student, self.sample.pk)
        self.assertEqual(topic.status, Topic.STATUS_PENDING)
        self.assertEqual(topic.title, self.sample.title)
        self.assertEqual(topic.technologies, ["python"])
        self.assertEqual(topic.advisor, self.teacher)
        self.sample.refresh_from_db()
        self.assertEqual(self.sample.current_students, 1)
        self.assertTrue(Notification.objects.filter(user=self.teacher).exists())

    def test_full_sample_is_refused(self):
        services.register_from_sample(self.student, self.sample.pk)
        other = self.make_student("S002")
        with self.assertRaisesMessage(services.TopicError, "full"):
            services.register_from_sample(other, self.sample.pk)
        self.assertEqual(SampleTopic.objects.get(pk=self.sample.pk).current_students, 1)

    def test_second_topic_refused(self):
        services.propose(self.student, "My idea")
        with self.assertRaisesMessage(services.TopicError, "already"):
            services.propose(self.student, "Another idea")

    def test_registration_window_enforced(self):
        later = timezone.now() + timedelta(days=30)
        with self.assertRaisesMessage(services.TopicError, "closed"):
            services.propose(self.student, "Late idea", now=later)

    def test_student_without_class(self):
        loner = User.objects.create_user(email="l@example.com", password="x", role="student")
        with self.assertRaises(services.TopicError):
            services.propose(loner, "Idea")

    def test_rejection_frees_sample_slot_and_allows_new_topic(self):
        topic = services.register_from_sample(self.student, self.sample.pk)
        services.reject(topic, self.teacher, "  out of scope  ")
        topic.refresh_from_db()
        self.assertEqual(topic.rejection_reason, "out of scope")
        self.assertEqual(SampleTopic.objects.get(pk=self.sample.pk).current_students, 0)
        fresh = services.propose(self.student, "Second try")
        self.assertEqual(fresh.status, Topic.STATUS_PENDING)

    def test_samples_available_only(self):
        services.register_from_sample(self.student, self.sample.pk)
        self.assertEqual(list(services.samples_for_session(self.session, available_only=True)), [])
        self.assertEqual(len(services.samples_for_session(self.session)), 1)


class UpdateTests(TopicTestCase):
    def setUp(self):
        super().setUp()
        self.topic = services.propose(self.student, "Idea")

    def test_update_after_revision_resets_to_pending(self):
        services.request_revision(self.topic, self.teacher, "Narrow it down")
        services.update_topic(self.topic, self.student, {"title": "Narrow idea"})
        self.topic.refresh_from_db()
        self.assertEqual(self.topic.status, Topic.STATUS_PENDING)
        self.assertEqual(self.topic.revision_note, "")

    def test_update_refused_once_approved(self):
        services.approve(self.topic, self.teacher)
        with self.assertRaises(services.TopicError):
            services.update_topic(self.topic, self.student, {"title": "New"})

    def test_repo_url_any_status_but_validated(self):
        services.approve(self.topic, self.teacher)
        services.update_repo_url(self.topic, self.student, "https://git.example.com/me/thesis")
        self.assertEqual(Topic.objects.get(pk=self.topic.pk).repo_url, "https://git.example.com/me/thesis")
        with self.assertRaises(services.TopicError):
            services.update_repo_url(self.topic, self.student, "not a url")


class ReviewTests(TopicTestCase):
    def setUp(self):
        super().setUp()
        self.topic = services.propose(self.student, "Idea")

    def test_only_advisor_reviews(self):
        with self.assertRaises(services.TopicError):
            services.approve(self.topic, self.other_teacher)

    def test_approve_sets_time_and_notifies(self):
        services.approve(self.topic, self.teacher)
        self.assertIsNotNone(self.topic.approved_at)
        self.assertTrue(
            Notification.objects.filter(user=self.student, title__icontains="approved").exists()
        )

    def test_revision_and_reject_need_text(self):
        with self.assertRaises(services.TopicError):
            services.request_revision(self.topic, self.teacher, "   ")
        with self.assertRaises(services.TopicError):
            services.reject(self.topic, self.teacher, "")

    def test_revision_only_from_pending_or_revision(self):
        services.reject(self.topic, self.teacher, "Duplicate")
        fresh = services.propose(self.student, "New idea")
        with self.assertRaises(services.TopicError):
            services.request_revision(self.topic, self.teacher, "Try again")
        self.assertEqual(Topic.objects.get(pk=self.topic.pk).status, Topic.STATUS_REJECTED)
        services.request_revision(fresh, self.teacher, "Narrow it")
        services.request_revision(fresh, self.teacher, "Narrower")
        services.approve(fresh, self.teacher)
        with self.assertRaises(services.TopicError):
            services.request_revision(fresh, self.teacher, "Too late")

    def test_bulk_approve(self):
        second = services.propose(self.make_student("S002"), "Other idea")
        with self.assertRaises(services.TopicError):
            services.bulk_approve(self.teacher, [])
        self.assertEqual(services.bulk_approve(self.teacher, [self.topic.pk, second.pk]), 2)
        self.assertEqual(Topic.objects.filter(status=Topic.STATUS_APPROVED).count(), 2)

    def test_pending_queue_oldest_first_and_stats(self):
        second = services.propose(self.make_student("S002"), "Other idea")
        self.assertEqual(list(services.pending_for_teacher(self.teacher)), [self.topic, second])
        stats = services.topic_stats(teacher=self.teacher)
        self.assertEqual(stats["pending"], 2)
        self.assertEqual(stats["total"], 2)

    def test_lifecycle_requires_approval(self):
        with self.assertRaises(services.TopicError):
            services.set_status(self.topic, self.teacher, Topic.STATUS_IN_PROGRESS)
        services.approve(self.topic, self.teacher)
        services.set_status(self.topic, self.teacher, Topic.STATUS_IN_PROGRESS)
        self.assertEqual(Topic.objects.get(pk=self.topic.pk).status, Topic.STATUS_IN_PROGRESS)


class TopicViewTests(TopicTestCase):
    def test_student_registers_through_view(self):
        client = Client()
        client.force_login(self.student)
        resp = client.post(reverse("topics:register_sample", args=[self.sample.pk]))
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], "pending")

    def test_error_becomes_400(self):
        client = Client()
        client.force_login(self.student)
        resp = client.post(
            reverse("topics:propose"), data=json.dumps({"title": ""}), content_type="application/json"
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.json())

    def test_teacher_rejects_through_view(self):
        topic = services.propose(self.student, "Idea")
        client = Client()
        client.force_login(self.teacher)
        resp = client.post(
            reverse("topics:reject", args=[topic.pk]),
            data=json.dumps({"reason": "Duplicate"}),
            content_type="application/json",
        )
        self.assertEqual(resp.json()["status"], "rejected")

    def test_revising_rejected_topic_is_400(self):
        topic = services.propose(self.student, "Idea")
        services.reject(topic, self.teacher, "No")
        services.propose(self.student, "Second idea")
        client = Client()
        client.force_login(self.teacher)
        resp = client.post(
            reverse("topics:revise", args=[topic.pk]),
            data=json.dumps({"note": "Rework"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_students_cannot_review(self):
        topic = services.propose(self.student, "Idea")
        client = Client()
        client.force_login(self.student)
        self.assertEqual(client.post(reverse("topics:approve", args=[topic.pk])).status_code, 403)

    def test_email_enqueued_on_commit_when_opted_in(self):
        pref = self.student.ui_pref
        pref.email_notifications = True
        pref.save()
        topic = services.propose(self.student, "Idea")
        with mock.patch("jobs.tasks.send_notification_email.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                services.approve(topic, self.teacher)
        delay.assert_called_once()
