from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.db import IntegrityError, transaction
from django.db.models import Count, F
from django.urls import reverse
from django.utils import timezone

from academics.services import class_for_student, is_registration_open
from notifications.services import notify

from .models import SampleTopic, Topic

logger = logging.getLogger(__name__)


class TopicError(Exception):
    pass


def _clean_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def _clean_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        return ""
    try:
        URLValidator(schemes=["http", "https"])(url)
    except ValidationError:
        raise TopicError("Repository URL must be a valid http(s) link")
    return url


# Student side


def has_registered(student) -> bool:
    return Topic.objects.filter(student=student).exclude(status=Topic.STATUS_REJECTED).exists()


def active_topic(student) -> Optional[Topic]:
    return (
        Topic.objects.select_related("session", "advisor", "course_class", "sample_topic")
        .filter(student=student)
        .exclude(status=Topic.STATUS_REJECTED)
        .order_by("-created_at")
        .first()
    )


def latest_topic(student) -> Optional[Topic]:
    """Most recent topic including rejected ones, so a student can see why."""
    return (
        Topic.objects.select_related("session", "advisor", "course_class")
        .filter(student=student)
        .order_by("-created_at")
        .first()
    )


def _registration_context(student, now=None):
    course_class = class_for_student(student)
    if course_class is None:
        raise TopicError("You are not assigned to a class yet")
    session = course_class.session
    if not is_registration_open(session, now):
        raise TopicError("Topic registration is closed")
    if has_registered(student):
        raise TopicError("You already have a registered topic")
    return course_class, session


def register_from_sample(student, sample_id, now=None) -> Topic:
    course_class, session = _registration_context(student, now)
    try:
        with transaction.atomic():
            sample = (
                SampleTopic.objects.select_for_update()
                .filter(pk=sample_id, is_active=True)
                .first()
            )
            if sample is None:
                raise TopicError("Sample topic not found")
            if sample.session_id != session.pk:
                raise TopicError("Sample topic belongs to another session")
            if sample.current_students >= sample.max_students:
                raise TopicError("This sample topic is full")
            topic = Topic.objects.create(
                session=session,
                course_class=course_class,
                student=student,
                advisor=course_class.advisor,
                sample_topic=sample,
                title=sample.title,
                description=sample.description,
                technologies=list(sample.technologies or []),
                status=Topic.STATUS_PENDING,
            )
            SampleTopic.objects.filter(pk=sample.pk).update(
                current_students=F("current_students") + 1
            )
    except IntegrityError:
        raise TopicError("You already have a registered topic")
    logger.info("Student %s registered sample topic %s", student.pk, sample_id)
    _notify_advisor(topic, "New topic registration")
    return topic


def propose(student, title, description="", technologies=None, now=None) -> Topic:
    title = (title or "").strip()
    if not title:
        raise TopicError("Title is required")
    course_class, session = _registration_context(student, now)
    try:
        with transaction.atomic():
            topic = Topic.objects.create(
                session=session,
                course_class=course_class,
                student=student,
                advisor=course_class.advisor,
                title=title,
                description=(description or "").strip(),
                technologies=_clean_list(technologies),
                status=Topic.STATUS_PENDING,
            )
    except IntegrityError:
        raise TopicError("You already have a registered topic")
    logger.info("Student %s proposed topic %s", student.pk, topic.pk)
    _notify_advisor(topic, "New topic proposal")
    return topic


def update_topic(topic: Topic, student, data: Dict[str, Any]) -> Topic:
    if topic.student_id != student.pk:
        raise TopicError("You can only edit your own topic")
    if topic.status not in Topic.EDITABLE_STATUSES:
        raise TopicError("This topic can no longer be edited")
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise TopicError("Title is required")
        topic.title = title
    if "description" in data:
        topic.description = (data.get("description") or "").strip()
    if "technologies" in data:
        topic.technologies = _clean_list(data.get("technologies"))
    if "repo_url" in data:
        topic.repo_url = _clean_url(data.get("repo_url"))
    # resubmitting sends the topic back to the advisor's queue
    topic.status = Topic.STATUS_PENDING
    topic.revision_note = ""
    topic.save()
    return topic


def update_repo_url(topic: Topic, student, url: str) -> Topic:
    if topic.student_id != student.pk:
        raise TopicError("You can only edit your own topic")
    topic.repo_url = _clean_url(url)
    topic.save(update_fields=["repo_url", "updated_at"])
    return topic


# Teacher review


def _ensure_advisor(topic: Topic, teacher) -> None:
    if topic.advisor_id != teacher.pk:
        raise TopicError("You are not the advisor of this topic")


def _notify_student(topic: Topic, title: str, message: str = "") -> None:
    notify(topic.student, title, message, link=reverse("students:dashboard"))


def _notify_advisor(topic: Topic, title: str) -> None:
    if topic.advisor_id:
        notify(
            topic.advisor,
            title,
            f"{topic.student.display_name}: {topic.title}",
            link=reverse("topics:teacher_pending"),
        )


def approve(topic: Topic, teacher, now=None) -> Topic:
    _ensure_advisor(topic, teacher)
    if topic.status not in Topic.EDITABLE_STATUSES:
        raise TopicError("Only pending topics can be approved")
    topic.status = Topic.STATUS_APPROVED
    topic.approved_at = now or timezone.now()
    topic.revision_note = ""
    topic.rejection_reason = ""
    topic.save()
    _notify_student(topic, "Your topic was approved", topic.title)
    return topic


def bulk_approve(teacher, topic_ids: Iterable[int], now=None) -> int:
    ids = list(topic_ids or [])
    if not ids:
        raise TopicError("No topics selected")
    now = now or timezone.now()
    approved = 0
    with transaction.atomic():
        topics = Topic.objects.select_related("student").filter(
            pk__in=ids, advisor=teacher, status__in=Topic.EDITABLE_STATUSES
        )
        for topic in topics:
            approve(topic, teacher, now=now)
            approved += 1
    logger.info("Teacher %s bulk approved %s topics", teacher.pk, approved)
    return approved


def request_revision(topic: Topic, teacher, note: str) -> Topic:
    _ensure_advisor(topic, teacher)
    if topic.status not in Topic.EDITABLE_STATUSES:
        raise TopicError("Only pending topics can be sent back for revision")
    note = (note or "").strip()
    if not note:
        raise TopicError("A revision note is required")
    topic.status = Topic.STATUS_REVISION
    topic.revision_note = note
    topic.save()
    _notify_student(topic, "Your topic needs revision", note)
    return topic


def reject(topic: Topic, teacher, reason: str) -> Topic:
    _ensure_advisor(topic, teacher)
    reason = (reason or "").strip()
    if not reason:
        raise TopicError("A rejection reason is required")
    if topic.status == Topic.STATUS_REJECTED:
        raise TopicError("Topic is already rejected")
    with transaction.atomic():
        topic.status = Topic.STATUS_REJECTED
        topic.rejection_reason = reason
        topic.save()
        if topic.sample_topic_id:
            SampleTopic.objects.filter(
                pk=topic.sample_topic_id, current_students__gt=0
            ).update(current_students=F("current_students") - 1)
    _notify_student(topic, "Your topic was rejected", reason)
    return topic


def set_status(topic: Topic, teacher, status: str) -> Topic:
    """Move an approved topic along its lifecycle (in progress, submitted, defended, completed)."""
    _ensure_advisor(topic, teacher)
    allowed = Topic.STATUS_ORDER[Topic.STATUS_ORDER.index(Topic.STATUS_IN_PROGRESS):]
    if status not in allowed:
        raise TopicError(f"Invalid status: {status}")
    if topic.status_rank() < Topic.STATUS_ORDER.index(Topic.STATUS_APPROVED):
        raise TopicError("Topic must be approved first")
    topic.status = status
    topic.save(update_fields=["status", "updated_at"])
    return topic


def pending_for_teacher(teacher):
    return (
        Topic.objects.select_related("student", "course_class", "session")
        .filter(advisor=teacher, status=Topic.STATUS_PENDING)
        .order_by("created_at", "id")
    )


def topics_for_teacher(teacher, status: Optional[str] = None):
    qs = Topic.objects.select_related("student", "course_class", "session").filter(advisor=teacher)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-updated_at")


def topic_stats(teacher=None, session=None) -> Dict[str, int]:
    qs = Topic.objects.all()
    if teacher is not None:
        qs = qs.filter(advisor=teacher)
    if session is not None:
        qs = qs.filter(session=session)
    stats = {code: 0 for code, _ in Topic.STATUS_CHOICES}
    for row in qs.values("status").annotate(n=Count("id")):
        stats[row["status"]] = row["n"]
    stats["total"] = sum(stats.values())
    return stats


# Sample topics


SAMPLE_FIELDS = (
    "title",
    "description",
    "requirements",
    "technologies",
    "difficulty",
    "max_students",
    "notes",
)


def _apply_sample_fields(sample: SampleTopic, data: Dict[str, Any]) -> None:
    for field in SAMPLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("requirements", "technologies"):
            value = _clean_list(value)
        elif field == "max_students":
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise TopicError("max_students must be a number")
            if value < 1:
                raise TopicError("max_students must be at least 1")
            if value < sample.current_students:
                raise TopicError("max_students cannot be below the registered count")
        elif isinstance(value, str):
            value = value.strip()
        setattr(sample, field, value if value is not None else "")
    if not sample.title:
        raise TopicError("Title is required")


def create_sample(teacher, session, data: Dict[str, Any]) -> SampleTopic:
    sample = SampleTopic(teacher=teacher, session=session)
    _apply_sample_fields(sample, data)
    sample.save()
    return sample


def update_sample(sample: SampleTopic, teacher, data: Dict[str, Any]) -> SampleTopic:
    if sample.teacher_id != teacher.pk:
        raise TopicError("You can only edit your own sample topics")
    _apply_sample_fields(sample, data)
    sample.save()
    return sample


def delete_sample(sample: SampleTopic, teacher) -> None:
    if sample.teacher_id != teacher.pk:
        raise TopicError("You can only delete your own sample topics")
    sample.delete()


def toggle_sample(sample: SampleTopic, teacher) -> SampleTopic:
    if sample.teacher_id != teacher.pk:
        raise TopicError("You can only edit your own sample topics")
    sample.is_active = not sample.is_active
    sample.save(update_fields=["is_active", "updated_at"])
    return sample


def samples_for_session(session, available_only: bool = False):
    qs = SampleTopic.objects.select_related("teacher").filter(session=session, is_active=True)
    if available_only:
        qs = qs.filter(current_students__lt=F("max_students"))
    return qs.order_by("-created_at")


def samples_for_teacher(teacher):
    return SampleTopic.objects.select_related("session").filter(teacher=teacher).order_by("-created_at")


# Serialization


def serialize_topic(topic: Topic) -> Dict[str, Any]:
    return {
        "id": topic.pk,
        "title": topic.title,
        "description": topic.description,
        "technologies": topic.technologies,
        "repo_url": topic.repo_url,
        "status": topic.status,
        "revision_note": topic.revision_note,
        "rejection_reason": topic.rejection_reason,
        "approved_at": topic.approved_at.isoformat() if topic.approved_at else None,
        "created_at": topic.created_at.isoformat(),
        "updated_at": topic.updated_at.isoformat(),
        "session_id": topic.session_id,
        "class_id": topic.course_class_id,
        "sample_topic_id": topic.sample_topic_id,
        "student": {
            "id": topic.student_id,
            "full_name": topic.student.full_name,
            "student_code": topic.student.student_code,
        },
        "advisor": (
            {"id": topic.advisor_id, "full_name": topic.advisor.full_name}
            if topic.advisor_id
            else None
        ),
    }


def serialize_sample(sample: SampleTopic) -> Dict[str, Any]:
    return {
        "id": sample.pk,
        "session_id": sample.session_id,
        "title": sample.title,
        "description": sample.description,
        "requirements": sample.requirements,
        "technologies": sample.technologies,
        "difficulty": sample.difficulty,
        "max_students": sample.max_students,
        "current_students": sample.current_students,
        "slots_left": sample.slots_left,
        "notes": sample.notes,
        "is_active": sample.is_active,
        "teacher": {"id": sample.teacher_id, "full_name": sample.teacher.full_name},
    }
