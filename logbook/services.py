from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Q
from django.urls import reverse
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from notifications.services import notify
from topics.models import Topic

from .models import LogbookEntry

logger = logging.getLogger(__name__)

# Topics that keep a logbook.
LOGGING_STATUSES = (Topic.STATUS_APPROVED, Topic.STATUS_IN_PROGRESS, Topic.STATUS_SUBMITTED)

TASK_FIELDS = ("completed_tasks", "in_progress_tasks", "planned_tasks")
TEXT_FIELDS = ("content", "issues")


class LogbookError(Exception):
    pass


def calculate_week_number(approved_at, now=None) -> int:
    """Week 1 starts on the day the topic was approved."""
    if not approved_at:
        return 1
    now = now or timezone.now()
    days = (now - approved_at).total_seconds() / 86400
    return max(1, math.floor(days / 7) + 1)


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))


def _clean_tasks(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.splitlines()
    return [str(v).strip() for v in value if str(v).strip()]


def _parse_when(value):
    if value in (None, ""):
        return None
    if hasattr(value, "tzinfo"):
        return value
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise LogbookError("Invalid meeting date")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _apply_fields(entry: LogbookEntry, data: Dict[str, Any]) -> None:
    for field in TEXT_FIELDS:
        if field in data:
            setattr(entry, field, (data.get(field) or "").strip())
    for field in TASK_FIELDS:
        if field in data:
            setattr(entry, field, _clean_tasks(data.get(field)))
    if "meeting_date" in data:
        entry.meeting_date = _parse_when(data.get("meeting_date"))


# Student side


def entries_for_topic(topic: Topic):
    return LogbookEntry.objects.filter(topic=topic).order_by("-week_number")


def create_entry(topic: Topic, student, data: Dict[str, Any], submit: bool = False) -> LogbookEntry:
    if topic.student_id != student.pk:
        raise LogbookError("You can only write in your own logbook")
    if topic.status not in LOGGING_STATUSES:
        raise LogbookError("The logbook opens once your topic is approved")
    try:
        raw = data.get("week_number")
        week = calculate_week_number(topic.approved_at) if raw in (None, "") else int(raw)
    except (TypeError, ValueError):
        raise LogbookError("week_number must be a number")
    if week < 1:
        raise LogbookError("week_number must be at least 1")
    if LogbookEntry.objects.filter(topic=topic, week_number=week).exists():
        raise LogbookError("An entry for this week already exists, edit it instead")
    entry = LogbookEntry(topic=topic, week_number=week)
    _apply_fields(entry, data)
    if submit:
        entry.status = LogbookEntry.STATUS_PENDING
        entry.submitted_at = timezone.now()
    try:
        with transaction.atomic():
            entry.save()
    except IntegrityError:
        raise LogbookError("An entry for this week already exists, edit it instead")
    if submit:
        _notify_advisor(entry)
    return entry


def update_entry(entry: LogbookEntry, student, data: Dict[str, Any]) -> LogbookEntry:
    if entry.topic.student_id != student.pk:
        raise LogbookError("You can only edit your own logbook")
    if entry.is_locked:
        raise LogbookError("This entry was confirmed by your advisor and can no longer be edited")
    _apply_fields(entry, data)
    entry.save()
    return entry


def submit_entry(entry: LogbookEntry, student) -> LogbookEntry:
    if entry.topic.student_id != student.pk:
        raise LogbookError("You can only submit your own logbook")
    if entry.status not in (LogbookEntry.STATUS_DRAFT, LogbookEntry.STATUS_NEEDS_REVISION):
        raise LogbookError("Only draft entries can be submitted")
    entry.status = LogbookEntry.STATUS_PENDING
    entry.submitted_at = timezone.now()
    entry.save(update_fields=["status", "submitted_at", "updated_at"])
    _notify_advisor(entry)
    return entry


def _notify_advisor(entry: LogbookEntry) -> None:
    topic = entry.topic
    if topic.advisor_id:
        notify(
            topic.advisor,
            f"Logbook week {entry.week_number} submitted",
            f"{topic.student.display_name}: {topic.title}",
            link=reverse("logbook:teacher_topic", args=[topic.pk]),
        )


def _notify_student(entry: LogbookEntry, title: str, message: str = "") -> None:
    notify(entry.topic.student, title, message, link=reverse("logbook:my_logbook"))


# Teacher side


def _ensure_advisor(entry: LogbookEntry, teacher) -> None:
    if entry.topic.advisor_id != teacher.pk:
        raise LogbookError("You are not the advisor of this topic")


def approve_entry(entry: LogbookEntry, teacher, note: str = "") -> LogbookEntry:
    _ensure_advisor(entry, teacher)
    if entry.status != LogbookEntry.STATUS_PENDING:
        raise LogbookError("Only submitted entries can be approved")
    entry.status = LogbookEntry.STATUS_APPROVED
    entry.reviewed_at = timezone.now()
    if note and note.strip():
        entry.teacher_note = note.strip()
    entry.save()
    _notify_student(entry, f"Logbook week {entry.week_number} approved", entry.teacher_note)
    return entry


def request_revision(entry: LogbookEntry, teacher, note: str) -> LogbookEntry:
    _ensure_advisor(entry, teacher)
    note = (note or "").strip()
    if not note:
        raise LogbookError("A note is required when asking for changes")
    if entry.status != LogbookEntry.STATUS_PENDING:
        raise LogbookError("Only submitted entries can be sent back")
    entry.status = LogbookEntry.STATUS_NEEDS_REVISION
    entry.teacher_note = note
    entry.reviewed_at = timezone.now()
    entry.save()
    _notify_student(entry, f"Logbook week {entry.week_number} needs changes", note)
    return entry


def add_note(entry: LogbookEntry, teacher, note: str) -> LogbookEntry:
    _ensure_advisor(entry, teacher)
    entry.teacher_note = (note or "").strip()
    entry.save(update_fields=["teacher_note", "updated_at"])
    return entry


def confirm_meeting(entry: LogbookEntry, teacher, meeting_date=None) -> LogbookEntry:
    _ensure_advisor(entry, teacher)
    entry.teacher_confirmed = True
    entry.meeting_date = _parse_when(meeting_date) or entry.meeting_date or timezone.now()
    entry.save(update_fields=["teacher_confirmed", "meeting_date", "updated_at"])
    return entry


def unconfirm_meeting(entry: LogbookEntry, teacher) -> LogbookEntry:
    _ensure_advisor(entry, teacher)
    entry.teacher_confirmed = False
    entry.save(update_fields=["teacher_confirmed", "updated_at"])
    return entry


def logbook_stats(topic: Topic, now=None) -> Dict[str, Any]:
    agg = LogbookEntry.objects.filter(topic=topic).aggregate(
        total=Count("id"),
        approved=Count("id", filter=Q(status=LogbookEntry.STATUS_APPROVED)),
        confirmed=Count("id", filter=Q(teacher_confirmed=True)),
        pending=Count("id", filter=Q(status=LogbookEntry.STATUS_PENDING)),
        last_entry_at=Max("created_at"),
    )
    expected = calculate_week_number(topic.approved_at, now)
    return {
        "total_entries": agg["total"],
        "approved_entries": agg["approved"],
        "confirmed_entries": agg["confirmed"],
        "pending_entries": agg["pending"],
        "expected_weeks": expected,
        "last_entry_at": agg["last_entry_at"],
        "completion_rate": _percent(agg["total"], expected),
    }


def topics_with_logbook(teacher, now=None) -> List[Dict[str, Any]]:
    topics = (
        Topic.objects.select_related("student", "course_class", "session")
        .filter(advisor=teacher, status__in=LOGGING_STATUSES)
        .order_by("-created_at")
    )
    return [{"topic": t, "stats": logbook_stats(t, now)} for t in topics]


def serialize_entry(entry: LogbookEntry) -> Dict[str, Any]:
    def iso(v):
        return v.isoformat() if v else None

    return {
        "id": entry.pk,
        "topic_id": entry.topic_id,
        "week_number": entry.week_number,
        "meeting_date": iso(entry.meeting_date),
        "content": entry.content,
        "completed_tasks": entry.completed_tasks,
        "in_progress_tasks": entry.in_progress_tasks,
        "planned_tasks": entry.planned_tasks,
        "issues": entry.issues,
        "status": entry.status,
        "teacher_note": entry.teacher_note,
        "teacher_confirmed": entry.teacher_confirmed,
        "submitted_at": iso(entry.submitted_at),
        "reviewed_at": iso(entry.reviewed_at),
        "created_at": iso(entry.created_at),
    }


def serialize_stats(stats: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(stats)
    last: Optional[Any] = data.get("last_entry_at")
    data["last_entry_at"] = last.isoformat() if last else None
    return data
