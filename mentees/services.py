from __future__ import annotations

from typing import Any, Dict, List

from django.db.models import Q
from django.utils import timezone

from academics.models import ClassStudent
from logbook.services import LOGGING_STATUSES, logbook_stats
from topics.models import Topic

from . import health
from .grouping import group_columns_by_class, should_group_by_class


def _matches(search: str, *values) -> bool:
    return any(search in (v or "").lower() for v in values)


def kanban_board(teacher, search: str = "", now=None) -> Dict[str, Any]:
    """Supervised students sorted into health columns for ``teacher``."""
    now = now or timezone.now()
    search = (search or "").strip().lower()
    columns: Dict[str, List[Dict[str, Any]]] = {c: [] for c in health.CATEGORIES}

    topics = (
        Topic.objects.select_related("student", "course_class")
        .filter(advisor=teacher)
        .order_by("student__full_name", "-created_at")
    )
    seen_students = set()
    for topic in topics:
        # a student's newest topic decides the card
        if topic.student_id in seen_students:
            continue
        seen_students.add(topic.student_id)
        student = topic.student
        if search and not _matches(search, student.full_name, student.student_code, topic.title):
            continue
        stats = logbook_stats(topic, now) if topic.status in LOGGING_STATUSES else None
        result = health.assess(topic, stats, now)
        columns[result.category].append(
            {
                "student": student,
                "topic": topic,
                "class": topic.course_class,
                "logbook": stats,
                "health": result,
            }
        )

    members = (
        ClassStudent.objects.select_related("student", "course_class")
        .filter(course_class__advisor=teacher)
        .exclude(student_id__in=seen_students)
        .order_by("student__full_name")
    )
    if search:
        members = members.filter(
            Q(student__full_name__icontains=search) | Q(student__student_code__icontains=search)
        )
    for membership in members:
        if membership.student_id in seen_students:
            continue
        seen_students.add(membership.student_id)
        columns[health.NO_TOPIC].append(
            {
                "student": membership.student,
                "topic": None,
                "class": membership.course_class,
                "logbook": None,
                "health": None,
            }
        )

    health.sort_columns(columns)
    everyone = [card for cards in columns.values() for card in cards]
    return {
        "columns": columns,
        "grouped": group_columns_by_class(columns),
        "group_by_class": should_group_by_class(everyone),
        "counts": {key: len(cards) for key, cards in columns.items()},
        "total": len(everyone),
    }
