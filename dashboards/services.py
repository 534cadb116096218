from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Count, Q

from academics.models import ClassStudent, CourseClass, Session
from topics.models import Topic
from topics.services import topic_stats

logger = logging.getLogger(__name__)

TOPIC_ACTIONS = {
    Topic.STATUS_PENDING: "registered a topic",
    Topic.STATUS_REVISION: "was asked to revise a topic",
    Topic.STATUS_APPROVED: "had a topic approved",
    Topic.STATUS_IN_PROGRESS: "started work",
    Topic.STATUS_SUBMITTED: "submitted a report",
    Topic.STATUS_DEFENDED: "defended",
    Topic.STATUS_COMPLETED: "completed the thesis",
    Topic.STATUS_REJECTED: "had a topic rejected",
}

TODO_LIMIT = 5


class DashboardError(Exception):
    pass


def _stats_key(session_id) -> str:
    return f"stats:v1:admin:{session_id or 'all'}"


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(math.floor(part * 100 / whole + 0.5))


def admin_stats(session: Optional[Session] = None, use_cache: bool = True) -> Dict[str, Any]:
    key = _stats_key(session.pk if session else None)
    if use_cache:
        cached = cache.get(key)
        if cached is not None:
            return cached
    User = get_user_model()
    if session is not None:
        total_classes = CourseClass.objects.filter(session=session).count()
        total_students = ClassStudent.objects.filter(course_class__session=session).count()
    else:
        total_classes = CourseClass.objects.count()
        total_students = User.objects.filter(role=User.ROLE_STUDENT, is_active=True).count()
    total_teachers = User.objects.filter(role=User.ROLE_TEACHER, is_active=True).count()
    stats = topic_stats(session=session)
    result = {
        "total_students": total_students,
        "total_teachers": total_teachers,
        "total_classes": total_classes,
        "topic_stats": stats,
        "registration_rate": _percent(stats["total"], total_students),
    }
    cache.set(key, result, settings.STATS_CACHE_TTL_SECONDS)
    return result


def invalidate_stats(session_id=None) -> None:
    cache.delete_many([_stats_key(session_id), _stats_key(None)])


def recent_activities(limit: int = 10) -> List[Dict[str, Any]]:
    topics = Topic.objects.select_related("student").order_by("-updated_at")[:limit]
    return [
        {
            "id": f"topic-{t.pk}",
            "type": "topic",
            "user": t.student.display_name,
            "action": TOPIC_ACTIONS.get(t.status, "updated a topic"),
            "target": t.title,
            "status": t.status,
            "at": t.updated_at.isoformat(),
        }
        for t in topics
    ]


def active_sessions():
    return Session.objects.filter(
        status__in=[Session.STATUS_OPEN, Session.STATUS_DRAFT]
    ).order_by("-created_at")


# Teacher dashboard


def teacher_stats(teacher) -> Dict[str, int]:
    return Topic.objects.filter(advisor=teacher).aggregate(
        guiding=Count("id", filter=Q(status__in=Topic.ACTIVE_STATUSES)),
        pending_approval=Count("id", filter=Q(status=Topic.STATUS_PENDING)),
        pending_grades=Count("id", filter=Q(status=Topic.STATUS_SUBMITTED)),
        completed=Count("id", filter=Q(status=Topic.STATUS_COMPLETED)),
    )


def teacher_todos(teacher) -> List[Dict[str, Any]]:
    todos = []
    pending = (
        Topic.objects.select_related("student")
        .filter(advisor=teacher, status=Topic.STATUS_PENDING)
        .order_by("created_at")[:TODO_LIMIT]
    )
    for topic in pending:
        todos.append(
            {
                "id": f"pending-{topic.pk}",
                "type": "pending_approval",
                "title": "Topic awaiting approval",
                "description": f'{topic.student.display_name}: "{topic.title}"',
                "topic_id": topic.pk,
                "priority": "high",
                "created_at": topic.created_at.isoformat(),
            }
        )
    submitted = (
        Topic.objects.select_related("student")
        .filter(advisor=teacher, status=Topic.STATUS_SUBMITTED)
        .order_by("updated_at")[:TODO_LIMIT]
    )
    for topic in submitted:
        todos.append(
            {
                "id": f"grading-{topic.pk}",
                "type": "pending_grading",
                "title": "Report awaiting grading",
                "description": f'{topic.student.display_name}: "{topic.title}"',
                "topic_id": topic.pk,
                "priority": "medium",
                "created_at": topic.updated_at.isoformat(),
            }
        )
    return todos


def guiding_students(teacher):
    return (
        Topic.objects.select_related("student", "course_class")
        .filter(advisor=teacher, status__in=Topic.ACTIVE_STATUSES)
        .order_by("student__full_name")
    )


def teacher_classes(teacher) -> List[Dict[str, Any]]:
    classes = (
        CourseClass.objects.select_related("session")
        .filter(advisor=teacher)
        .annotate(student_count=Count("memberships", distinct=True))
        .order_by("-session__created_at", "code")
    )
    rows = []
    for course_class in classes:
        counts = {code: 0 for code, _ in Topic.STATUS_CHOICES}
        for row in (
            Topic.objects.filter(course_class=course_class).values("status").annotate(n=Count("id"))
        ):
            counts[row["status"]] = row["n"]
        rows.append(
            {
                "id": course_class.pk,
                "code": course_class.code,
                "name": course_class.name,
                "session": course_class.session.name,
                "student_count": course_class.student_count,
                "topic_stats": counts,
                "registered": sum(v for k, v in counts.items() if k != Topic.STATUS_REJECTED),
            }
        )
    return rows


def class_students(teacher, course_class: CourseClass) -> List[Dict[str, Any]]:
    if course_class.advisor_id != teacher.pk:
        raise DashboardError("You are not the advisor of this class")
    members = course_class.memberships.select_related("student").order_by("created_at", "id")
    topics = {
        t.student_id: t
        for t in Topic.objects.filter(course_class=course_class)
        .exclude(status=Topic.STATUS_REJECTED)
        .order_by("created_at")
    }
    rows = []
    for m in members:
        topic = topics.get(m.student_id)
        rows.append(
            {
                "id": m.student.pk,
                "full_name": m.student.full_name,
                "student_code": m.student.student_code,
                "email": m.student.email,
                "topic": (
                    {"id": topic.pk, "title": topic.title, "status": topic.status} if topic else None
                ),
            }
        )
    return rows
