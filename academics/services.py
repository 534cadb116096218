from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from .models import ClassStudent, CourseClass, Session

logger = logging.getLogger(__name__)

URGENT_DAYS = 7

DEADLINE_FIELDS = [
    ("registration_end", "Topic registration closes"),
    ("report1_deadline", "Report 1 due"),
    ("report2_deadline", "Report 2 due"),
    ("final_deadline", "Final report due"),
    ("defense_start", "Defense begins"),
]


class AcademicsError(Exception):
    pass


def _iso(value):
    return value.isoformat() if value else None


# Sessions


def list_sessions(filters: Optional[Dict[str, Any]] = None):
    filters = filters or {}
    qs = Session.objects.all()
    if filters.get("status"):
        qs = qs.filter(status=filters["status"])
    if filters.get("academic_year"):
        qs = qs.filter(academic_year=filters["academic_year"])
    if filters.get("session_type"):
        qs = qs.filter(session_type=filters["session_type"])
    if filters.get("search"):
        qs = qs.filter(name__icontains=filters["search"].strip())
    return qs.prefetch_related("classes").order_by("-created_at")


def serialize_session(session: Session, with_classes: bool = False) -> Dict[str, Any]:
    data = {
        "id": session.pk,
        "name": session.name,
        "academic_year": session.academic_year,
        "semester": session.semester,
        "session_type": session.session_type,
        "status": session.status,
        "registration_start": _iso(session.registration_start),
        "registration_end": _iso(session.registration_end),
        "report1_deadline": _iso(session.report1_deadline),
        "report2_deadline": _iso(session.report2_deadline),
        "final_deadline": _iso(session.final_deadline),
        "defense_start": _iso(session.defense_start),
        "defense_end": _iso(session.defense_end),
    }
    if with_classes:
        classes = session.classes.annotate(student_count=Count("memberships"))
        data["classes"] = [
            {
                "id": c.pk,
                "code": c.code,
                "name": c.name,
                "student_count": c.student_count,
            }
            for c in classes
        ]
    return data


def session_stats(session: Session) -> Dict[str, Any]:
    from topics.models import Topic

    class_count = session.classes.count()
    student_count = ClassStudent.objects.filter(course_class__session=session).count()
    topic_stats = {code: 0 for code, _ in Topic.STATUS_CHOICES}
    rows = (
        Topic.objects.filter(session=session)
        .values("status")
        .annotate(n=Count("id"))
    )
    for row in rows:
        topic_stats[row["status"]] = row["n"]
    return {
        "class_count": class_count,
        "student_count": student_count,
        "topic_count": sum(topic_stats.values()),
        "topic_stats": topic_stats,
    }


def duplicate_session(session: Session, user=None) -> Session:
    """Copy the session's schedule into a new draft. Classes are not copied."""
    copy = Session.objects.create(
        name=f"{session.name} (copy)",
        academic_year=session.academic_year,
        semester=session.semester,
        session_type=session.session_type,
        status=Session.STATUS_DRAFT,
        registration_start=session.registration_start,
        registration_end=session.registration_end,
        report1_deadline=session.report1_deadline,
        report2_deadline=session.report2_deadline,
        final_deadline=session.final_deadline,
        defense_start=session.defense_start,
        defense_end=session.defense_end,
        created_by=user,
    )
    logger.info("Session %s duplicated into %s", session.pk, copy.pk)
    return copy


def is_registration_open(session: Optional[Session], now=None) -> bool:
    if session is None:
        return False
    if session.status != Session.STATUS_OPEN:
        return False
    now = now or timezone.now()
    if session.registration_start and now < session.registration_start:
        return False
    if session.registration_end and now > session.registration_end:
        return False
    return True


def upcoming_deadlines(session: Optional[Session], now=None) -> List[Dict[str, Any]]:
    if session is None:
        return []
    now = now or timezone.now()
    items = []
    for field, label in DEADLINE_FIELDS:
        when = getattr(session, field)
        if not when:
            continue
        days_left = math.ceil((when - now).total_seconds() / 86400)
        items.append(
            {
                "key": field,
                "label": label,
                "date": when,
                "days_left": days_left,
                "is_past": days_left < 0,
                "is_urgent": 0 <= days_left <= URGENT_DAYS,
            }
        )
    items.sort(key=lambda d: d["date"])
    return items


def current_session(user=None) -> Optional[Session]:
    """The session a user is working in: their saved pick, else the newest open one."""
    if user is not None and getattr(user, "is_authenticated", False):
        pref = getattr(user, "ui_pref", None)
        if pref is not None and pref.selected_session_id:
            return pref.selected_session
    return (
        Session.objects.filter(status=Session.STATUS_OPEN).order_by("-created_at").first()
    )


def session_for_student(student) -> Optional[Session]:
    membership = (
        ClassStudent.objects.select_related("course_class__session")
        .filter(student=student)
        .order_by("-course_class__session__created_at")
        .first()
    )
    return membership.course_class.session if membership else None


def class_for_student(student, session: Optional[Session] = None) -> Optional[CourseClass]:
    qs = ClassStudent.objects.select_related("course_class").filter(student=student)
    if session is not None:
        qs = qs.filter(course_class__session=session)
    membership = qs.order_by("-course_class__session__created_at").first()
    return membership.course_class if membership else None


# Classes


def list_classes(session_id=None, search: str = ""):
    qs = CourseClass.objects.select_related("session", "advisor", "reviewer").annotate(
        student_count=Count("memberships")
    )
    if session_id:
        qs = qs.filter(session_id=session_id)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(code__icontains=search))
    return qs.order_by("code")


def serialize_class(course_class: CourseClass) -> Dict[str, Any]:
    advisor = course_class.advisor
    reviewer = course_class.reviewer
    count = getattr(course_class, "student_count", None)
    if count is None:
        count = course_class.memberships.count()
    return {
        "id": course_class.pk,
        "session_id": course_class.session_id,
        "code": course_class.code,
        "name": course_class.name,
        "max_students": course_class.max_students,
        "student_count": count,
        "advisor": {"id": advisor.pk, "name": advisor.display_name} if advisor else None,
        "reviewer": {"id": reviewer.pk, "name": reviewer.display_name} if reviewer else None,
    }


def class_detail(course_class: CourseClass) -> Dict[str, Any]:
    from topics.models import Topic

    members = list(
        course_class.memberships.select_related("student").order_by("created_at", "id")
    )
    student_ids = [m.student_id for m in members]
    topics = {}
    for t in (
        Topic.objects.filter(session=course_class.session, student_id__in=student_ids)
        .exclude(status=Topic.STATUS_REJECTED)
        .order_by("created_at")
    ):
        topics[t.student_id] = t
    data = serialize_class(course_class)
    data["students"] = [
        {
            "id": m.student.pk,
            "full_name": m.student.full_name,
            "student_code": m.student.student_code,
            "email": m.student.email,
            "joined_at": m.created_at.isoformat(),
            "topic": (
                {
                    "id": topics[m.student_id].pk,
                    "title": topics[m.student_id].title,
                    "status": topics[m.student_id].status,
                }
                if m.student_id in topics
                else None
            ),
        }
        for m in members
    ]
    return data


def _require_role(user, role):
    if user is None or user.role != role:
        raise AcademicsError(f"User must be a {role}")


def assign_advisor(course_class: CourseClass, advisor, reviewer=None) -> CourseClass:
    _require_role(advisor, "teacher")
    course_class.advisor = advisor
    fields = ["advisor"]
    if reviewer is not None:
        _require_role(reviewer, "teacher")
        course_class.reviewer = reviewer
        fields.append("reviewer")
    course_class.save(update_fields=fields)
    return course_class


def add_student(course_class: CourseClass, student) -> ClassStudent:
    _require_role(student, "student")
    if ClassStudent.objects.filter(course_class=course_class, student=student).exists():
        raise AcademicsError("Student is already in this class")
    if course_class.memberships.count() >= course_class.max_students:
        raise AcademicsError("Class is full")
    return ClassStudent.objects.create(
        course_class=course_class, student=student, created_at=timezone.now()
    )


def remove_student(course_class: CourseClass, student) -> None:
    deleted, _ = ClassStudent.objects.filter(course_class=course_class, student=student).delete()
    if not deleted:
        raise AcademicsError("Student is not in this class")


def add_members(course_class: CourseClass, student_ids: List[int]) -> int:
    """
    Add existing students to a class in one insert. Rows that already exist
    are left untouched; join times follow the order of ``student_ids``.
    """
    base = timezone.now()
    rows = [
        ClassStudent(
            course_class=course_class,
            student_id=sid,
            created_at=base + timedelta(milliseconds=index),
        )
        for index, sid in enumerate(dict.fromkeys(student_ids))
    ]
    with transaction.atomic():
        existing = set(
            ClassStudent.objects.filter(
                course_class=course_class, student_id__in=[r.student_id for r in rows]
            ).values_list("student_id", flat=True)
        )
        ClassStudent.objects.bulk_create(rows, ignore_conflicts=True)
    return len([r for r in rows if r.student_id not in existing])


def import_students(course_class: CourseClass, student_ids: List[int]) -> int:
    User = get_user_model()
    valid = set(
        User.objects.filter(pk__in=student_ids, role=User.ROLE_STUDENT).values_list("pk", flat=True)
    )
    ordered = [sid for sid in student_ids if sid in valid]
    return add_members(course_class, ordered)


def available_students(session: Session, search: str = ""):
    """Students not yet placed in any class of ``session``."""
    User = get_user_model()
    taken = ClassStudent.objects.filter(course_class__session=session).values("student_id")
    qs = User.objects.filter(role=User.ROLE_STUDENT, is_active=True).exclude(pk__in=taken)
    if search:
        qs = qs.filter(Q(full_name__icontains=search) | Q(student_code__icontains=search))
    return qs.order_by("student_code", "full_name")
