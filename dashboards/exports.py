from __future__ import annotations

from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db.models import Count
from django.utils import timezone

from academics.models import ClassStudent, CourseClass, Session
from grading import services as grading
from grading.models import ROLE_ADVISOR, TopicGrade
from topics.models import Topic

from .excel import Sheet

TOPIC_COLUMNS = [
    "Student code",
    "Student name",
    "Email",
    "Class",
    "Advisor",
    "Session",
    "Title",
    "Status",
    "Repository",
    "Registered at",
]
WORKLOAD_COLUMNS = [
    "Teacher code",
    "Teacher name",
    "Email",
    "Guiding",
    "Approved",
    "In progress",
    "Completed",
]
CLASS_COLUMNS = ["Code", "Name", "Advisor", "Reviewer", "Students", "Registered topics"]
APPROVED_OR_LATER = (
    Topic.STATUS_APPROVED,
    Topic.STATUS_IN_PROGRESS,
    Topic.STATUS_SUBMITTED,
    Topic.STATUS_DEFENDED,
    Topic.STATUS_COMPLETED,
)


def _local(dt) -> str:
    return timezone.localtime(dt).strftime("%Y-%m-%d %H:%M") if dt else ""


def _status_label(status: str) -> str:
    return dict(Topic.STATUS_CHOICES).get(status, status)


def topic_rows(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    qs = Topic.objects.select_related("student", "course_class", "advisor", "session").order_by(
        "-created_at"
    )
    if session is not None:
        qs = qs.filter(session=session)
    return [
        {
            "Student code": t.student.student_code or "",
            "Student name": t.student.full_name,
            "Email": t.student.email,
            "Class": t.course_class.code if t.course_class_id else "",
            "Advisor": t.advisor.display_name if t.advisor_id else "",
            "Session": t.session.name,
            "Title": t.title,
            "Status": _status_label(t.status),
            "Repository": t.repo_url,
            "Registered at": _local(t.created_at),
        }
        for t in qs
    ]


def topics_sheets(session: Optional[Session] = None) -> List[Sheet]:
    return [("Topics", topic_rows(session), TOPIC_COLUMNS)]


def workload_rows(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    User = get_user_model()
    topics = Topic.objects.exclude(advisor__isnull=True)
    if session is not None:
        topics = topics.filter(session=session)
    workload: Dict[int, Dict[str, int]] = {}
    for advisor_id, status in topics.values_list("advisor_id", "status"):
        counts = workload.setdefault(
            advisor_id, {"Guiding": 0, "Approved": 0, "In progress": 0, "Completed": 0}
        )
        counts["Guiding"] += 1
        if status in APPROVED_OR_LATER:
            counts["Approved"] += 1
        if status == Topic.STATUS_IN_PROGRESS:
            counts["In progress"] += 1
        if status == Topic.STATUS_COMPLETED:
            counts["Completed"] += 1
    rows = []
    for teacher in User.objects.filter(role=User.ROLE_TEACHER).order_by("full_name"):
        counts = workload.get(
            teacher.pk, {"Guiding": 0, "Approved": 0, "In progress": 0, "Completed": 0}
        )
        rows.append(
            {
                "Teacher code": teacher.teacher_code or "",
                "Teacher name": teacher.full_name,
                "Email": teacher.email,
                **counts,
            }
        )
    return rows


def workload_sheets(session: Optional[Session] = None) -> List[Sheet]:
    return [("Teacher workload", workload_rows(session), WORKLOAD_COLUMNS)]


def grade_sheets(course_class: CourseClass) -> List[Sheet]:
    criteria = grading.criteria_by_session(course_class.session)[ROLE_ADVISOR]
    names = [c["name"] for c in criteria]
    columns = ["Student code", "Student name", "Title", *names, "Weighted total", "Final"]
    topics = (
        Topic.objects.select_related("student", "session")
        .filter(course_class=course_class)
        .exclude(status=Topic.STATUS_REJECTED)
        .order_by("student__student_code")
    )
    rows = []
    for topic in topics:
        scores = {
            g.criterion_name: float(g.score)
            for g in TopicGrade.objects.filter(topic=topic, grader_role=ROLE_ADVISOR)
        }
        finals = TopicGrade.objects.filter(topic=topic, grader_role=ROLE_ADVISOR, is_final=True)
        total = grading.weighted_total(topic, ROLE_ADVISOR)
        rows.append(
            {
                "Student code": topic.student.student_code or "",
                "Student name": topic.student.full_name,
                "Title": topic.title,
                **{name: scores.get(name) for name in names},
                "Weighted total": total,
                "Final": "yes" if finals.exists() else "no",
            }
        )
    return [(f"Grades {course_class.code}", rows, columns)]


def class_rows(session: Session) -> List[Dict[str, Any]]:
    classes = (
        CourseClass.objects.select_related("advisor", "reviewer")
        .filter(session=session)
        .annotate(student_count=Count("memberships", distinct=True))
        .order_by("code")
    )
    registered = dict(
        Topic.objects.filter(session=session)
        .exclude(status=Topic.STATUS_REJECTED)
        .values("course_class")
        .annotate(n=Count("id"))
        .values_list("course_class", "n")
    )
    return [
        {
            "Code": c.code,
            "Name": c.name,
            "Advisor": c.advisor.display_name if c.advisor_id else "",
            "Reviewer": c.reviewer.display_name if c.reviewer_id else "",
            "Students": c.student_count,
            "Registered topics": registered.get(c.pk, 0),
        }
        for c in classes
    ]


def session_report_sheets(session: Session) -> List[Sheet]:
    from .services import admin_stats

    stats = admin_stats(session, use_cache=False)
    summary = [
        {"Metric": "Session", "Value": session.name},
        {"Metric": "Academic year", "Value": session.academic_year},
        {"Metric": "Semester", "Value": session.semester},
        {"Metric": "Classes", "Value": stats["total_classes"]},
        {"Metric": "Students", "Value": stats["total_students"]},
        {"Metric": "Topics", "Value": stats["topic_stats"]["total"]},
        {"Metric": "Registration rate (%)", "Value": stats["registration_rate"]},
    ]
    for code, label in Topic.STATUS_CHOICES:
        summary.append({"Metric": f"Topics: {label}", "Value": stats["topic_stats"][code]})
    summary.append({"Metric": "Generated at", "Value": _local(timezone.now())})
    return [
        ("Summary", summary, ["Metric", "Value"]),
        ("Classes", class_rows(session), CLASS_COLUMNS),
        ("Topics", topic_rows(session), TOPIC_COLUMNS),
    ]


def class_roster(course_class: CourseClass) -> List[Dict[str, Any]]:
    members = (
        ClassStudent.objects.select_related("student")
        .filter(course_class=course_class)
        .order_by("student__student_code", "student__full_name")
    )
    topics = {
        t.student_id: t
        for t in Topic.objects.filter(course_class=course_class)
        .exclude(status=Topic.STATUS_REJECTED)
        .order_by("created_at")
    }
    rows = []
    for index, m in enumerate(members, start=1):
        topic = topics.get(m.student_id)
        rows.append(
            {
                "no": index,
                "student_code": m.student.student_code or "",
                "full_name": m.student.full_name,
                "title": topic.title if topic else "",
                "status": _status_label(topic.status) if topic else "Not registered",
            }
        )
    return rows
