from __future__ import annotations

from typing import Any, Dict, List, Optional

from django.utils import timezone

from academics.models import Session
from academics.services import class_for_student, session_for_student
from submissions.models import Report
from topics.models import Topic
from topics.services import active_topic, latest_topic

PROGRESS_STEPS = [
    ("register", "Registration", "registration_end"),
    ("report1", "Report 1", "report1_deadline"),
    ("report2", "Report 2", "report2_deadline"),
    ("final", "Final report", "final_deadline"),
    ("defense", "Defense", "defense_start"),
]

NEXT_DEADLINES = [
    ("report1", "Submit progress report 1", "report1_deadline"),
    ("report2", "Submit progress report 2", "report2_deadline"),
    ("final", "Submit the final report", "final_deadline"),
    ("defense", "Thesis defense", "defense_start"),
]

# Steps are reached in topic status order; the step index is how far along it is.
PROGRESS_ORDER = [
    Topic.STATUS_PENDING,
    Topic.STATUS_REVISION,
    Topic.STATUS_APPROVED,
    Topic.STATUS_IN_PROGRESS,
    Topic.STATUS_SUBMITTED,
    Topic.STATUS_DEFENDED,
    Topic.STATUS_COMPLETED,
]


def progress_steps(topic: Topic, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    try:
        index = PROGRESS_ORDER.index(topic.status)
    except ValueError:
        index = -1
    # registration counts as the first step and is done once a topic exists
    reached = max(index - 1, 0) if index >= 0 else 0
    current = None
    if index in (0, 1):
        current = 0
    elif 2 <= index <= 5:
        current = index - 1
    steps = []
    for position, (key, label, field) in enumerate(PROGRESS_STEPS):
        if position == current:
            status = "current"
        elif position == 0 or position <= reached:
            status = "completed"
        else:
            status = "pending"
        when = getattr(session, field) if session else None
        steps.append({"key": key, "label": label, "status": status, "date": when})
    return steps


def next_deadline(session: Optional[Session], now=None) -> Optional[Dict[str, Any]]:
    if session is None:
        return None
    now = now or timezone.now()
    upcoming = [
        {"key": key, "label": label, "date": getattr(session, field)}
        for key, label, field in NEXT_DEADLINES
        if getattr(session, field) and getattr(session, field) > now
    ]
    upcoming.sort(key=lambda d: d["date"])
    return upcoming[0] if upcoming else None


def dashboard(student, now=None) -> Dict[str, Any]:
    topic = active_topic(student)
    if topic is None:
        rejected = latest_topic(student)
        session = session_for_student(student)
        return {
            "has_topic": False,
            "topic": None,
            "rejected_topic": rejected,
            "course_class": class_for_student(student, session),
            "session": session,
            "progress": [],
            "next_deadline": next_deadline(session, now),
        }
    session = topic.session
    phases_done = (
        Report.objects.filter(topic=topic).values_list("phase", flat=True).distinct().count()
    )
    return {
        "has_topic": True,
        "topic": topic,
        "rejected_topic": None,
        "course_class": topic.course_class,
        "session": session,
        "advisor": topic.advisor,
        "reviewer": topic.course_class.reviewer if topic.course_class_id else None,
        "progress": progress_steps(topic, session),
        "next_deadline": next_deadline(session, now),
        "reports_submitted": phases_done,
        "total_reports": len(PROGRESS_STEPS) - 1,
    }
