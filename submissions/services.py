from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.signing import BadSignature, SignatureExpired, TimestampSigner
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.urls import reverse
from django.utils import timezone

from notifications.services import notify
from topics.models import Topic

from .models import Report

logger = logging.getLogger(__name__)

MB = 1024 * 1024

PHASES = [
    Report.PHASE_REPORT1,
    Report.PHASE_REPORT2,
    Report.PHASE_FINAL,
    Report.PHASE_SLIDE,
    Report.PHASE_SOURCE_CODE,
]

ALLOWED_EXTENSIONS = {
    Report.PHASE_REPORT1: (".pdf", ".doc", ".docx"),
    Report.PHASE_REPORT2: (".pdf", ".doc", ".docx"),
    Report.PHASE_FINAL: (".pdf", ".doc", ".docx"),
    Report.PHASE_SLIDE: (".pdf", ".ppt", ".pptx"),
    Report.PHASE_SOURCE_CODE: (".zip", ".rar", ".7z"),
}

MAX_FILE_SIZES = {
    Report.PHASE_REPORT1: 50 * MB,
    Report.PHASE_REPORT2: 50 * MB,
    Report.PHASE_FINAL: 100 * MB,
    Report.PHASE_SLIDE: 30 * MB,
    Report.PHASE_SOURCE_CODE: 100 * MB,
}

# session field at which each phase opens for upload
OPENS_AT = {
    Report.PHASE_REPORT1: "registration_end",
    Report.PHASE_REPORT2: "report1_deadline",
    Report.PHASE_FINAL: "report2_deadline",
    Report.PHASE_SLIDE: "report2_deadline",
    Report.PHASE_SOURCE_CODE: "report2_deadline",
}

DEADLINE_FIELDS = {
    Report.PHASE_REPORT1: "report1_deadline",
    Report.PHASE_REPORT2: "report2_deadline",
    Report.PHASE_FINAL: "final_deadline",
}

TEACHER_VISIBLE_STATUSES = (
    Topic.STATUS_APPROVED,
    Topic.STATUS_IN_PROGRESS,
    Topic.STATUS_SUBMITTED,
    Topic.STATUS_DEFENDED,
)

SIGNER_SALT = "submissions.download"


class SubmissionError(Exception):
    pass


def validate_file(name: str, size: int, phase: str) -> None:
    allowed = ALLOWED_EXTENSIONS.get(phase)
    if allowed is None:
        raise SubmissionError(f'Invalid phase "{phase}"')
    if not (name or "").lower().endswith(allowed):
        raise SubmissionError(f"File must be one of: {', '.join(allowed)}")
    max_size = MAX_FILE_SIZES[phase]
    if size > max_size:
        raise SubmissionError(f"File must not exceed {round(max_size / MB)}MB")


def phase_opens_at(session, phase: str):
    if session is None:
        return None
    field = OPENS_AT.get(phase)
    return getattr(session, field) if field else None


def next_version(topic: Topic, phase: str) -> int:
    current = Report.objects.filter(topic=topic, phase=phase).aggregate(m=Max("version"))["m"]
    return (current or 0) + 1


def storage_path(topic_id: int, phase: str, version: int, filename: str) -> str:
    ext = os.path.splitext(filename)[1].lstrip(".").lower()
    stamp = int(time.time() * 1000)
    return f"{topic_id}/{phase}/v{version}/{phase}_v{version}_{stamp}.{ext}"


def upload(topic: Topic, student, phase: str, uploaded_file, note: str = "", now=None) -> Report:
    validate_file(uploaded_file.name, uploaded_file.size, phase)
    if topic.student_id != student.pk:
        raise SubmissionError("You cannot submit reports for this topic")
    if topic.status == Topic.STATUS_REJECTED:
        raise SubmissionError("This topic was rejected")
    now = now or timezone.now()
    opens_at = phase_opens_at(topic.session, phase)
    if opens_at and now < opens_at:
        raise SubmissionError("This phase is not open for submissions yet")

    version = next_version(topic, phase)
    path = storage_path(topic.pk, phase, version, uploaded_file.name)
    saved_path = default_storage.save(path, uploaded_file)
    try:
        with transaction.atomic():
            report = Report.objects.create(
                topic=topic,
                student=student,
                phase=phase,
                version=version,
                file_path=saved_path,
                file_name=os.path.basename(uploaded_file.name),
                file_size=uploaded_file.size,
                note=(note or "").strip(),
            )
    except IntegrityError:
        default_storage.delete(saved_path)
        logger.warning("Report version clash on topic %s phase %s v%s", topic.pk, phase, version)
        raise SubmissionError("Another upload for this phase just finished, please retry")
    except Exception:
        default_storage.delete(saved_path)
        raise
    logger.info("Report %s uploaded for topic %s (%s v%s)", report.pk, topic.pk, phase, version)
    if topic.advisor_id:
        notify(
            topic.advisor,
            f"New {report.get_phase_display()} submission",
            f"{student.display_name} uploaded version {version} of {report.get_phase_display()}",
            link=reverse("submissions:teacher_list"),
        )
    return report


def reports_for_topic(topic: Topic, phase: Optional[str] = None):
    qs = Report.objects.filter(topic=topic)
    if phase:
        qs = qs.filter(phase=phase)
    return qs.order_by("-version")


def latest_by_topic(topic: Topic) -> Dict[str, Report]:
    """Newest report for each phase, keyed in phase order."""
    latest: Dict[str, Report] = {}
    for report in Report.objects.filter(topic=topic).order_by("phase", "-version"):
        latest.setdefault(report.phase, report)
    return {phase: latest[phase] for phase in PHASES if phase in latest}


def submission_status(topic: Topic, now=None) -> Dict[str, Dict[str, Any]]:
    now = now or timezone.now()
    latest = latest_by_topic(topic)
    session = topic.session
    status = {}
    for phase in PHASES:
        report = latest.get(phase)
        field = DEADLINE_FIELDS.get(phase)
        deadline = getattr(session, field) if (field and session) else None
        opens_at = phase_opens_at(session, phase)
        status[phase] = {
            "submitted": report is not None,
            "latest_version": report.version if report else 0,
            "deadline": deadline.isoformat() if deadline else None,
            "opens_at": opens_at.isoformat() if opens_at else None,
            "is_open": not opens_at or now >= opens_at,
            "is_overdue": bool(deadline and now > deadline and report is None),
        }
    return status


def reports_for_teacher(teacher) -> List[Dict[str, Any]]:
    topics = (
        Topic.objects.select_related("student")
        .filter(advisor=teacher, status__in=TEACHER_VISIBLE_STATUSES)
        .prefetch_related("reports")
        .order_by("student__full_name")
    )
    rows = []
    for topic in topics:
        reports = sorted(topic.reports.all(), key=lambda r: r.submitted_at, reverse=True)
        rows.append({"topic": topic, "reports": reports})
    return rows


# Signed downloads


def download_token(report: Report) -> str:
    return TimestampSigner(salt=SIGNER_SALT).sign(str(report.pk))


def download_url(report: Report) -> str:
    return f"{reverse('submissions:download')}?t={download_token(report)}"


def report_from_token(token: str) -> Optional[Report]:
    signer = TimestampSigner(salt=SIGNER_SALT)
    try:
        report_id = int(signer.unsign(token, max_age=settings.REPORT_DOWNLOAD_TTL_SECONDS))
    except (BadSignature, SignatureExpired, ValueError):
        return None
    return Report.objects.filter(pk=report_id).first()


def can_view(user, report: Report) -> bool:
    if user.role == "admin":
        return True
    topic = report.topic
    if user.pk == topic.student_id or user.pk == topic.advisor_id:
        return True
    course_class = topic.course_class
    return bool(course_class and course_class.reviewer_id == user.pk)


def serialize_report(report: Report, with_url: bool = True) -> Dict[str, Any]:
    data = {
        "id": report.pk,
        "topic_id": report.topic_id,
        "phase": report.phase,
        "version": report.version,
        "file_name": report.file_name,
        "file_size": report.file_size,
        "note": report.note,
        "submitted_at": report.submitted_at.isoformat(),
    }
    if with_url:
        data["download_url"] = download_url(report)
    return data
