from __future__ import annotations

import copy
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from topics.models import Topic

from .models import (
    GRADER_ROLE_CHOICES,
    ROLE_ADVISOR,
    ROLE_COUNCIL,
    ROLE_REVIEWER,
    GradingCriterion,
    TopicGrade,
)

logger = logging.getLogger(__name__)

ROLES = [code for code, _ in GRADER_ROLE_CHOICES]
DEFAULT_MAX_SCORE = 10

DEFAULT_CRITERIA = {
    ROLE_ADVISOR: [
        {
            "name": "Report/Documentation",
            "weight": 0.25,
            "max_score": 10,
            "description": "Clear write-up, complete problem analysis, sound system design, user guide",
        },
        {
            "name": "Product/Code",
            "weight": 0.40,
            "max_score": 10,
            "description": "Working features, usable UI, clean structured code, error handling, basic security",
        },
        {
            "name": "Presentation/Demo",
            "weight": 0.25,
            "max_score": 10,
            "description": "Confident delivery, smooth demo, explains the process, answers questions well",
        },
        {
            "name": "Progress & Attitude",
            "weight": 0.10,
            "max_score": 10,
            "description": "Meets deadlines, positive attitude, takes initiative",
        },
    ],
    ROLE_REVIEWER: [],
    ROLE_COUNCIL: [],
}

GRADABLE_STATUSES = (
    Topic.STATUS_APPROVED,
    Topic.STATUS_IN_PROGRESS,
    Topic.STATUS_SUBMITTED,
    Topic.STATUS_DEFENDED,
    Topic.STATUS_COMPLETED,
)


class GradingError(Exception):
    pass


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise GradingError(f"Invalid grader role: {role}")


def _clean_criterion(data: Dict[str, Any]) -> Dict[str, Any]:
    name = str(data.get("name") or "").strip()
    if not name:
        raise GradingError("Criterion name is required")
    try:
        weight = float(data.get("weight", 0))
        max_score = float(data.get("max_score", DEFAULT_MAX_SCORE))
    except (TypeError, ValueError):
        raise GradingError("weight and max_score must be numbers")
    if not (math.isfinite(weight) and math.isfinite(max_score)):
        raise GradingError("weight and max_score must be numbers")
    if not 0 <= weight <= 1:
        raise GradingError("weight must be between 0 and 1")
    if max_score <= 0:
        raise GradingError("max_score must be positive")
    return {
        "name": name,
        "weight": weight,
        "max_score": int(max_score) if max_score.is_integer() else max_score,
        "description": str(data.get("description") or "").strip(),
    }


# Criteria


def create_default_criteria(session) -> None:
    for role, items in DEFAULT_CRITERIA.items():
        try:
            with transaction.atomic():
                GradingCriterion.objects.get_or_create(
                    session=session,
                    grader_role=role,
                    defaults={"criteria": copy.deepcopy(items)},
                )
        except IntegrityError:
            # created concurrently; the existing row wins
            logger.info("Default criteria for session %s/%s already exist", session.pk, role)


def criteria_by_session(session) -> Dict[str, List[Dict[str, Any]]]:
    """Criteria grouped by grader role; a session with none gets the defaults."""
    if session is None:
        return {role: [] for role in ROLES}
    rows = list(GradingCriterion.objects.filter(session=session))
    if not rows:
        create_default_criteria(session)
        rows = list(GradingCriterion.objects.filter(session=session))
    grouped = {role: [] for role in ROLES}
    for row in rows:
        grouped[row.grader_role] = list(row.criteria or [])
    return grouped


def list_criteria(session_id=None) -> List[Dict[str, Any]]:
    """One row per criterion across sessions, for the admin configuration table."""
    qs = GradingCriterion.objects.select_related("session").order_by("session__name", "grader_role")
    if session_id:
        qs = qs.filter(session_id=session_id)
    rows = []
    for config in qs:
        for index, item in enumerate(config.criteria or []):
            rows.append(
                {
                    "config_id": config.pk,
                    "session_id": config.session_id,
                    "session_name": config.session.name,
                    "grader_role": config.grader_role,
                    "index": index,
                    **item,
                }
            )
    return rows


def _config(session, role: str) -> GradingCriterion:
    _check_role(role)
    config, _ = GradingCriterion.objects.get_or_create(
        session=session, grader_role=role, defaults={"criteria": []}
    )
    return config


def add_criterion(session, role: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    config = _config(session, role)
    items = list(config.criteria or [])
    items.append(_clean_criterion(data))
    config.criteria = items
    config.save(update_fields=["criteria", "updated_at"])
    return items


def update_criterion(session, role: str, index: int, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    config = _config(session, role)
    items = list(config.criteria or [])
    if not 0 <= index < len(items):
        raise GradingError("Criterion not found")
    items[index] = _clean_criterion({**items[index], **data})
    config.criteria = items
    config.save(update_fields=["criteria", "updated_at"])
    return items


def delete_criterion(session, role: str, index: int) -> List[Dict[str, Any]]:
    config = _config(session, role)
    items = list(config.criteria or [])
    if not 0 <= index < len(items):
        raise GradingError("Criterion not found")
    items.pop(index)
    config.criteria = items
    config.save(update_fields=["criteria", "updated_at"])
    return items


def copy_criteria(from_session, to_session) -> int:
    source = list(GradingCriterion.objects.filter(session=from_session))
    if not any(row.criteria for row in source):
        raise GradingError("The source session has no criteria to copy")
    with transaction.atomic():
        for row in source:
            GradingCriterion.objects.update_or_create(
                session=to_session,
                grader_role=row.grader_role,
                defaults={"criteria": copy.deepcopy(row.criteria)},
            )
    logger.info("Copied grading criteria from session %s to %s", from_session.pk, to_session.pk)
    return len(source)


def _criterion_lookup(session, role: str) -> Dict[str, Dict[str, Any]]:
    return {c["name"]: c for c in criteria_by_session(session).get(role, [])}


# Grades


def _ensure_can_grade(topic: Topic, teacher, role: str) -> None:
    _check_role(role)
    if topic.status not in GRADABLE_STATUSES:
        raise GradingError("This topic cannot be graded yet")
    if role == ROLE_ADVISOR and topic.advisor_id != teacher.pk:
        raise GradingError("You are not the advisor of this topic")
    if role == ROLE_REVIEWER:
        course_class = topic.course_class
        if not course_class or course_class.reviewer_id != teacher.pk:
            raise GradingError("You are not the reviewer of this topic")


def _parse_score(value, max_score) -> Decimal:
    try:
        score = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise GradingError("Score must be a number")
    if not score.is_finite():
        raise GradingError("Score must be a number")
    if score < 0 or score > Decimal(str(max_score)):
        raise GradingError(f"Score must be between 0 and {max_score}")
    return score


def save_grade(topic: Topic, teacher, role: str, criterion_name: str, score, notes: str = "") -> TopicGrade:
    _ensure_can_grade(topic, teacher, role)
    criteria = _criterion_lookup(topic.session, role)
    criterion = criteria.get(criterion_name)
    if criterion is None:
        raise GradingError(f"Unknown criterion: {criterion_name}")
    existing = TopicGrade.objects.filter(
        topic=topic, criterion_name=criterion_name, graded_by=teacher
    ).first()
    if existing and existing.is_final:
        raise GradingError("Grades were already submitted and cannot be changed")
    grade, _ = TopicGrade.objects.update_or_create(
        topic=topic,
        criterion_name=criterion_name,
        graded_by=teacher,
        defaults={
            "score": _parse_score(score, criterion.get("max_score", DEFAULT_MAX_SCORE)),
            "notes": (notes or "").strip(),
            "grader_role": role,
        },
    )
    return grade


def save_grades(topic: Topic, teacher, role: str, items: List[Dict[str, Any]]) -> List[TopicGrade]:
    with transaction.atomic():
        return [
            save_grade(
                topic,
                teacher,
                role,
                item.get("criterion_name"),
                item.get("score"),
                item.get("notes", ""),
            )
            for item in items
        ]


def submit_grades(topic: Topic, teacher, role: str, now=None) -> int:
    _ensure_can_grade(topic, teacher, role)
    updated = TopicGrade.objects.filter(
        topic=topic, graded_by=teacher, grader_role=role, is_final=False
    ).update(is_final=True, finalized_at=now or timezone.now())
    if not updated:
        raise GradingError("There are no draft grades to submit")
    logger.info("Teacher %s finalized %s grades on topic %s", teacher.pk, updated, topic.pk)
    return updated


def topic_grades(topic: Topic, grader=None):
    qs = TopicGrade.objects.filter(topic=topic)
    if grader is not None:
        qs = qs.filter(graded_by=grader)
    return qs.order_by("graded_at", "id")


def gradable_topics(teacher, role: str = ROLE_ADVISOR, class_id=None) -> List[Dict[str, Any]]:
    _check_role(role)
    qs = Topic.objects.select_related("student", "course_class", "session").filter(
        status__in=GRADABLE_STATUSES
    )
    if role == ROLE_ADVISOR:
        qs = qs.filter(advisor=teacher)
    elif role == ROLE_REVIEWER:
        qs = qs.filter(course_class__reviewer=teacher)
    if class_id:
        qs = qs.filter(course_class_id=class_id)
    graded_counts: Dict[int, int] = {}
    for topic_id in TopicGrade.objects.filter(
        topic__in=qs, graded_by=teacher, grader_role=role
    ).values_list("topic_id", flat=True):
        graded_counts[topic_id] = graded_counts.get(topic_id, 0) + 1
    criteria_cache: Dict[int, int] = {}
    rows = []
    for topic in qs.order_by("-updated_at"):
        if topic.session_id not in criteria_cache:
            criteria_cache[topic.session_id] = len(criteria_by_session(topic.session)[role])
        total = criteria_cache[topic.session_id]
        graded = graded_counts.get(topic.pk, 0)
        rows.append(
            {
                "topic": topic,
                "grading_status": {
                    "total": total,
                    "graded": graded,
                    "is_complete": total > 0 and graded >= total,
                    "percentage": int(math.floor(graded * 100 / total + 0.5)) if total else 0,
                },
            }
        )
    return rows


def grade_summary(topic: Topic) -> Dict[str, Any]:
    grades = list(topic_grades(topic))
    by_role = {role: [] for role in ROLES}
    for grade in grades:
        by_role.setdefault(grade.grader_role, []).append(grade)
    return {"grades": grades, "by_role": by_role}


def weighted_total(topic: Topic, role: str = ROLE_ADVISOR) -> Optional[float]:
    """Weighted score of one role on a 10-point scale, or None if nothing is graded."""
    criteria = _criterion_lookup(topic.session, role)
    grades = TopicGrade.objects.filter(topic=topic, grader_role=role)
    total = 0.0
    weight_sum = 0.0
    for grade in grades:
        criterion = criteria.get(grade.criterion_name)
        if not criterion:
            continue
        max_score = float(criterion.get("max_score") or DEFAULT_MAX_SCORE)
        weight = float(criterion.get("weight") or 0)
        total += float(grade.score) / max_score * 10 * weight
        weight_sum += weight
    if weight_sum == 0:
        return None
    return round(total / weight_sum, 2)


def student_grade_summary(topic: Optional[Topic]) -> Optional[Dict[str, Any]]:
    """Summary over finalized grades only, which is all a student may see."""
    if topic is None:
        return None
    grades = list(TopicGrade.objects.filter(topic=topic, is_final=True).order_by("graded_at"))
    if not grades:
        return {
            "has_grades": False,
            "total_score": None,
            "max_possible": None,
            "average_score": None,
            "grades": [],
            "graded_at": None,
        }
    lookups = {role: _criterion_lookup(topic.session, role) for role in ROLES}
    total = sum(float(g.score) for g in grades)
    max_possible = sum(
        float(lookups.get(g.grader_role, {}).get(g.criterion_name, {}).get("max_score", DEFAULT_MAX_SCORE))
        for g in grades
    )
    latest = max(grades, key=lambda g: g.graded_at)
    return {
        "has_grades": True,
        "total_score": total,
        "max_possible": max_possible,
        "average_score": round(total / len(grades), 2),
        "grades": [serialize_grade(g) for g in grades],
        "graded_at": latest.graded_at.isoformat(),
    }


def serialize_grade(grade: TopicGrade) -> Dict[str, Any]:
    return {
        "id": grade.pk,
        "topic_id": grade.topic_id,
        "criterion_name": grade.criterion_name,
        "score": float(grade.score),
        "notes": grade.notes,
        "grader_role": grade.grader_role,
        "graded_by": grade.graded_by_id,
        "is_final": grade.is_final,
        "finalized_at": grade.finalized_at.isoformat() if grade.finalized_at else None,
        "graded_at": grade.graded_at.isoformat(),
    }
