"""
Bulk creation of student accounts for a class.

Accounts are created one at a time with a short pause between them. A
rate-limited creation is retried a bounded number of times; any other
failure is reported against its row and the batch carries on.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.utils.dateparse import parse_date

from academics.models import CourseClass
from academics.services import add_members

logger = logging.getLogger(__name__)

MISSING_FIELDS = "Missing required fields"


class ProvisioningError(Exception):
    pass


def student_email(student_code: str) -> str:
    return f"{student_code}@{settings.STUDENT_EMAIL_DOMAIN}".lower()


def is_rate_limited(exc: Exception) -> bool:
    message = str(exc).lower()
    return "rate" in message or "reset" in message


def _clean_gender(value) -> str:
    User = get_user_model()
    value = (value or "").strip().lower()
    return value if value in dict(User.GENDER_CHOICES) else ""


def _create_account(row: Dict[str, Any]):
    User = get_user_model()
    code = row["student_code"]
    birth_date = row.get("birth_date")
    if birth_date and not hasattr(birth_date, "year"):
        birth_date = parse_date(str(birth_date))
    with transaction.atomic():
        return User.objects.create_user(
            email=student_email(code),
            password=code,
            full_name=row["full_name"],
            student_code=code,
            phone=(row.get("phone") or "").strip(),
            class_name=(row.get("class_name") or "").strip(),
            birth_date=birth_date or None,
            gender=_clean_gender(row.get("gender")),
            role=User.ROLE_STUDENT,
            is_active=True,
        )


def _create_with_retry(row: Dict[str, Any]):
    attempts = max(1, settings.PROVISION_MAX_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            return _create_account(row)
        except (DatabaseError, ValueError) as exc:
            if attempt < attempts and is_rate_limited(exc):
                logger.warning(
                    "Rate limited creating %s (attempt %s/%s), retrying",
                    row["student_code"],
                    attempt,
                    attempts,
                )
                time.sleep(settings.PROVISION_RETRY_DELAY_SECONDS)
                continue
            raise


def provision_students(course_class: CourseClass, rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Create missing accounts and enrol every valid row in ``course_class``.

    Returns ``{"created", "skipped", "added_to_class", "errors"}`` where
    ``errors`` lists ``{"student_code", "error"}`` per failed row.
    """
    User = get_user_model()
    rows = [
        {
            **row,
            "student_code": str(row.get("student_code") or "").strip(),
            "full_name": str(row.get("full_name") or "").strip(),
        }
        for row in rows
    ]
    emails = [student_email(r["student_code"]) for r in rows if r["student_code"]]
    existing = {
        email.lower(): pk
        for pk, email in User.objects.filter(email__in=emails).values_list("pk", "email")
    }

    created = 0
    skipped = 0
    errors: List[Dict[str, str]] = []
    member_ids: List[int] = []
    delay = settings.PROVISION_ACCOUNT_DELAY_SECONDS

    for index, row in enumerate(rows):
        code = row["student_code"]
        if not code or not row["full_name"]:
            errors.append({"student_code": code or "unknown", "error": MISSING_FIELDS})
            continue
        email = student_email(code)
        if email in existing:
            skipped += 1
            member_ids.append(existing[email])
            continue
        try:
            user = _create_with_retry(row)
        except (DatabaseError, ValueError) as exc:
            if isinstance(exc, IntegrityError):
                message = "An account with this student code already exists"
            else:
                message = str(exc)
            logger.warning("Could not create account for %s: %s", code, exc)
            errors.append({"student_code": code, "error": message})
            continue
        created += 1
        existing[email] = user.pk
        member_ids.append(user.pk)
        if delay and index < len(rows) - 1:
            time.sleep(delay)

    added = 0
    if member_ids:
        add_members(course_class, member_ids)
        added = len(member_ids)
    logger.info(
        "Provisioned class %s: created=%s skipped=%s added=%s errors=%s",
        course_class.pk,
        created,
        skipped,
        added,
        len(errors),
    )
    return {"created": created, "skipped": skipped, "added_to_class": added, "errors": errors}
