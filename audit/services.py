from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.paginator import Paginator
from django.db.models import Count, Q
from django.db.models.functions import TruncDate
from django.utils import timezone
from django.utils.dateparse import parse_date

from .models import AuthLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
EXPORT_LIMIT = 1000
PERIODS = {"today": 0, "7days": 7, "30days": 30}


def client_ip(request) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


def record(event_type, request=None, user=None, email="", status=AuthLog.STATUS_SUCCESS,
           error_message="", metadata=None) -> AuthLog:
    meta = dict(metadata or {})
    if user is not None and getattr(user, "role", None):
        meta.setdefault("role", user.role)
    return AuthLog.objects.create(
        user=user if getattr(user, "pk", None) else None,
        email=(email or getattr(user, "email", "") or "")[:254],
        event_type=event_type,
        status=status,
        error_message=error_message,
        metadata=meta,
        ip_address=client_ip(request),
        user_agent=(request.META.get("HTTP_USER_AGENT", "") if request is not None else "")[:1000],
    )


def _filtered(filters: Dict[str, Any]):
    qs = AuthLog.objects.select_related("user")
    if filters.get("user_id"):
        qs = qs.filter(user_id=filters["user_id"])
    if filters.get("event_type"):
        qs = qs.filter(event_type=filters["event_type"])
    if filters.get("status"):
        qs = qs.filter(status=filters["status"])
    if filters.get("role"):
        qs = qs.filter(Q(user__role=filters["role"]) | Q(metadata__role=filters["role"]))
    search = (filters.get("search") or "").strip()
    if search:
        qs = qs.filter(Q(email__icontains=search) | Q(user__full_name__icontains=search))
    start = parse_date(filters.get("date_from") or "")
    if start:
        qs = qs.filter(created_at__date__gte=start)
    end = parse_date(filters.get("date_to") or "")
    if end:
        qs = qs.filter(created_at__date__lte=end)
    return qs.order_by("-created_at")


def list_logs(filters: Optional[Dict[str, Any]] = None, page=1, page_size=DEFAULT_PAGE_SIZE):
    paginator = Paginator(_filtered(filters or {}), page_size)
    page_obj = paginator.get_page(page)
    return {
        "logs": list(page_obj.object_list),
        "total": paginator.count,
        "page": page_obj.number,
        "page_size": page_size,
        "total_pages": paginator.num_pages,
    }


def _period_start(period: str, now=None):
    now = now or timezone.now()
    days = PERIODS.get(period, PERIODS["7days"])
    midnight = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
    if days == 0:
        return midnight
    return midnight - timedelta(days=days - 1)


def stats(period: str = "7days", now=None) -> Dict[str, Any]:
    qs = AuthLog.objects.filter(created_at__gte=_period_start(period, now))
    counts = qs.aggregate(
        total=Count("id"),
        login_success=Count("id", filter=Q(event_type=AuthLog.EVENT_LOGIN_SUCCESS)),
        login_failed=Count("id", filter=Q(event_type=AuthLog.EVENT_LOGIN_FAILED)),
        logout=Count("id", filter=Q(event_type=AuthLog.EVENT_LOGOUT)),
        password_changed=Count("id", filter=Q(event_type=AuthLog.EVENT_PASSWORD_CHANGED)),
        password_reset=Count("id", filter=Q(event_type=AuthLog.EVENT_PASSWORD_RESET)),
        unique_users=Count("user", distinct=True),
    )
    daily = (
        qs.annotate(day=TruncDate("created_at"))
        .values("day")
        .annotate(
            success=Count("id", filter=Q(status=AuthLog.STATUS_SUCCESS)),
            failed=Count("id", filter=Q(status=AuthLog.STATUS_FAILED)),
        )
        .order_by("day")
    )
    counts["chart_data"] = [
        {"date": row["day"].isoformat(), "success": row["success"], "failed": row["failed"]}
        for row in daily
    ]
    counts["period"] = period if period in PERIODS else "7days"
    return counts


def suspicious_logins(threshold: Optional[int] = None, hours: Optional[int] = None, now=None) -> List[Dict[str, Any]]:
    """Emails with at least ``threshold`` failed logins inside the window."""
    threshold = threshold or settings.SUSPICIOUS_LOGIN_THRESHOLD
    hours = hours or settings.SUSPICIOUS_LOGIN_WINDOW_HOURS
    since = (now or timezone.now()) - timedelta(hours=hours)
    rows = (
        AuthLog.objects.filter(event_type=AuthLog.EVENT_LOGIN_FAILED, created_at__gte=since)
        .exclude(email="")
        .values("email")
        .annotate(attempts=Count("id"))
        .filter(attempts__gte=threshold)
        .order_by("-attempts", "email")
    )
    return [{"email": r["email"], "attempts": r["attempts"]} for r in rows]


def cleanup(days: Optional[int] = None, now=None) -> int:
    days = days or settings.AUTH_LOG_RETENTION_DAYS
    cutoff = (now or timezone.now()) - timedelta(days=days)
    deleted, _ = AuthLog.objects.filter(created_at__lt=cutoff).delete()
    logger.info("Deleted %s auth log rows older than %s days", deleted, days)
    return deleted


def export_logs(filters: Optional[Dict[str, Any]] = None) -> List[AuthLog]:
    return list(_filtered(filters or {})[:EXPORT_LIMIT])


def serialize_log(log: AuthLog) -> Dict[str, Any]:
    return {
        "id": log.pk,
        "created_at": log.created_at.isoformat(),
        "email": log.email,
        "user_id": log.user_id,
        "user_name": log.user.full_name if log.user_id else "",
        "role": log.metadata.get("role") or (log.user.role if log.user_id else ""),
        "event_type": log.event_type,
        "status": log.status,
        "error_message": log.error_message,
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
    }
