from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_POST

from accounts.decorators import admin_required
from accounts.http import int_param, request_payload
from dashboards.excel import xlsx_response

from . import services

FILTER_KEYS = ("user_id", "event_type", "status", "role", "search", "date_from", "date_to")
EXPORT_COLUMNS = ["Time", "Email", "Name", "Role", "Event", "Status", "Error", "IP address", "User agent"]


def _filters(request):
    return {key: request.GET.get(key) for key in FILTER_KEYS}


@admin_required
def log_list(request):
    result = services.list_logs(
        _filters(request),
        page=int_param(request.GET.get("page"), 1),
        page_size=int_param(request.GET.get("page_size"), services.DEFAULT_PAGE_SIZE),
    )
    result["logs"] = [services.serialize_log(log) for log in result["logs"]]
    return JsonResponse(result)


@admin_required
def log_stats(request):
    return JsonResponse(services.stats(request.GET.get("period") or "7days"))


@admin_required
def log_alerts(request):
    return JsonResponse({"alerts": services.suspicious_logins()})


@admin_required
@require_POST
def log_cleanup(request):
    data = request_payload(request) or {}
    deleted = services.cleanup(int_param(data.get("days")))
    return JsonResponse({"deleted": deleted})


@admin_required
def log_export(request):
    rows = []
    for log in services.export_logs(_filters(request)):
        item = services.serialize_log(log)
        rows.append(
            {
                "Time": timezone.localtime(log.created_at).strftime("%Y-%m-%d %H:%M:%S"),
                "Email": item["email"],
                "Name": item["user_name"],
                "Role": item["role"],
                "Event": log.get_event_type_display(),
                "Status": log.get_status_display(),
                "Error": item["error_message"],
                "IP address": item["ip_address"] or "",
                "User agent": item["user_agent"],
            }
        )
    stamp = timezone.localtime(timezone.now()).strftime("%Y%m%d")
    return xlsx_response(f"auth_logs_{stamp}.xlsx", [("Auth logs", rows, EXPORT_COLUMNS)])
