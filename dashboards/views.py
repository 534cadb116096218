from django.http import JsonResponse
from django.shortcuts import get_object_or_404, render
from django.utils.text import slugify

from academics.models import CourseClass, Session
from academics.services import current_session, serialize_session, upcoming_deadlines
from accounts.decorators import admin_required, role_required, teacher_required
from accounts.http import int_param

from . import exports, services
from .excel import xlsx_response
from .pdf import class_pdf_response


def _session_param(request):
    sid = int_param(request.GET.get("session_id"))
    if sid is None:
        return None
    return get_object_or_404(Session, pk=sid)


def _deadlines(session):
    items = upcoming_deadlines(session)
    for item in items:
        item["date"] = item["date"].isoformat()
    return items


@admin_required
def admin_dashboard(request):
    session = _session_param(request) or current_session(request.user)
    ctx = {
        "active_nav": "dashboard",
        "session": session,
        "stats": services.admin_stats(session),
        "activities": services.recent_activities(),
        "sessions": services.active_sessions(),
        "deadlines": upcoming_deadlines(session),
    }
    return render(request, "dashboards/admin.html", ctx)


@admin_required
def admin_stats(request):
    session = _session_param(request)
    return JsonResponse(
        {
            "stats": services.admin_stats(session),
            "recent_activities": services.recent_activities(
                int_param(request.GET.get("limit"), 10)
            ),
            "active_sessions": [serialize_session(s) for s in services.active_sessions()],
            "upcoming_deadlines": _deadlines(session) if session else [],
        }
    )


@teacher_required
def teacher_dashboard(request):
    ctx = {
        "active_nav": "dashboard",
        "stats": services.teacher_stats(request.user),
        "todos": services.teacher_todos(request.user),
        "classes": services.teacher_classes(request.user),
        "guiding": services.guiding_students(request.user),
    }
    return render(request, "dashboards/teacher.html", ctx)


@teacher_required
def teacher_stats(request):
    return JsonResponse(
        {
            "stats": services.teacher_stats(request.user),
            "todos": services.teacher_todos(request.user),
            "classes": services.teacher_classes(request.user),
        }
    )


@role_required("teacher", "admin")
def class_students(request, class_id):
    course_class = get_object_or_404(CourseClass, pk=class_id)
    if request.user.role == "admin":
        teacher = course_class.advisor
        if teacher is None:
            return JsonResponse({"students": []})
    else:
        teacher = request.user
    try:
        rows = services.class_students(teacher, course_class)
    except services.DashboardError as e:
        return JsonResponse({"error": str(e)}, status=403)
    return JsonResponse({"students": rows})


def _session_label(session):
    return slugify(session.name) if session else "all"


@admin_required
def export_topics(request):
    session = _session_param(request)
    return xlsx_response(f"topics_{_session_label(session)}.xlsx", exports.topics_sheets(session))


@admin_required
def export_workload(request):
    session = _session_param(request)
    return xlsx_response(
        f"teacher_workload_{_session_label(session)}.xlsx", exports.workload_sheets(session)
    )


@role_required("teacher", "admin")
def export_grades(request, class_id):
    course_class = get_object_or_404(CourseClass.objects.select_related("session"), pk=class_id)
    if request.user.role == "teacher" and course_class.advisor_id != request.user.pk:
        return JsonResponse({"error": "Not authorized"}, status=403)
    return xlsx_response(f"grades_{slugify(course_class.code)}.xlsx", exports.grade_sheets(course_class))


@admin_required
def export_session_report(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    return xlsx_response(
        f"session_report_{_session_label(session)}.xlsx", exports.session_report_sheets(session)
    )


@role_required("teacher", "admin")
def export_class_pdf(request, class_id):
    course_class = get_object_or_404(
        CourseClass.objects.select_related("session", "advisor"), pk=class_id
    )
    if request.user.role == "teacher" and course_class.advisor_id != request.user.pk:
        return JsonResponse({"error": "Not authorized"}, status=403)
    return class_pdf_response(course_class)
