from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_POST

from accounts.decorators import admin_required
from accounts.http import int_param, json_error, request_payload

from . import services
from .forms import CourseClassForm, SessionForm, bound_form
from .models import CourseClass, Session


def _form_errors(form):
    return JsonResponse({"errors": form.errors}, status=400)


@admin_required
def session_list(request):
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        form = SessionForm(data)
        if not form.is_valid():
            return _form_errors(form)
        session = form.save(commit=False)
        session.created_by = request.user
        session.save()
        return JsonResponse(services.serialize_session(session), status=201)
    filters = {
        key: request.GET.get(key)
        for key in ("status", "academic_year", "session_type", "search")
    }
    sessions = services.list_sessions(filters)
    return JsonResponse(
        {"sessions": [services.serialize_session(s, with_classes=True) for s in sessions]}
    )


@admin_required
def session_detail(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        form = bound_form(SessionForm, data, instance=session)
        if not form.is_valid():
            return _form_errors(form)
        session = form.save()
    return JsonResponse(services.serialize_session(session, with_classes=True))


@admin_required
@require_POST
def session_delete(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    session.delete()
    return JsonResponse({"deleted": True})


@admin_required
def session_stats(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    return JsonResponse(services.session_stats(session))


@admin_required
@require_POST
def session_duplicate(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    copy = services.duplicate_session(session, user=request.user)
    return JsonResponse(services.serialize_session(copy), status=201)


@login_required
def session_deadlines(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    items = services.upcoming_deadlines(session)
    for item in items:
        item["date"] = item["date"].isoformat()
    return JsonResponse({"deadlines": items})


@admin_required
def class_list(request):
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        form = CourseClassForm(data)
        if not form.is_valid():
            return _form_errors(form)
        course_class = form.save()
        return JsonResponse(services.serialize_class(course_class), status=201)
    classes = services.list_classes(
        session_id=int_param(request.GET.get("session_id")),
        search=(request.GET.get("search") or "").strip(),
    )
    return JsonResponse({"classes": [services.serialize_class(c) for c in classes]})


@admin_required
def class_detail(request, class_id):
    course_class = get_object_or_404(CourseClass, pk=class_id)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        form = bound_form(CourseClassForm, data, instance=course_class)
        if not form.is_valid():
            return _form_errors(form)
        course_class = form.save()
    return JsonResponse(services.class_detail(course_class))


@admin_required
@require_POST
def class_delete(request, class_id):
    get_object_or_404(CourseClass, pk=class_id).delete()
    return JsonResponse({"deleted": True})


@admin_required
@require_POST
def class_assign(request, class_id):
    User = get_user_model()
    course_class = get_object_or_404(CourseClass, pk=class_id)
    data = request_payload(request) or {}
    advisor = get_object_or_404(User, pk=int_param(data.get("advisor_id")))
    reviewer = None
    if data.get("reviewer_id"):
        reviewer = get_object_or_404(User, pk=int_param(data.get("reviewer_id")))
    try:
        services.assign_advisor(course_class, advisor, reviewer)
    except services.AcademicsError as e:
        return json_error(e)
    return JsonResponse(services.serialize_class(course_class))


@admin_required
@require_POST
def class_add_student(request, class_id):
    User = get_user_model()
    course_class = get_object_or_404(CourseClass, pk=class_id)
    data = request_payload(request) or {}
    student = get_object_or_404(User, pk=int_param(data.get("student_id")))
    try:
        services.add_student(course_class, student)
    except services.AcademicsError as e:
        return json_error(e)
    return JsonResponse(services.class_detail(course_class))


@admin_required
@require_POST
def class_remove_student(request, class_id, student_id):
    User = get_user_model()
    course_class = get_object_or_404(CourseClass, pk=class_id)
    student = get_object_or_404(User, pk=student_id)
    try:
        services.remove_student(course_class, student)
    except services.AcademicsError as e:
        return json_error(e)
    return JsonResponse(services.class_detail(course_class))


@admin_required
@require_POST
def class_import(request, class_id):
    course_class = get_object_or_404(CourseClass, pk=class_id)
    data = request_payload(request) or {}
    raw_ids = data.get("student_ids")
    if not isinstance(raw_ids, list):
        return json_error("student_ids must be a list")
    ids = [i for i in (int_param(v) for v in raw_ids) if i is not None]
    added = services.import_students(course_class, ids)
    return JsonResponse({"added": added})


@admin_required
def available_students(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    students = services.available_students(session, (request.GET.get("search") or "").strip())
    return JsonResponse(
        {
            "students": [
                {
                    "id": s.pk,
                    "full_name": s.full_name,
                    "student_code": s.student_code,
                    "email": s.email,
                }
                for s in students
            ]
        }
    )
