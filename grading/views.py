from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_POST

from academics.models import Session
from accounts.decorators import admin_required, student_required, teacher_required
from accounts.http import int_param, json_error, request_payload
from topics.models import Topic
from topics.services import active_topic

from . import services
from .models import ROLE_ADVISOR


@login_required
def session_criteria(request, session_id):
    session = get_object_or_404(Session, pk=session_id)
    return JsonResponse({"criteria": services.criteria_by_session(session)})


@admin_required
def criteria_list(request):
    rows = services.list_criteria(int_param(request.GET.get("session_id")))
    return JsonResponse({"criteria": rows})


def _criteria_action(request, action):
    data = request_payload(request)
    if data is None:
        return json_error("Invalid body")
    session = get_object_or_404(Session, pk=int_param(data.get("session_id")))
    try:
        items = action(session, data)
    except services.GradingError as e:
        return json_error(e)
    return JsonResponse({"criteria": items})


@admin_required
@require_POST
def criterion_add(request):
    return _criteria_action(
        request,
        lambda s, d: services.add_criterion(s, d.get("grader_role"), d.get("criterion") or {}),
    )


@admin_required
@require_POST
def criterion_update(request, index):
    return _criteria_action(
        request,
        lambda s, d: services.update_criterion(s, d.get("grader_role"), index, d.get("criterion") or {}),
    )


@admin_required
@require_POST
def criterion_delete(request, index):
    return _criteria_action(
        request, lambda s, d: services.delete_criterion(s, d.get("grader_role"), index)
    )


@admin_required
@require_POST
def criteria_copy(request):
    data = request_payload(request) or {}
    source = get_object_or_404(Session, pk=int_param(data.get("from_session_id")))
    target = get_object_or_404(Session, pk=int_param(data.get("to_session_id")))
    try:
        copied = services.copy_criteria(source, target)
    except services.GradingError as e:
        return json_error(e)
    return JsonResponse({"copied": copied})


@teacher_required
def gradable_topics(request):
    role = request.GET.get("role") or ROLE_ADVISOR
    try:
        rows = services.gradable_topics(request.user, role, int_param(request.GET.get("class_id")))
    except services.GradingError as e:
        return json_error(e)
    return JsonResponse(
        {
            "topics": [
                {
                    "topic_id": row["topic"].pk,
                    "title": row["topic"].title,
                    "status": row["topic"].status,
                    "student": row["topic"].student.display_name,
                    "student_code": row["topic"].student.student_code,
                    "class_id": row["topic"].course_class_id,
                    "grading_status": row["grading_status"],
                }
                for row in rows
            ]
        }
    )


@teacher_required
def topic_grades(request, topic_id):
    topic = get_object_or_404(Topic.objects.select_related("session", "course_class"), pk=topic_id)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        items = data.get("grades")
        if not isinstance(items, list) or not items:
            return json_error("grades must be a non-empty list")
        try:
            services.save_grades(topic, request.user, data.get("grader_role") or ROLE_ADVISOR, items)
        except services.GradingError as e:
            return json_error(e)
    summary = services.grade_summary(topic)
    mine = [g for g in summary["grades"] if g.graded_by_id == request.user.pk]
    return JsonResponse(
        {
            "criteria": services.criteria_by_session(topic.session),
            "grades": [services.serialize_grade(g) for g in mine],
            "by_role": {
                role: [services.serialize_grade(g) for g in grades]
                for role, grades in summary["by_role"].items()
            },
            "weighted_total": services.weighted_total(topic),
        }
    )


@teacher_required
@require_POST
def submit_grades(request, topic_id):
    topic = get_object_or_404(Topic.objects.select_related("course_class"), pk=topic_id)
    data = request_payload(request) or {}
    try:
        count = services.submit_grades(topic, request.user, data.get("grader_role") or ROLE_ADVISOR)
    except services.GradingError as e:
        return json_error(e)
    return JsonResponse({"finalized": count})


@student_required
def my_grades(request):
    topic = active_topic(request.user)
    return JsonResponse({"summary": services.student_grade_summary(topic)})
