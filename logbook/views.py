from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_POST

from accounts.decorators import student_required, teacher_required
from accounts.http import json_error, request_payload
from topics.services import active_topic
from topics.models import Topic

from . import services
from .models import LogbookEntry


@student_required
def my_logbook(request):
    topic = active_topic(request.user)
    if topic is None or topic.status not in services.LOGGING_STATUSES:
        return JsonResponse({"topic_id": None, "entries": [], "current_week": None})
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        submit = str(data.get("submit", "")).lower() in ("1", "true", "yes")
        try:
            entry = services.create_entry(topic, request.user, data, submit=submit)
        except services.LogbookError as e:
            return json_error(e)
        return JsonResponse(services.serialize_entry(entry), status=201)
    return JsonResponse(
        {
            "topic_id": topic.pk,
            "current_week": services.calculate_week_number(topic.approved_at),
            "entries": [services.serialize_entry(e) for e in services.entries_for_topic(topic)],
            "stats": services.serialize_stats(services.logbook_stats(topic)),
        }
    )


@student_required
def entry_detail(request, entry_id):
    entry = get_object_or_404(
        LogbookEntry.objects.select_related("topic"), pk=entry_id, topic__student=request.user
    )
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        try:
            services.update_entry(entry, request.user, data)
        except services.LogbookError as e:
            return json_error(e)
    return JsonResponse(services.serialize_entry(entry))


@student_required
@require_POST
def entry_submit(request, entry_id):
    entry = get_object_or_404(
        LogbookEntry.objects.select_related("topic"), pk=entry_id, topic__student=request.user
    )
    try:
        services.submit_entry(entry, request.user)
    except services.LogbookError as e:
        return json_error(e)
    return JsonResponse(services.serialize_entry(entry))


@teacher_required
def teacher_overview(request):
    rows = services.topics_with_logbook(request.user)
    return JsonResponse(
        {
            "topics": [
                {
                    "topic_id": row["topic"].pk,
                    "title": row["topic"].title,
                    "status": row["topic"].status,
                    "student": row["topic"].student.display_name,
                    "student_code": row["topic"].student.student_code,
                    "stats": services.serialize_stats(row["stats"]),
                }
                for row in rows
            ]
        }
    )


@teacher_required
def teacher_topic(request, topic_id):
    topic = get_object_or_404(Topic, pk=topic_id, advisor=request.user)
    return JsonResponse(
        {
            "topic_id": topic.pk,
            "title": topic.title,
            "entries": [services.serialize_entry(e) for e in services.entries_for_topic(topic)],
            "stats": services.serialize_stats(services.logbook_stats(topic)),
        }
    )


def _review(request, entry_id, action):
    entry = get_object_or_404(LogbookEntry.objects.select_related("topic__student"), pk=entry_id)
    data = request_payload(request) or {}
    try:
        action(entry, data)
    except services.LogbookError as e:
        return json_error(e)
    return JsonResponse(services.serialize_entry(entry))


@teacher_required
@require_POST
def entry_approve(request, entry_id):
    return _review(
        request, entry_id, lambda e, d: services.approve_entry(e, request.user, d.get("note", ""))
    )


@teacher_required
@require_POST
def entry_revise(request, entry_id):
    return _review(
        request, entry_id, lambda e, d: services.request_revision(e, request.user, d.get("note"))
    )


@teacher_required
@require_POST
def entry_note(request, entry_id):
    return _review(
        request, entry_id, lambda e, d: services.add_note(e, request.user, d.get("note"))
    )


@teacher_required
@require_POST
def entry_confirm(request, entry_id):
    return _review(
        request,
        entry_id,
        lambda e, d: services.confirm_meeting(e, request.user, d.get("meeting_date")),
    )


@teacher_required
@require_POST
def entry_unconfirm(request, entry_id):
    return _review(request, entry_id, lambda e, d: services.unconfirm_meeting(e, request.user))
