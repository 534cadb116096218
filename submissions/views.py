from django.contrib.auth.decorators import login_required
from django.core.files.storage import default_storage
from django.http import FileResponse, Http404, HttpResponseBadRequest, HttpResponseForbidden, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from accounts.decorators import student_required, teacher_required
from accounts.http import json_error
from topics.models import Topic

from . import services


@student_required
def my_reports(request, topic_id):
    topic = get_object_or_404(Topic, pk=topic_id, student=request.user)
    phase = request.GET.get("phase") or None
    return JsonResponse(
        {
            "reports": [services.serialize_report(r) for r in services.reports_for_topic(topic, phase)],
            "status": services.submission_status(topic),
        }
    )


@student_required
@require_POST
def upload_report(request, topic_id):
    topic = get_object_or_404(Topic.objects.select_related("session"), pk=topic_id)
    uploaded = request.FILES.get("file")
    if uploaded is None:
        return json_error("A file is required")
    try:
        report = services.upload(
            topic,
            request.user,
            request.POST.get("phase", ""),
            uploaded,
            note=request.POST.get("note", ""),
        )
    except services.SubmissionError as e:
        return json_error(e)
    return JsonResponse(services.serialize_report(report), status=201)


@login_required
@require_GET
def download(request):
    token = request.GET.get("t")
    if not token:
        return HttpResponseBadRequest("missing token")
    report = services.report_from_token(token)
    if report is None:
        return HttpResponseBadRequest("invalid or expired link")
    if not services.can_view(request.user, report):
        return HttpResponseForbidden("Not authorized")
    try:
        handle = default_storage.open(report.file_path, "rb")
    except FileNotFoundError:
        raise Http404("File no longer exists")
    return FileResponse(handle, as_attachment=True, filename=report.file_name)


@teacher_required
def teacher_list(request):
    rows = services.reports_for_teacher(request.user)
    return JsonResponse(
        {
            "topics": [
                {
                    "topic_id": row["topic"].pk,
                    "title": row["topic"].title,
                    "status": row["topic"].status,
                    "student": row["topic"].student.display_name,
                    "student_code": row["topic"].student.student_code,
                    "reports": [services.serialize_report(r) for r in row["reports"]],
                }
                for row in rows
            ]
        }
    )
