from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_POST

from academics.models import Session
from academics.services import class_for_student, is_registration_open
from accounts.decorators import student_required, teacher_required
from accounts.http import int_param, json_error, request_payload

from . import services
from .models import SampleTopic, Topic


@student_required
def my_topic(request):
    topic = services.latest_topic(request.user)
    course_class = class_for_student(request.user)
    session = course_class.session if course_class else None
    return JsonResponse(
        {
            "topic": services.serialize_topic(topic) if topic else None,
            "has_registered": services.has_registered(request.user),
            "registration_open": is_registration_open(session),
            "class_id": course_class.pk if course_class else None,
        }
    )


@student_required
def available_samples(request):
    course_class = class_for_student(request.user)
    if course_class is None:
        return JsonResponse({"samples": []})
    available_only = request.GET.get("available") in ("1", "true")
    samples = services.samples_for_session(course_class.session, available_only=available_only)
    return JsonResponse({"samples": [services.serialize_sample(s) for s in samples]})


@student_required
@require_POST
def register_sample(request, sample_id):
    try:
        topic = services.register_from_sample(request.user, sample_id)
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse(services.serialize_topic(topic), status=201)


@student_required
@require_POST
def propose_topic(request):
    data = request_payload(request)
    if data is None:
        return json_error("Invalid body")
    try:
        topic = services.propose(
            request.user,
            data.get("title"),
            data.get("description", ""),
            data.get("technologies"),
        )
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse(services.serialize_topic(topic), status=201)


@student_required
@require_POST
def update_topic(request, topic_id):
    topic = get_object_or_404(Topic, pk=topic_id, student=request.user)
    data = request_payload(request)
    if data is None:
        return json_error("Invalid body")
    try:
        services.update_topic(topic, request.user, data)
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse(services.serialize_topic(topic))


@student_required
@require_POST
def update_repo(request, topic_id):
    topic = get_object_or_404(Topic, pk=topic_id, student=request.user)
    data = request_payload(request) or {}
    try:
        services.update_repo_url(topic, request.user, data.get("repo_url", ""))
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse(services.serialize_topic(topic))


@teacher_required
def teacher_pending(request):
    topics = services.pending_for_teacher(request.user)
    return JsonResponse({"topics": [services.serialize_topic(t) for t in topics]})


@teacher_required
def teacher_topics(request):
    topics = services.topics_for_teacher(request.user, request.GET.get("status") or None)
    return JsonResponse(
        {
            "topics": [services.serialize_topic(t) for t in topics],
            "stats": services.topic_stats(teacher=request.user),
        }
    )


def _teacher_action(request, topic_id, action):
    topic = get_object_or_404(Topic, pk=topic_id)
    data = request_payload(request) or {}
    try:
        action(topic, data)
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse(services.serialize_topic(topic))


@teacher_required
@require_POST
def approve_topic(request, topic_id):
    return _teacher_action(
        request, topic_id, lambda t, d: services.approve(t, request.user)
    )


@teacher_required
@require_POST
def revise_topic(request, topic_id):
    return _teacher_action(
        request, topic_id, lambda t, d: services.request_revision(t, request.user, d.get("note"))
    )


@teacher_required
@require_POST
def reject_topic(request, topic_id):
    return _teacher_action(
        request, topic_id, lambda t, d: services.reject(t, request.user, d.get("reason"))
    )


@teacher_required
@require_POST
def topic_status(request, topic_id):
    return _teacher_action(
        request, topic_id, lambda t, d: services.set_status(t, request.user, d.get("status"))
    )


@teacher_required
@require_POST
def bulk_approve(request):
    data = request_payload(request) or {}
    raw = data.get("topic_ids") or []
    if not isinstance(raw, list):
        return json_error("topic_ids must be a list")
    ids = [i for i in (int_param(v) for v in raw) if i is not None]
    try:
        approved = services.bulk_approve(request.user, ids)
    except services.TopicError as e:
        return json_error(e)
    return JsonResponse({"approved": approved})


@teacher_required
def sample_list(request):
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        session = get_object_or_404(Session, pk=int_param(data.get("session_id")))
        try:
            sample = services.create_sample(request.user, session, data)
        except services.TopicError as e:
            return json_error(e)
        return JsonResponse(services.serialize_sample(sample), status=201)
    samples = services.samples_for_teacher(request.user)
    return JsonResponse({"samples": [services.serialize_sample(s) for s in samples]})


@teacher_required
def sample_detail(request, sample_id):
    sample = get_object_or_404(SampleTopic, pk=sample_id, teacher=request.user)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        try:
            services.update_sample(sample, request.user, data)
        except services.TopicError as e:
            return json_error(e)
    return JsonResponse(services.serialize_sample(sample))


@teacher_required
@require_POST
def sample_delete(request, sample_id):
    sample = get_object_or_404(SampleTopic, pk=sample_id, teacher=request.user)
    services.delete_sample(sample, request.user)
    return JsonResponse({"deleted": True})


@teacher_required
@require_POST
def sample_toggle(request, sample_id):
    sample = get_object_or_404(SampleTopic, pk=sample_id, teacher=request.user)
    services.toggle_sample(sample, request.user)
    return JsonResponse(services.serialize_sample(sample))
