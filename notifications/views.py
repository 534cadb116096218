from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_POST

from . import services


@login_required
def notification_list(request):
    unread_only = request.GET.get("unread") in ("1", "true")
    items = services.notifications_for(request.user, unread_only=unread_only)
    return JsonResponse(
        {
            "notifications": [services.serialize_notification(n) for n in items],
            "unread": services.unread_count(request.user),
        }
    )


@login_required
@require_POST
def notification_read(request, notification_id):
    updated = services.mark_read(request.user, notification_id)
    return JsonResponse({"updated": updated})


@login_required
@require_POST
def notification_read_all(request):
    updated = services.mark_all_read(request.user)
    return JsonResponse({"updated": updated})
