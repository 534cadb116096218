import json

from django.http import JsonResponse


def request_payload(request):
    """Body of a POST as a dict, whether it was sent as JSON or as a form."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
    return request.POST.dict()


def json_error(message, status=400):
    return JsonResponse({"error": str(message)}, status=status)


def int_param(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
