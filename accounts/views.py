from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from . import services
from .decorators import admin_required
from .forms import PreferenceForm
from .http import int_param, json_error, request_payload
from .models import User, UserPreference

ROLE_HOME = {
    User.ROLE_ADMIN: "dashboards:admin",
    User.ROLE_TEACHER: "dashboards:teacher",
    User.ROLE_STUDENT: "students:dashboard",
}


def home(request):
    if request.user.is_authenticated:
        target = ROLE_HOME.get(request.user.role)
        if target:
            return redirect(target)
        return render(request, "home.html", {"active_nav": "dashboard"})
    return redirect("account_login")


@login_required
def preferences(request):
    pref, _ = UserPreference.objects.get_or_create(user=request.user)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        form = PreferenceForm(data)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)
        cleaned = form.cleaned_data
        fields = []
        if "theme" in data and cleaned.get("theme"):
            pref.theme = cleaned["theme"]
            fields.append("theme")
        if "selected_session_id" in data:
            pref.selected_session_id = cleaned.get("selected_session_id")
            fields.append("selected_session")
        if "sidebar_collapsed" in data:
            pref.sidebar_collapsed = _truthy(data["sidebar_collapsed"])
            fields.append("sidebar_collapsed")
        if "email_notifications" in data:
            pref.email_notifications = _truthy(data["email_notifications"])
            fields.append("email_notifications")
        if fields:
            pref.save(update_fields=fields + ["updated_at"])
    return JsonResponse(pref.as_dict())


@login_required
def profile(request):
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        try:
            services.update_profile(request.user, data)
        except services.UserAdminError as e:
            return json_error(e)
    return JsonResponse(services.serialize_user(request.user))


def _truthy(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@admin_required
def user_list(request):
    filters = {
        key: request.GET.get(key)
        for key in ("role", "is_active", "search", "department", "class_id")
    }
    result = services.list_users(
        filters,
        page=int_param(request.GET.get("page"), 1),
        page_size=int_param(request.GET.get("page_size"), services.DEFAULT_PAGE_SIZE),
    )
    result["users"] = [services.serialize_user(u) for u in result["users"]]
    return JsonResponse(result)


@admin_required
@require_POST
def user_create(request):
    data = request_payload(request)
    if data is None:
        return json_error("Invalid body")
    try:
        user = services.create_user(data)
    except services.UserAdminError as e:
        return json_error(e)
    return JsonResponse(services.serialize_user(user), status=201)


@admin_required
def user_detail(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    if request.method == "POST":
        data = request_payload(request)
        if data is None:
            return json_error("Invalid body")
        try:
            services.update_user(user, data)
        except services.UserAdminError as e:
            return json_error(e)
    return JsonResponse(services.serialize_user(user))


@admin_required
@require_POST
def user_toggle_active(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    if user.pk == request.user.pk:
        return json_error("You cannot deactivate your own account")
    services.toggle_active(user)
    return JsonResponse(services.serialize_user(user))


@admin_required
@require_POST
def user_change_role(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    data = request_payload(request) or {}
    try:
        services.change_role(user, data.get("role"))
    except services.UserAdminError as e:
        return json_error(e)
    return JsonResponse(services.serialize_user(user))


@admin_required
def user_stats(request):
    return JsonResponse(services.user_stats())


@admin_required
def department_list(request):
    return JsonResponse({"departments": services.departments()})
