from django.urls import path
from . import views

app_name = "accounts"

urlpatterns = [
    path("preferences/", views.preferences, name="preferences"),
    path("users/", views.user_list, name="user_list"),
    path("profile/", views.profile, name="profile"),
    path("users/create/", views.user_create, name="user_create"),
    path("users/stats/", views.user_stats, name="user_stats"),
    path("users/departments/", views.department_list, name="departments"),
    path("users/<int:user_id>/", views.user_detail, name="user_detail"),
    path("users/<int:user_id>/toggle-active/", views.user_toggle_active, name="user_toggle_active"),
    path("users/<int:user_id>/role/", views.user_change_role, name="user_change_role"),
]
