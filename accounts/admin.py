from django.contrib import admin
from .models import User, UserPreference


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "email", "full_name", "role", "student_code", "teacher_code", "is_active")
    list_filter = ("role", "is_active", "department")
    search_fields = ("email", "full_name", "student_code", "teacher_code")


@admin.register(UserPreference)
class UserPreferenceAdmin(admin.ModelAdmin):
    list_display = ("user", "theme", "selected_session", "sidebar_collapsed", "email_notifications")
