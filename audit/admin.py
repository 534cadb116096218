from django.contrib import admin
from .models import AuthLog


@admin.register(AuthLog)
class AuthLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "email", "event_type", "status", "ip_address")
    list_filter = ("event_type", "status")
    search_fields = ("email", "user__full_name", "ip_address")
    readonly_fields = [f.name for f in AuthLog._meta.fields]
