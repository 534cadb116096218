from django.contrib import admin
from .models import LogbookEntry


@admin.register(LogbookEntry)
class LogbookEntryAdmin(admin.ModelAdmin):
    list_display = ("topic", "week_number", "status", "teacher_confirmed", "submitted_at", "reviewed_at")
    list_filter = ("status", "teacher_confirmed")
    search_fields = ("topic__title", "topic__student__email")
    raw_id_fields = ("topic",)
