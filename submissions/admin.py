from django.contrib import admin
from .models import Report


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ("topic", "phase", "version", "file_name", "file_size", "submitted_at")
    list_filter = ("phase",)
    search_fields = ("topic__title", "student__email", "file_name")
    raw_id_fields = ("topic", "student")
