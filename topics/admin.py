from django.contrib import admin
from .models import SampleTopic, Topic


@admin.register(Topic)
class TopicAdmin(admin.ModelAdmin):
    list_display = ("title", "student", "advisor", "session", "status", "approved_at", "updated_at")
    list_filter = ("status", "session")
    search_fields = ("title", "student__email", "student__full_name", "student__student_code")
    raw_id_fields = ("student", "advisor", "sample_topic", "course_class")


@admin.register(SampleTopic)
class SampleTopicAdmin(admin.ModelAdmin):
    list_display = ("title", "teacher", "session", "current_students", "max_students", "is_active")
    list_filter = ("is_active", "session", "difficulty")
    search_fields = ("title", "teacher__full_name")
