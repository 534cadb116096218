from django.contrib import admin
from .models import GradingCriterion, TopicGrade


@admin.register(GradingCriterion)
class GradingCriterionAdmin(admin.ModelAdmin):
    list_display = ("session", "grader_role", "updated_at")
    list_filter = ("grader_role", "session")


@admin.register(TopicGrade)
class TopicGradeAdmin(admin.ModelAdmin):
    list_display = ("topic", "criterion_name", "score", "grader_role", "graded_by", "is_final")
    list_filter = ("grader_role", "is_final")
    search_fields = ("topic__title", "criterion_name", "graded_by__email")
    raw_id_fields = ("topic", "graded_by")
