from django.contrib import admin
from .models import ClassStudent, CourseClass, Session


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = ("name", "academic_year", "semester", "session_type", "status", "registration_end")
    list_filter = ("status", "session_type", "academic_year")
    search_fields = ("name",)


@admin.register(CourseClass)
class CourseClassAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "session", "advisor", "reviewer", "max_students")
    list_filter = ("session",)
    search_fields = ("code", "name")


@admin.register(ClassStudent)
class ClassStudentAdmin(admin.ModelAdmin):
    list_display = ("course_class", "student", "created_at")
    search_fields = ("student__email", "student__student_code")
