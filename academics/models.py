from django.conf import settings
from django.db import models
from django.utils import timezone


class Session(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_OPEN = "open"
    STATUS_CLOSED = "closed"
    STATUS_ARCHIVED = "archived"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_OPEN, "Open"),
        (STATUS_CLOSED, "Closed"),
        (STATUS_ARCHIVED, "Archived"),
    ]
    TYPE_CHOICES = [
        ("thesis", "Thesis"),
        ("internship", "Internship"),
        ("project", "Project"),
    ]

    name = models.CharField(max_length=200)
    academic_year = models.CharField(max_length=16)
    semester = models.PositiveSmallIntegerField(default=1)
    session_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default="thesis")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    registration_start = models.DateTimeField(null=True, blank=True)
    registration_end = models.DateTimeField(null=True, blank=True)
    report1_deadline = models.DateTimeField(null=True, blank=True)
    report2_deadline = models.DateTimeField(null=True, blank=True)
    final_deadline = models.DateTimeField(null=True, blank=True)
    defense_start = models.DateTimeField(null=True, blank=True)
    defense_end = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.name


class CourseClass(models.Model):
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name="classes")
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    advisor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="advised_classes",
    )
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_classes",
    )
    max_students = models.PositiveIntegerField(default=30)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        verbose_name_plural = "course classes"
        constraints = [
            models.UniqueConstraint(fields=["session", "code"], name="uniq_class_code_per_session"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"


class ClassStudent(models.Model):
    course_class = models.ForeignKey(CourseClass, on_delete=models.CASCADE, related_name="memberships")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="class_memberships",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["course_class", "student"], name="uniq_class_student"),
        ]
