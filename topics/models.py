from django.conf import settings
from django.db import models
from django.db.models import Q


class SampleTopic(models.Model):
    DIFFICULTY_CHOICES = [("easy", "Easy"), ("medium", "Medium"), ("hard", "Hard")]

    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="sample_topics"
    )
    session = models.ForeignKey(
        "academics.Session", on_delete=models.CASCADE, related_name="sample_topics"
    )
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    requirements = models.JSONField(default=list, blank=True)
    technologies = models.JSONField(default=list, blank=True)
    difficulty = models.CharField(max_length=8, choices=DIFFICULTY_CHOICES, blank=True)
    max_students = models.PositiveIntegerField(default=1)
    current_students = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_students__lte=models.F("max_students")),
                name="sample_topic_capacity",
            ),
        ]

    def __str__(self):
        return self.title

    @property
    def is_full(self):
        return self.current_students >= self.max_students

    @property
    def slots_left(self):
        return max(0, self.max_students - self.current_students)


class Topic(models.Model):
    STATUS_PENDING = "pending"
    STATUS_REVISION = "revision"
    STATUS_APPROVED = "approved"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_SUBMITTED = "submitted"
    STATUS_DEFENDED = "defended"
    STATUS_COMPLETED = "completed"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_REVISION, "Needs revision"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_SUBMITTED, "Submitted"),
        (STATUS_DEFENDED, "Defended"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_REJECTED, "Rejected"),
    ]
    # lifecycle order, used for progress and "at least" comparisons
    STATUS_ORDER = [
        STATUS_PENDING,
        STATUS_REVISION,
        STATUS_APPROVED,
        STATUS_IN_PROGRESS,
        STATUS_SUBMITTED,
        STATUS_DEFENDED,
        STATUS_COMPLETED,
    ]
    EDITABLE_STATUSES = (STATUS_PENDING, STATUS_REVISION)
    ACTIVE_STATUSES = (STATUS_APPROVED, STATUS_IN_PROGRESS, STATUS_SUBMITTED)

    session = models.ForeignKey(
        "academics.Session", on_delete=models.CASCADE, related_name="topics"
    )
    course_class = models.ForeignKey(
        "academics.CourseClass",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="topics",
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="topics"
    )
    advisor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="advised_topics",
    )
    sample_topic = models.ForeignKey(
        SampleTopic,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registrations",
    )
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    technologies = models.JSONField(default=list, blank=True)
    repo_url = models.URLField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    revision_note = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["student"],
                condition=~Q(status="rejected"),
                name="one_live_topic_per_student",
            ),
        ]
        indexes = [models.Index(fields=["advisor", "status"], name="topic_advisor_status_idx")]

    def __str__(self):
        return self.title

    def status_rank(self):
        if self.status in self.STATUS_ORDER:
            return self.STATUS_ORDER.index(self.status)
        return -1
