from django.db import models


class LogbookEntry(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_NEEDS_REVISION = "needs_revision"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PENDING, "Pending review"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_NEEDS_REVISION, "Needs revision"),
    ]

    topic = models.ForeignKey("topics.Topic", on_delete=models.CASCADE, related_name="logbook_entries")
    week_number = models.PositiveIntegerField()
    meeting_date = models.DateTimeField(null=True, blank=True)
    content = models.TextField(blank=True)
    completed_tasks = models.JSONField(default=list, blank=True)
    in_progress_tasks = models.JSONField(default=list, blank=True)
    planned_tasks = models.JSONField(default=list, blank=True)
    issues = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    teacher_note = models.TextField(blank=True)
    teacher_confirmed = models.BooleanField(default=False)
    submitted_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-week_number"]
        verbose_name_plural = "logbook entries"
        constraints = [
            models.UniqueConstraint(fields=["topic", "week_number"], name="uniq_logbook_week"),
        ]

    def __str__(self):
        return f"Week {self.week_number} of topic {self.topic_id}"

    @property
    def is_locked(self):
        return self.teacher_confirmed or self.status == self.STATUS_APPROVED
