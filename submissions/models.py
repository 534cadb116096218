from django.conf import settings
from django.db import models


class Report(models.Model):
    PHASE_REPORT1 = "report1"
    PHASE_REPORT2 = "report2"
    PHASE_FINAL = "final"
    PHASE_SLIDE = "slide"
    PHASE_SOURCE_CODE = "source_code"
    PHASE_CHOICES = [
        (PHASE_REPORT1, "Report 1"),
        (PHASE_REPORT2, "Report 2"),
        (PHASE_FINAL, "Final report"),
        (PHASE_SLIDE, "Slides"),
        (PHASE_SOURCE_CODE, "Source code"),
    ]

    topic = models.ForeignKey("topics.Topic", on_delete=models.CASCADE, related_name="reports")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reports"
    )
    phase = models.CharField(max_length=16, choices=PHASE_CHOICES)
    version = models.PositiveIntegerField()
    file_path = models.CharField(max_length=500)
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveBigIntegerField(default=0)
    note = models.TextField(blank=True)
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-submitted_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["topic", "phase", "version"], name="uniq_report_version"
            ),
        ]

    def __str__(self):
        return f"{self.topic_id}/{self.phase}/v{self.version}"
