from django.conf import settings
from django.db import models

ROLE_ADVISOR = "advisor"
ROLE_REVIEWER = "reviewer"
ROLE_COUNCIL = "council"
GRADER_ROLE_CHOICES = [
    (ROLE_ADVISOR, "Advisor"),
    (ROLE_REVIEWER, "Reviewer"),
    (ROLE_COUNCIL, "Council"),
]


class GradingCriterion(models.Model):
    """All criteria of one grader role in one session, as a JSON list of
    ``{name, weight, max_score, description}`` items."""

    session = models.ForeignKey(
        "academics.Session", on_delete=models.CASCADE, related_name="grading_criteria"
    )
    grader_role = models.CharField(max_length=16, choices=GRADER_ROLE_CHOICES)
    criteria = models.JSONField(default=list, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "grading criteria"
        constraints = [
            models.UniqueConstraint(fields=["session", "grader_role"], name="uniq_criteria_role"),
        ]

    def __str__(self):
        return f"{self.session} / {self.grader_role}"


class TopicGrade(models.Model):
    topic = models.ForeignKey("topics.Topic", on_delete=models.CASCADE, related_name="grades")
    criterion_name = models.CharField(max_length=200)
    score = models.DecimalField(max_digits=5, decimal_places=2)
    notes = models.TextField(blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="given_grades"
    )
    grader_role = models.CharField(max_length=16, choices=GRADER_ROLE_CHOICES)
    is_final = models.BooleanField(default=False)
    finalized_at = models.DateTimeField(null=True, blank=True)
    graded_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["graded_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["topic", "criterion_name", "graded_by"], name="uniq_grade_per_grader"
            ),
        ]
