import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("academics", "0001_initial"),
        ("topics", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="GradingCriterion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "grader_role",
                    models.CharField(
                        choices=[("advisor", "Advisor"), ("reviewer", "Reviewer"), ("council", "Council")],
                        max_length=16,
                    ),
                ),
                ("criteria", models.JSONField(blank=True, default=list)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="grading_criteria",
                        to="academics.session",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "grading criteria",
                "constraints": [
                    models.UniqueConstraint(fields=("session", "grader_role"), name="uniq_criteria_role")
                ],
            },
        ),
        migrations.CreateModel(
            name="TopicGrade",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("criterion_name", models.CharField(max_length=200)),
                ("score", models.DecimalField(decimal_places=2, max_digits=5)),
                ("notes", models.TextField(blank=True)),
                (
                    "grader_role",
                    models.CharField(
                        choices=[("advisor", "Advisor"), ("reviewer", "Reviewer"), ("council", "Council")],
                        max_length=16,
                    ),
                ),
                ("is_final", models.BooleanField(default=False)),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
                ("graded_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "graded_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="given_grades",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "topic",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="grades",
                        to="topics.topic",
                    ),
                ),
            ],
            options={
                "ordering": ["graded_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("topic", "criterion_name", "graded_by"), name="uniq_grade_per_grader"
                    )
                ],
            },
        ),
    ]
