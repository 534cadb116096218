import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("topics", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LogbookEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("week_number", models.PositiveIntegerField()),
                ("meeting_date", models.DateTimeField(blank=True, null=True)),
                ("content", models.TextField(blank=True)),
                ("completed_tasks", models.JSONField(blank=True, default=list)),
                ("in_progress_tasks", models.JSONField(blank=True, default=list)),
                ("planned_tasks", models.JSONField(blank=True, default=list)),
                ("issues", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("pending", "Pending review"),
                            ("approved", "Approved"),
                            ("needs_revision", "Needs revision"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("teacher_note", models.TextField(blank=True)),
                ("teacher_confirmed", models.BooleanField(default=False)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "topic",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logbook_entries",
                        to="topics.topic",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "logbook entries",
                "ordering": ["-week_number"],
                "constraints": [
                    models.UniqueConstraint(fields=("topic", "week_number"), name="uniq_logbook_week")
                ],
            },
        ),
    ]
