import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Trip",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(blank=True, max_length=180)),
                ("source", models.CharField(max_length=160)),
                ("destination", models.CharField(max_length=160)),
                ("days", models.PositiveSmallIntegerField(default=1)),
                ("budget_min", models.PositiveIntegerField(blank=True, null=True)),
                ("budget_max", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "travel_styles",
                    models.JSONField(blank=True, default=list, help_text="Travel style tags (stored uppercase)."),
                ),
                ("itinerary", models.JSONField(blank=True, default=dict)),
                ("cost_breakdown", models.JSONField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("GENERATED", "Generated"),
                            ("SAVED", "Saved"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="GENERATED",
                        max_length=12,
                    ),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "author",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="trips",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["author", "status"], name="trip_author_status_idx"),
                    models.Index(fields=["author", "created_at"], name="trip_author_created_idx"),
                ],
            },
        ),
    ]
