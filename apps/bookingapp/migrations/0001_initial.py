import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Appointment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "owner_id",
                    models.CharField(db_index=True, max_length=100, verbose_name="Owner"),
                ),
                ("title", models.CharField(blank=True, max_length=255, verbose_name="Title")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("start_time", models.DateTimeField(db_index=True, verbose_name="Start Time")),
                ("end_time", models.DateTimeField(db_index=True, verbose_name="End Time")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                            ("completed", "Completed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                ("resources", models.JSONField(blank=True, default=list, verbose_name="Resources")),
                (
                    "participants",
                    models.JSONField(blank=True, default=list, verbose_name="Participants"),
                ),
                (
                    "required_participants",
                    models.JSONField(
                        blank=True, default=list, verbose_name="Required Participants"
                    ),
                ),
                (
                    "reminder_specs",
                    models.JSONField(blank=True, null=True, verbose_name="Reminder Specs"),
                ),
                (
                    "conflict_resolution",
                    models.JSONField(blank=True, null=True, verbose_name="Conflict Resolution"),
                ),
                (
                    "cancellation_reason",
                    models.TextField(blank=True, verbose_name="Cancellation Reason"),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="Version")),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        verbose_name="Created At",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="Updated At"
                    ),
                ),
            ],
            options={
                "verbose_name": "Appointment",
                "verbose_name_plural": "Appointments",
                "ordering": ["start_time"],
                "indexes": [
                    models.Index(
                        fields=["start_time", "end_time"],
                        name="bookingapp__start_t_6b1d0e_idx",
                    ),
                    models.Index(
                        fields=["owner_id", "start_time", "status"],
                        name="bookingapp__owner_i_9c2f4a_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AppointmentReminder",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("email", "Email"),
                            ("sms", "SMS"),
                            ("push", "Push Notification"),
                        ],
                        max_length=20,
                        verbose_name="Channel",
                    ),
                ),
                ("fire_at", models.DateTimeField(db_index=True, verbose_name="Fire At")),
                (
                    "appointment_version",
                    models.PositiveIntegerField(
                        blank=True, null=True, verbose_name="Appointment Version"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("scheduled", "Scheduled"),
                            ("fired", "Fired"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        default="scheduled",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                ("content", models.JSONField(blank=True, default=dict, verbose_name="Content")),
                ("fired_at", models.DateTimeField(blank=True, null=True, verbose_name="Fired At")),
                ("error", models.TextField(blank=True, verbose_name="Error")),
                (
                    "appointment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reminders",
                        to="bookingapp.appointment",
                        verbose_name="Appointment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Appointment Reminder",
                "verbose_name_plural": "Appointment Reminders",
                "ordering": ["fire_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "fire_at"],
                        name="bookingapp__status_3e8a71_idx",
                    ),
                ],
            },
        ),
    ]
