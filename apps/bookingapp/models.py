# apps/bookingapp/models.py
import uuid

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Appointment(models.Model):
    """Persisted appointment; mirrors ``apps.bookingapp.domain.Appointment``"""

    STATUS_CHOICES = (
        ("pending", _("Pending")),
        ("confirmed", _("Confirmed")),
        ("cancelled", _("Cancelled")),
        ("completed", _("Completed")),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_id = models.CharField(_("Owner"), max_length=100, db_index=True)
    title = models.CharField(_("Title"), max_length=255, blank=True)
    description = models.TextField(_("Description"), blank=True)
    start_time = models.DateTimeField(_("Start Time"), db_index=True)
    end_time = models.DateTimeField(_("End Time"), db_index=True)
    status = models.CharField(
        _("Status"),
        max_length=20,
        choices=STATUS_CHOICES,
        default="pending",
        db_index=True,
    )
    resources = models.JSONField(_("Resources"), default=list, blank=True)
    participants = models.JSONField(_("Participants"), default=list, blank=True)
    required_participants = models.JSONField(
        _("Required Participants"), default=list, blank=True
    )
    reminder_specs = models.JSONField(_("Reminder Specs"), null=True, blank=True)
    conflict_resolution = models.JSONField(
        _("Conflict Resolution"), null=True, blank=True
    )
    cancellation_reason = models.TextField(_("Cancellation Reason"), blank=True)
    version = models.PositiveIntegerField(_("Version"), default=1)
    created_at = models.DateTimeField(_("Created At"), default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(_("Updated At"), default=timezone.now)

    class Meta:
        verbose_name = _("Appointment")
        verbose_name_plural = _("Appointments")
        ordering = ["start_time"]
        indexes = [
            models.Index(
                fields=["start_time", "end_time"], name="bookingapp__start_t_6b1d0e_idx"
            ),
            models.Index(
                fields=["owner_id", "start_time", "status"],
                name="bookingapp__owner_i_9c2f4a_idx",
            ),
        ]

    def __str__(self):
        return f"{self.owner_id} - {self.title} - {self.start_time.strftime('%Y-%m-%d %H:%M')}"


class AppointmentReminder(models.Model):
    """Scheduled reminders for appointments"""

    CHANNEL_CHOICES = (
        ("email", _("Email")),
        ("sms", _("SMS")),
        ("push", _("Push Notification")),
    )

    STATUS_CHOICES = (
        ("scheduled", _("Scheduled")),
        ("fired", _("Fired")),
        ("cancelled", _("Cancelled")),
        ("failed", _("Failed")),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.CASCADE,
        related_name="reminders",
        verbose_name=_("Appointment"),
    )
    channel = models.CharField(_("Channel"), max_length=20, choices=CHANNEL_CHOICES)
    fire_at = models.DateTimeField(_("Fire At"), db_index=True)
    appointment_version = models.PositiveIntegerField(
        _("Appointment Version"), null=True, blank=True
    )
    status = models.CharField(
        _("Status"), max_length=20, choices=STATUS_CHOICES, default="scheduled"
    )
    content = models.JSONField(_("Content"), default=dict, blank=True)
    fired_at = models.DateTimeField(_("Fired At"), null=True, blank=True)
    error = models.TextField(_("Error"), blank=True)

    class Meta:
        verbose_name = _("Appointment Reminder")
        verbose_name_plural = _("Appointment Reminders")
        ordering = ["fire_at"]
        indexes = [
            models.Index(
                fields=["status", "fire_at"], name="bookingapp__status_3e8a71_idx"
            ),
        ]

    def __str__(self):
        return f"{self.channel} reminder for {self.appointment_id} at {self.fire_at}"
