from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import Establishment, Professional, Service


class Appointment(models.Model):  # Timed booking of a service with a professional
    STATUS_CHOICES = [
        ("booked", "Booked"),
        ("checked_in", "Checked In"),
        ("in_progress", "In Progress"),
        ("completed", "Completed"),
        ("no_show", "No Show"),
        ("cancelled", "Cancelled"),
    ]

    # Statuses that no longer hold a slot on the professional's calendar
    RELEASED_STATUSES = ("cancelled", "no_show")
    CANCELLABLE_STATUSES = ("booked", "checked_in")

    establishment = models.ForeignKey(
        Establishment, on_delete=models.PROTECT, related_name="appointments"
    )
    professional = models.ForeignKey(
        Professional, on_delete=models.PROTECT, related_name="appointments"
    )
    service = models.ForeignKey(
        Service, on_delete=models.PROTECT, related_name="appointments"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="appointments",
    )

    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="booked")
    checkin_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:  # Meta class implementation
        db_table = "appointments"
        ordering = ["start_at", "id"]
        indexes = [
            models.Index(fields=["professional", "start_at"], name="appointments_prof_start_idx"),
            models.Index(fields=["establishment", "status"], name="appointments_estab_status_idx"),
            models.Index(fields=["user", "status"], name="appointments_user_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_at__gt=models.F("start_at")),
                name="appointment_end_after_start",
            ),
        ]

    def __str__(self):
        return f"Appointment {self.id} with {self.professional_id} at {self.start_at} ({self.status})"

    @property
    def duration_minutes(self):
        return int((self.end_at - self.start_at).total_seconds() // 60)
