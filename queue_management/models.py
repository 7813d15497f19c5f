from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import Establishment, Service


class Queue(models.Model):  # Walk-in waiting line run by an establishment
    STATUS_CHOICES = [
        ("open", "Open"),
        ("closed", "Closed"),
    ]

    establishment = models.ForeignKey(
        Establishment, on_delete=models.CASCADE, related_name="queues"
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.SET_NULL,
        related_name="queues",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="open")
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:  # Meta class implementation
        db_table = "queues"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["establishment", "status"], name="queues_estab_status_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.status})"

    @property
    def is_open(self):
        return self.status == "open"

    @property
    def service_duration_minutes(self):  # None when the queue has no service attached
        return self.service.duration_minutes if self.service_id else None


class QueueEntry(models.Model):  # One ticket in a queue; never deleted, only transitioned
    STATUS_CHOICES = [
        ("waiting", "Waiting"),
        ("called", "Called"),
        ("served", "Served"),
        ("no_show", "No Show"),
        ("cancelled", "Cancelled"),
    ]

    ACTIVE_STATUSES = ("waiting", "called")

    queue = models.ForeignKey(Queue, on_delete=models.PROTECT, related_name="entries")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="queue_entries",
        null=True,
        blank=True,
    )
    position = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="waiting")
    priority = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    called_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)

    class Meta:  # Meta class implementation
        db_table = "queue_entries"
        ordering = ["queue", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["queue", "position"], name="unique_queue_position"
            ),
        ]
        indexes = [
            models.Index(fields=["queue", "status"], name="queue_entries_status_idx"),
            models.Index(fields=["user", "status"], name="queue_entries_user_idx"),
        ]

    def __str__(self):
        return f"#{self.position} in queue {self.queue_id} ({self.status})"
