"""
Queue Engine
Assigns queue positions and serializes "call next" across concurrent staff clients

Import from here: from queue_management.services import QueueService
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone

from appointments.models import Appointment
from core.exceptions import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    QueueClosedError,
    UnauthorizedError,
)
from core.locking import keyed_lock, queue_key
from core.models import Establishment, Participant, Service
from core.scheduling_config import default_service_minutes, grace_after, grace_before
from queue_management.events import publish_event
from queue_management.models import Queue, QueueEntry

logger = logging.getLogger(__name__)

CALL_ORDER = ("-priority", "created_at", "id")


@dataclass
class CallResult:
    """What call_next picked: a checked-in appointment or a waiting queue entry."""

    kind: str
    record: object

    APPOINTMENT = "appointment"
    QUEUE_ENTRY = "queue_entry"


@dataclass
class QueueStatus:
    queue_id: int
    total_waiting: int
    user_position: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None


def _service_minutes(queue: Queue) -> int:
    return queue.service_duration_minutes or default_service_minutes()


def _wait_for_position(position: int, duration: int) -> int:
    return max(0, (position - 1) * duration)


def _start_of_today():
    return timezone.localtime(timezone.now()).replace(
        hour=0, minute=0, second=0, microsecond=0
    )


class QueueService:
    """Walk-in queue operations; each mutating call is one transaction"""

    @staticmethod
    def _lock_queue(queue_id) -> Queue:
        try:
            return Queue.objects.select_for_update().get(pk=queue_id)
        except Queue.DoesNotExist:
            logger.warning(f"Queue {queue_id} not found")
            raise NotFoundError("Queue not found")

    @staticmethod
    def _get_queue(queue_id) -> Queue:
        try:
            return Queue.objects.select_related("service").get(pk=queue_id)
        except Queue.DoesNotExist:
            logger.warning(f"Queue {queue_id} not found")
            raise NotFoundError("Queue not found")

    @staticmethod
    def _entry_queue_id(entry_id):
        queue_id = (
            QueueEntry.objects.filter(pk=entry_id)
            .values_list("queue_id", flat=True)
            .first()
        )
        if queue_id is None:
            logger.warning(f"Queue entry {entry_id} not found")
            raise NotFoundError("Queue entry not found")
        return queue_id

    @staticmethod
    def _validate_priority(priority) -> int:
        if isinstance(priority, bool) or not isinstance(priority, int) or priority < 0:
            raise InvalidInputError("Priority must be a non-negative integer")
        return priority

    @staticmethod
    def create_queue(establishment_id, name, service_id=None, status="open") -> Queue:
        """Create a queue for an establishment, optionally bound to a service."""
        if status not in dict(Queue.STATUS_CHOICES):
            raise InvalidInputError("Status must be 'open' or 'closed'")
        if not name:
            raise InvalidInputError("Queue name is required")

        try:
            establishment = Establishment.objects.get(pk=establishment_id)
        except Establishment.DoesNotExist:
            raise NotFoundError("Establishment not found")

        service = None
        if service_id is not None:
            try:
                service = Service.objects.get(pk=service_id, establishment=establishment)
            except Service.DoesNotExist:
                raise NotFoundError("Service not found for this establishment")

        queue = Queue.objects.create(
            establishment=establishment, service=service, name=name, status=status
        )
        logger.info(f"Queue {queue.id} created for establishment {establishment.id}")
        return queue

    @staticmethod
    def join(queue_id, user_id=None, priority=0) -> QueueEntry:
        """
        Append a waiting entry at the tail of an open queue.

        The queue row lock serializes concurrent joins, so the next position
        is simply the current maximum plus one. The returned entry carries an
        unsaved ``estimated_wait_minutes`` attribute.
        """
        priority = QueueService._validate_priority(priority)
        if user_id is not None and not Participant.objects.filter(pk=user_id).exists():
            raise NotFoundError("User not found")

        with keyed_lock(queue_key(queue_id)), transaction.atomic():
            queue = QueueService._lock_queue(queue_id)
            if not queue.is_open:
                logger.warning(f"Join rejected, queue {queue_id} is {queue.status}")
                raise QueueClosedError("Queue is closed")

            entries = QueueEntry.objects.filter(queue=queue)
            list(entries.select_for_update().values_list("id", flat=True))
            last_position = entries.aggregate(last=Max("position"))["last"] or 0

            entry = QueueEntry.objects.create(
                queue=queue,
                user_id=user_id,
                position=last_position + 1,
                priority=priority,
                status="waiting",
            )

            publish_event(
                "queue.joined",
                {
                    "queue_id": queue.id,
                    "entry_id": entry.id,
                    "position": entry.position,
                    "user_id": str(user_id) if user_id else None,
                },
            )

        entry.estimated_wait_minutes = _wait_for_position(
            entry.position, _service_minutes(queue)
        )
        logger.info(f"Entry {entry.id} joined queue {queue.id} at position {entry.position}")
        return entry

    @staticmethod
    def call_next(queue_id, establishment_id=None, professional_id=None) -> Optional[CallResult]:
        """
        Call whoever is next.

        When both an establishment and a professional are given, a checked-in
        appointment inside the grace window takes precedence over walk-ins.
        Returns None when nobody is waiting.
        """
        with keyed_lock(queue_key(queue_id)), transaction.atomic():
            queue = QueueService._lock_queue(queue_id)

            if establishment_id is not None and professional_id is not None:
                now = timezone.now()
                appointment = (
                    Appointment.objects.select_for_update()
                    .filter(
                        establishment_id=establishment_id,
                        professional_id=professional_id,
                        status="checked_in",
                        start_at__gte=now - grace_before(),
                        start_at__lte=now + grace_after(),
                    )
                    .order_by("start_at", "id")
                    .first()
                )
                if appointment is not None:
                    appointment.status = "in_progress"
                    appointment.save(update_fields=["status", "updated_at"])
                    publish_event(
                        "appointment.called",
                        {
                            "queue_id": queue.id,
                            "appointment_id": appointment.id,
                            "professional_id": appointment.professional_id,
                        },
                    )
                    logger.info(f"Queue {queue.id} called appointment {appointment.id}")
                    return CallResult(kind=CallResult.APPOINTMENT, record=appointment)

            entry = (
                QueueEntry.objects.select_for_update()
                .filter(queue=queue, status="waiting")
                .order_by(*CALL_ORDER)
                .first()
            )
            if entry is None:
                logger.info(f"Queue {queue.id} has nobody waiting")
                return None

            entry.status = "called"
            entry.called_at = timezone.now()
            entry.save(update_fields=["status", "called_at"])
            publish_event(
                "queue.called",
                {"queue_id": queue.id, "entry_id": entry.id, "position": entry.position},
            )

        logger.info(f"Queue {queue.id} called entry {entry.id} (position {entry.position})")
        return CallResult(kind=CallResult.QUEUE_ENTRY, record=entry)

    @staticmethod
    def leave(entry_id, user_id) -> bool:
        """Owner cancels their own waiting or called entry."""
        queue_id = QueueService._entry_queue_id(entry_id)

        with keyed_lock(queue_key(queue_id)), transaction.atomic():
            entry = QueueEntry.objects.select_for_update().get(pk=entry_id)
            if entry.user_id is None or str(entry.user_id) != str(user_id):
                logger.warning(f"User {user_id} tried to leave entry {entry_id} they do not own")
                raise UnauthorizedError("You can only leave your own queue entry")
            if entry.status not in QueueEntry.ACTIVE_STATUSES:
                logger.warning(f"Leave rejected, entry {entry_id} is {entry.status}")
                raise InvalidStateError(f"Cannot leave an entry that is {entry.status}")

            entry.status = "cancelled"
            entry.save(update_fields=["status"])
            publish_event(
                "queue.left",
                {"queue_id": queue_id, "entry_id": entry.id, "position": entry.position},
            )

        logger.info(f"Entry {entry_id} left queue {queue_id}")
        return True

    @staticmethod
    def status(queue_id, user_id=None) -> QueueStatus:
        """Waiting count plus the caller's own position; no locks taken."""
        queue = QueueService._get_queue(queue_id)
        waiting = QueueEntry.objects.filter(queue=queue, status="waiting")

        result = QueueStatus(queue_id=queue.id, total_waiting=waiting.count())
        if user_id is not None:
            own = waiting.filter(user_id=user_id).order_by("-created_at", "-id").first()
            if own is not None:
                result.user_position = own.position
                result.estimated_wait_minutes = _wait_for_position(
                    own.position, _service_minutes(queue)
                )
        return result

    @staticmethod
    def _with_waiting_count(queryset):
        return queryset.annotate(
            waiting_count=Count("entries", filter=Q(entries__status="waiting"))
        )

    @staticmethod
    def list_queues(establishment_id=None, status=None):
        """Queues newest first, each annotated with ``waiting_count``."""
        queues = QueueService._with_waiting_count(Queue.objects.select_related("service"))
        if establishment_id is not None:
            queues = queues.filter(establishment_id=establishment_id)
        if status is not None:
            if status not in dict(Queue.STATUS_CHOICES):
                raise InvalidInputError("Status must be 'open' or 'closed'")
            queues = queues.filter(status=status)
        return queues.order_by("-created_at", "-id")

    @staticmethod
    def get_queue(queue_id) -> Queue:
        queues = QueueService._with_waiting_count(Queue.objects.select_related("service"))
        try:
            return queues.get(pk=queue_id)
        except Queue.DoesNotExist:
            logger.warning(f"Queue {queue_id} not found")
            raise NotFoundError("Queue not found")

    @staticmethod
    def set_status(queue_id, status) -> Queue:  # Open or close a queue
        if status not in dict(Queue.STATUS_CHOICES):
            raise InvalidInputError("Status must be 'open' or 'closed'")

        with keyed_lock(queue_key(queue_id)), transaction.atomic():
            queue = QueueService._lock_queue(queue_id)
            if queue.status != status:
                queue.status = status
                queue.save(update_fields=["status", "updated_at"])
                publish_event("queue.status_changed", {"queue_id": queue.id, "status": status})

        logger.info(f"Queue {queue_id} is now {status}")
        return queue

    @staticmethod
    def _finish_entry(entry_id, target) -> QueueEntry:
        queue_id = QueueService._entry_queue_id(entry_id)

        with keyed_lock(queue_key(queue_id)), transaction.atomic():
            entry = QueueEntry.objects.select_for_update().get(pk=entry_id)
            if entry.status != "called":
                logger.warning(f"Cannot mark entry {entry_id} {target}, it is {entry.status}")
                raise InvalidStateError(
                    f"Only called entries can be marked {target}, entry is {entry.status}"
                )

            entry.status = target
            fields = ["status"]
            if target == "served":
                entry.served_at = timezone.now()
                fields.append("served_at")
            entry.save(update_fields=fields)
            publish_event(
                f"queue.{target}",
                {"queue_id": queue_id, "entry_id": entry.id, "position": entry.position},
            )

        logger.info(f"Entry {entry_id} in queue {queue_id} marked {target}")
        return entry

    @staticmethod
    def mark_served(entry_id) -> QueueEntry:
        return QueueService._finish_entry(entry_id, "served")

    @staticmethod
    def mark_entry_no_show(entry_id) -> QueueEntry:
        return QueueService._finish_entry(entry_id, "no_show")

    @staticmethod
    def board(queue_id) -> dict:
        """
        Display data for a queue screen.

        Waiting entries come in call order, each with an estimated wait of
        ``index * duration``. Statistics cover the current local day.
        """
        queue = QueueService._get_queue(queue_id)
        duration = _service_minutes(queue)
        today = _start_of_today()

        waiting = list(
            QueueEntry.objects.filter(queue=queue, status="waiting").order_by(*CALL_ORDER)
        )
        for index, entry in enumerate(waiting):
            entry.estimated_wait_minutes = index * duration

        called = list(
            QueueEntry.objects.filter(queue=queue, status="called").order_by("called_at", "id")
        )

        served_today = QueueEntry.objects.filter(
            queue=queue, status="served", served_at__gte=today
        ).count()

        waits = [
            (called_at - created_at).total_seconds() / 60
            for created_at, called_at in QueueEntry.objects.filter(
                queue=queue, called_at__gte=today
            ).values_list("created_at", "called_at")
        ]
        average_wait = round(sum(waits) / len(waits)) if waits else 0

        return {
            "queue": queue,
            "waiting": waiting,
            "called": called,
            "stats": {
                "total_waiting": len(waiting),
                "total_being_served": len(called),
                "total_served_today": served_today,
                "average_wait_minutes": average_wait,
            },
        }
