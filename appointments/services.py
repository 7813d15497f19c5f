"""
Appointment Engine
Conflict-free booking, grace-window check-in and slot availability

Import from here: from appointments.services import AppointmentService
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from appointments.filters import AppointmentFilter
from appointments.models import Appointment
from core.exceptions import (
    AppointmentConflictError,
    CheckInTooEarlyError,
    CheckInWindowPassedError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from core.locking import keyed_lock, professional_key
from core.models import Establishment, Participant, Professional, Service
from core.scheduling_config import business_hours, grace_after, grace_before
from queue_management.events import publish_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start_at: datetime
    end_at: datetime


def parse_start(value) -> datetime:
    """Accept a datetime or an ISO-8601 string; naive values use the current timezone."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            parsed = None
    else:
        parsed = None

    if parsed is None:
        raise InvalidInputError(f"Invalid start time: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed


def parse_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise InvalidInputError(f"Invalid date: {value!r}")


def overlaps(queryset, start_at, end_at):
    """Half-open interval test: adjacent bookings do not overlap."""
    return queryset.filter(start_at__lt=end_at, end_at__gt=start_at)


class AppointmentService:
    """Appointment lifecycle; every mutation runs in one transaction"""

    @staticmethod
    def _get_service(service_id) -> Service:
        try:
            service = Service.objects.get(pk=service_id)
        except Service.DoesNotExist:
            logger.warning(f"Service {service_id} not found")
            raise NotFoundError("Service not found")
        if service.duration_minutes <= 0:
            raise InvalidInputError("Service has no duration")
        return service

    @staticmethod
    def _professional_id_for(appointment_id):
        professional_id = (
            Appointment.objects.filter(pk=appointment_id)
            .values_list("professional_id", flat=True)
            .first()
        )
        if professional_id is None:
            logger.warning(f"Appointment {appointment_id} not found")
            raise NotFoundError("Appointment not found")
        return professional_id

    @staticmethod
    def _check_owner(appointment, user_id):
        if str(appointment.user_id) != str(user_id):
            logger.warning(f"User {user_id} is not the owner of appointment {appointment.id}")
            raise UnauthorizedError("This appointment belongs to another user")

    @staticmethod
    def create(establishment_id, professional_id, service_id, user_id, start_at) -> Appointment:
        """
        Book a service with a professional.

        The professional row lock plus the locked overlap query make the
        check-then-insert atomic: two concurrent bookings for overlapping
        times on one calendar cannot both succeed.
        """
        start_at = parse_start(start_at)
        service = AppointmentService._get_service(service_id)
        end_at = start_at + timedelta(minutes=service.duration_minutes)

        if not Establishment.objects.filter(pk=establishment_id).exists():
            raise NotFoundError("Establishment not found")
        if not Participant.objects.filter(pk=user_id).exists():
            raise NotFoundError("User not found")

        with keyed_lock(professional_key(professional_id)), transaction.atomic():
            try:
                professional = Professional.objects.select_for_update().get(pk=professional_id)
            except Professional.DoesNotExist:
                logger.warning(f"Professional {professional_id} not found")
                raise NotFoundError("Professional not found")

            conflicts = list(
                overlaps(
                    Appointment.objects.select_for_update().filter(professional=professional),
                    start_at,
                    end_at,
                ).exclude(status__in=Appointment.RELEASED_STATUSES)
            )
            if conflicts:
                logger.warning(
                    f"Booking conflict for professional {professional.id} "
                    f"[{start_at.isoformat()}, {end_at.isoformat()}) with {conflicts[0].id}"
                )
                raise AppointmentConflictError("Time slot conflict with an existing appointment")

            appointment = Appointment.objects.create(
                establishment_id=establishment_id,
                professional=professional,
                service=service,
                user_id=user_id,
                start_at=start_at,
                end_at=end_at,
                status="booked",
            )
            publish_event(
                "appointment.booked",
                {"appointment_id": appointment.id, "professional_id": professional.id},
            )

        logger.info(f"Appointment {appointment.id} booked with professional {professional.id} at {start_at}")
        return appointment

    @staticmethod
    def check_in(appointment_id, user_id) -> Appointment:
        """
        Check in within the grace window around start_at.

        Too early leaves the booking untouched. Too late voids it: the no_show
        status is committed before CheckInWindowPassedError is raised.
        """
        professional_id = AppointmentService._professional_id_for(appointment_id)
        window_passed = False

        with keyed_lock(professional_key(professional_id)), transaction.atomic():
            appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
            AppointmentService._check_owner(appointment, user_id)
            if appointment.status != "booked":
                logger.warning(f"Check-in rejected, appointment {appointment_id} is {appointment.status}")
                raise InvalidStateError(f"Cannot check in an appointment that is {appointment.status}")

            now = timezone.now()
            if now < appointment.start_at - grace_before():
                logger.warning(f"Check-in too early for appointment {appointment_id}")
                raise CheckInTooEarlyError("Too early to check in")

            if now > appointment.start_at + grace_after():
                appointment.status = "no_show"
                appointment.save(update_fields=["status", "updated_at"])
                publish_event("appointment.no_show", {"appointment_id": appointment.id})
                window_passed = True
            else:
                appointment.status = "checked_in"
                appointment.checkin_at = now
                appointment.save(update_fields=["status", "checkin_at", "updated_at"])
                publish_event("appointment.checked_in", {"appointment_id": appointment.id})

        if window_passed:
            logger.warning(f"Check-in window passed for appointment {appointment_id}, marked no_show")
            raise CheckInWindowPassedError("Check-in window has passed, appointment marked as no-show")

        logger.info(f"Appointment {appointment_id} checked in")
        return appointment

    @staticmethod
    def cancel(appointment_id, user_id) -> bool:  # Owner cancels a booked or checked-in appointment
        professional_id = AppointmentService._professional_id_for(appointment_id)

        with keyed_lock(professional_key(professional_id)), transaction.atomic():
            appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
            AppointmentService._check_owner(appointment, user_id)
            if appointment.status not in Appointment.CANCELLABLE_STATUSES:
                logger.warning(f"Cancel rejected, appointment {appointment_id} is {appointment.status}")
                raise InvalidStateError(f"Cannot cancel an appointment that is {appointment.status}")

            appointment.status = "cancelled"
            appointment.save(update_fields=["status", "updated_at"])
            publish_event("appointment.cancelled", {"appointment_id": appointment.id})

        logger.info(f"Appointment {appointment_id} cancelled")
        return True

    @staticmethod
    def _write_status(appointment_id, status) -> bool:
        professional_id = AppointmentService._professional_id_for(appointment_id)

        with keyed_lock(professional_key(professional_id)), transaction.atomic():
            Appointment.objects.filter(pk=appointment_id).update(
                status=status, updated_at=timezone.now()
            )
            publish_event(f"appointment.{status}", {"appointment_id": appointment_id})

        logger.info(f"Appointment {appointment_id} marked {status}")
        return True

    @staticmethod
    def mark_no_show(appointment_id) -> bool:  # Staff write; authorization happens upstream
        return AppointmentService._write_status(appointment_id, "no_show")

    @staticmethod
    def mark_completed(appointment_id) -> bool:  # Staff write; authorization happens upstream
        return AppointmentService._write_status(appointment_id, "completed")

    @staticmethod
    def get_appointment(appointment_id) -> Appointment:
        try:
            return Appointment.objects.select_related(
                "establishment", "professional", "service", "user"
            ).get(pk=appointment_id)
        except Appointment.DoesNotExist:
            raise NotFoundError("Appointment not found")

    @staticmethod
    def list_appointments(filters=None):
        """Filter by user, professional, establishment, status and date."""
        filterset = AppointmentFilter(
            filters or {},
            queryset=Appointment.objects.select_related(
                "establishment", "professional", "service", "user"
            ),
        )
        if not filterset.is_valid():
            raise InvalidInputError(f"Invalid filters: {dict(filterset.errors)}")
        return filterset.qs.order_by("start_at", "id")

    @staticmethod
    def available_slots(professional_id, service_id, day, opens_at=None, closes_at=None) -> list:
        """
        Free slots for a professional on a day.

        Slots start at opening time and step by the service duration while
        the slot start is before closing time. A slot overlapping any booking
        that still holds the calendar is left out.
        """
        service = AppointmentService._get_service(service_id)
        day = parse_day(day)
        default_opens, default_closes = business_hours()
        opens_at = opens_at or default_opens
        closes_at = closes_at or default_closes
        if not isinstance(opens_at, time) or not isinstance(closes_at, time):
            raise InvalidInputError("Business hours must be times of day")

        tz = timezone.get_current_timezone()
        step = timedelta(minutes=service.duration_minutes)
        current = timezone.make_aware(datetime.combine(day, opens_at), tz)
        closing = timezone.make_aware(datetime.combine(day, closes_at), tz)

        candidates = []
        while current < closing:
            candidates.append(Slot(start_at=current, end_at=current + step))
            current += step
        if not candidates:
            return []

        booked = list(
            overlaps(
                Appointment.objects.filter(professional_id=professional_id),
                candidates[0].start_at,
                candidates[-1].end_at,
            )
            .exclude(status__in=Appointment.RELEASED_STATUSES)
            .values_list("start_at", "end_at")
        )

        return [
            slot
            for slot in candidates
            if not any(start < slot.end_at and end > slot.start_at for start, end in booked)
        ]
