import threading
from datetime import date, datetime, time, timedelta

from django.contrib import admin
from django.db import connection
from django.test import RequestFactory, SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from core.exceptions import (
    AppointmentConflictError,
    CheckInTooEarlyError,
    CheckInWindowPassedError,
    ErrorKind,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from core.models import Establishment, Participant, Professional, Service
from .models import Appointment
from .services import AppointmentService, Slot, parse_start

BOOKING_DAY = date(2030, 1, 7)


def at(hour, minute=0, day=BOOKING_DAY):
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


class AppointmentFixturesMixin:
    def make_fixtures(self):
        self.establishment = Establishment.objects.create(name="Riverside Clinic")
        self.service = Service.objects.create(
            establishment=self.establishment, name="Consultation", duration_minutes=30
        )
        self.professional = Professional.objects.create(
            establishment=self.establishment, name="Dr. Lee"
        )
        self.other_professional = Professional.objects.create(
            establishment=self.establishment, name="Dr. Okafor"
        )
        self.client_user = Participant.objects.create_user(
            email="client@test.com", password="test123"
        )
        self.other_user = Participant.objects.create_user(
            email="other@test.com", password="test123"
        )
        self.staff = Participant.objects.create_user(
            email="staff@test.com", password="test123", role="staff"
        )

    def book(self, start_at, professional=None, user=None):
        return AppointmentService.create(
            establishment_id=self.establishment.id,
            professional_id=(professional or self.professional).id,
            service_id=self.service.id,
            user_id=(user or self.client_user).pk,
            start_at=start_at,
        )

    def make_appointment(self, start_at, status="booked", user=None):  # Bypasses conflict checks
        return Appointment.objects.create(
            establishment=self.establishment,
            professional=self.professional,
            service=self.service,
            user=user or self.client_user,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=self.service.duration_minutes),
            status=status,
        )


class CreateAppointmentTest(AppointmentFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_create_appointment(self):  # Test create appointment
        appointment = self.book(at(10))
        self.assertEqual(appointment.status, "booked")
        self.assertEqual(appointment.end_at, at(10, 30))
        self.assertEqual(appointment.duration_minutes, 30)

    def test_duration_is_frozen_at_creation(self):  # Test duration is frozen at creation
        appointment = self.book(at(10))
        self.service.duration_minutes = 60
        self.service.save()
        appointment.refresh_from_db()
        self.assertEqual(appointment.end_at, at(10, 30))

    def test_overlap_is_rejected(self):  # Test overlap is rejected
        self.book(at(10))
        with self.assertRaises(AppointmentConflictError) as ctx:
            self.book(at(10, 15), user=self.other_user)
        self.assertEqual(ctx.exception.kind, ErrorKind.CONFLICT)
        self.assertEqual(Appointment.objects.count(), 1)

    def test_enclosing_interval_is_rejected(self):  # Test enclosing interval is rejected
        long_service = Service.objects.create(
            establishment=self.establishment, name="Procedure", duration_minutes=120
        )
        self.book(at(10))
        with self.assertRaises(AppointmentConflictError):
            AppointmentService.create(
                self.establishment.id, self.professional.id, long_service.id,
                self.other_user.pk, at(9, 30),
            )

    def test_adjacent_appointments_do_not_conflict(self):  # Test adjacent appointments do not conflict
        self.book(at(10))
        after = self.book(at(10, 30), user=self.other_user)
        before = self.book(at(9, 30), user=self.other_user)
        self.assertEqual(after.start_at, at(10, 30))
        self.assertEqual(before.end_at, at(10))

    def test_different_professionals_same_slot(self):  # Test different professionals same slot
        self.book(at(10))
        other = self.book(at(10), professional=self.other_professional, user=self.other_user)
        self.assertEqual(other.status, "booked")

    def test_released_appointments_do_not_block(self):  # Test released appointments do not block
        self.make_appointment(at(10), status="cancelled")
        self.make_appointment(at(10), status="no_show")
        self.assertEqual(self.book(at(10)).status, "booked")

    def test_completed_appointments_still_block(self):  # Test completed appointments still block
        self.make_appointment(at(10), status="completed")
        with self.assertRaises(AppointmentConflictError):
            self.book(at(10))

    def test_invalid_start_time(self):  # Test invalid start time
        for value in ("not-a-date", "2030-13-45T10:00:00", None, 12345):
            with self.assertRaises(InvalidInputError):
                self.book(value)
        self.assertFalse(Appointment.objects.exists())

    def test_iso_string_start_time(self):  # Test iso string start time
        appointment = self.book("2030-01-07T10:00:00Z")
        self.assertEqual(appointment.start_at, at(10))

    def test_naive_start_uses_current_timezone(self):  # Test naive start uses current timezone
        parsed = parse_start("2030-01-07T10:00:00")
        self.assertTrue(timezone.is_aware(parsed))
        self.assertEqual(parsed, at(10))

    def test_missing_references(self):  # Test missing references
        with self.assertRaises(NotFoundError):
            AppointmentService.create(
                self.establishment.id, self.professional.id, 999999, self.client_user.pk, at(10)
            )
        with self.assertRaises(NotFoundError):
            AppointmentService.create(
                self.establishment.id, 999999, self.service.id, self.client_user.pk, at(10)
            )
        self.assertFalse(Appointment.objects.exists())


class CheckInTest(AppointmentFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_check_in_inside_window(self):  # Test check in inside window
        appointment = self.make_appointment(timezone.now() + timedelta(minutes=5))
        checked = AppointmentService.check_in(appointment.id, self.client_user.pk)
        self.assertEqual(checked.status, "checked_in")
        self.assertIsNotNone(checked.checkin_at)

    def test_check_in_at_window_edges(self):  # Test check in at window edges
        early_edge = self.make_appointment(timezone.now() + timedelta(minutes=9))
        late_edge = self.make_appointment(timezone.now() - timedelta(minutes=14), user=self.other_user)
        self.assertEqual(AppointmentService.check_in(early_edge.id, self.client_user.pk).status, "checked_in")
        self.assertEqual(AppointmentService.check_in(late_edge.id, self.other_user.pk).status, "checked_in")

    def test_too_early_does_not_mutate(self):  # Test too early does not mutate
        appointment = self.make_appointment(timezone.now() + timedelta(minutes=30))
        with self.assertRaises(CheckInTooEarlyError) as ctx:
            AppointmentService.check_in(appointment.id, self.client_user.pk)
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "booked")
        self.assertIsNone(appointment.checkin_at)

    def test_window_passed_marks_no_show(self):  # Test window passed marks no show
        appointment = self.make_appointment(timezone.now() - timedelta(minutes=30))
        with self.assertRaises(CheckInWindowPassedError) as ctx:
            AppointmentService.check_in(appointment.id, self.client_user.pk)
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "no_show")

    @override_settings(QUEUE_GRACE_AFTER_MINUTES=60)
    def test_grace_window_is_configurable(self):  # Test grace window is configurable
        appointment = self.make_appointment(timezone.now() - timedelta(minutes=30))
        self.assertEqual(
            AppointmentService.check_in(appointment.id, self.client_user.pk).status, "checked_in"
        )

    def test_check_in_requires_owner(self):  # Test check in requires owner
        appointment = self.make_appointment(timezone.now())
        with self.assertRaises(UnauthorizedError):
            AppointmentService.check_in(appointment.id, self.other_user.pk)

    def test_check_in_requires_booked(self):  # Test check in requires booked
        appointment = self.make_appointment(timezone.now(), status="cancelled")
        with self.assertRaises(InvalidStateError):
            AppointmentService.check_in(appointment.id, self.client_user.pk)

    def test_check_in_missing(self):  # Test check in missing
        with self.assertRaises(NotFoundError):
            AppointmentService.check_in(999999, self.client_user.pk)


class AppointmentLifecycleTest(AppointmentFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_cancel(self):  # Test cancel
        appointment = self.book(at(10))
        self.assertTrue(AppointmentService.cancel(appointment.id, self.client_user.pk))
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "cancelled")
        # The slot is free again
        self.assertEqual(self.book(at(10), user=self.other_user).status, "booked")

    def test_cancel_requires_owner(self):  # Test cancel requires owner
        appointment = self.book(at(10))
        with self.assertRaises(UnauthorizedError):
            AppointmentService.cancel(appointment.id, self.other_user.pk)

    def test_cannot_cancel_completed(self):  # Test cannot cancel completed
        appointment = self.make_appointment(at(10), status="completed")
        with self.assertRaises(InvalidStateError):
            AppointmentService.cancel(appointment.id, self.client_user.pk)

    def test_staff_writes(self):  # Test staff writes
        appointment = self.book(at(10))
        self.assertTrue(AppointmentService.mark_completed(appointment.id))
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "completed")

        self.assertTrue(AppointmentService.mark_no_show(appointment.id))
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "no_show")

        with self.assertRaises(NotFoundError):
            AppointmentService.mark_completed(999999)

    def test_get_and_list(self):  # Test get and list
        mine = self.book(at(10))
        theirs = self.book(at(11), user=self.other_user)
        elsewhere = self.book(at(10), professional=self.other_professional, user=self.other_user)
        AppointmentService.cancel(theirs.id, self.other_user.pk)

        self.assertEqual(AppointmentService.get_appointment(mine.id).id, mine.id)
        with self.assertRaises(NotFoundError):
            AppointmentService.get_appointment(999999)

        by_user = AppointmentService.list_appointments({"user": str(self.other_user.pk)})
        self.assertEqual([a.id for a in by_user], [elsewhere.id, theirs.id])

        by_professional = AppointmentService.list_appointments({"professional": self.professional.id})
        self.assertEqual([a.id for a in by_professional], [mine.id, theirs.id])

        cancelled = AppointmentService.list_appointments({"status": "cancelled"})
        self.assertEqual([a.id for a in cancelled], [theirs.id])

        on_day = AppointmentService.list_appointments({"date": "2030-01-07"})
        self.assertEqual(on_day.count(), 3)
        self.assertEqual(AppointmentService.list_appointments({"date": "2030-01-08"}).count(), 0)

    def test_list_rejects_bad_filters(self):  # Test list rejects bad filters
        with self.assertRaises(InvalidInputError):
            AppointmentService.list_appointments({"status": "lost"})


class AvailableSlotsTest(AppointmentFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_full_day(self):  # Test full day
        slots = AppointmentService.available_slots(self.professional.id, self.service.id, BOOKING_DAY)
        self.assertEqual(len(slots), 18)
        self.assertEqual(slots[0], Slot(at(9), at(9, 30)))
        self.assertEqual(slots[-1], Slot(at(17, 30), at(18)))

    def test_booked_slots_are_excluded(self):  # Test booked slots are excluded
        self.book(at(10))
        self.make_appointment(at(11), status="cancelled")

        starts = [s.start_at for s in AppointmentService.available_slots(
            self.professional.id, self.service.id, "2030-01-07"
        )]
        self.assertNotIn(at(10), starts)
        self.assertIn(at(11), starts)
        self.assertEqual(len(starts), 17)

    def test_partial_overlap_excludes_slot(self):  # Test partial overlap excludes slot
        self.make_appointment(at(10, 15))
        starts = [s.start_at for s in AppointmentService.available_slots(
            self.professional.id, self.service.id, BOOKING_DAY
        )]
        self.assertNotIn(at(10), starts)
        self.assertNotIn(at(10, 30), starts)
        self.assertIn(at(11), starts)

    def test_slots_step_by_service_duration(self):  # Test slots step by service duration
        service = Service.objects.create(
            establishment=self.establishment, name="Long", duration_minutes=45
        )
        slots = AppointmentService.available_slots(self.professional.id, service.id, BOOKING_DAY)
        self.assertEqual(len(slots), 12)
        self.assertEqual(slots[-1], Slot(at(17, 15), at(18, 0)))

    def test_custom_business_hours(self):  # Test custom business hours
        slots = AppointmentService.available_slots(
            self.professional.id, self.service.id, BOOKING_DAY,
            opens_at=time(8, 0), closes_at=time(9, 0),
        )
        self.assertEqual([s.start_at for s in slots], [at(8), at(8, 30)])

    def test_other_professionals_bookings_ignored(self):  # Test other professionals bookings ignored
        self.book(at(10), professional=self.other_professional)
        slots = AppointmentService.available_slots(self.professional.id, self.service.id, BOOKING_DAY)
        self.assertEqual(len(slots), 18)

    def test_is_restartable(self):  # Test is restartable
        first = AppointmentService.available_slots(self.professional.id, self.service.id, BOOKING_DAY)
        second = AppointmentService.available_slots(self.professional.id, self.service.id, BOOKING_DAY)
        self.assertEqual(first, second)

    def test_invalid_input(self):  # Test invalid input
        with self.assertRaises(NotFoundError):
            AppointmentService.available_slots(self.professional.id, 999999, BOOKING_DAY)
        with self.assertRaises(InvalidInputError):
            AppointmentService.available_slots(self.professional.id, self.service.id, "07/01/2030")


class AppointmentConcurrencyTest(AppointmentFixturesMixin, TransactionTestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_concurrent_bookings_for_one_slot(self):  # Test concurrent bookings for one slot
        users = [
            Participant.objects.create_user(email=f"racer{i}@test.com", password="test123")
            for i in range(6)
        ]
        booked, conflicts, errors = [], [], []

        def worker(index):
            try:
                booked.append(self.book(at(10, index * 5), user=users[index]).id)
            except AppointmentConflictError:
                conflicts.append(index)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(len(users))]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        self.assertEqual(errors, [])
        self.assertEqual(len(booked), 1)
        self.assertEqual(len(conflicts), len(users) - 1)
        self.assertEqual(Appointment.objects.filter(professional=self.professional).count(), 1)


class AppointmentAPITest(AppointmentFixturesMixin, APITestCase):
    def setUp(self):  # Setup
        self.client = APIClient()
        self.make_fixtures()

    def _create(self, start_at, professional=None):
        return self.client.post(
            reverse("appointments:appointment-list"),
            {
                "establishment_id": self.establishment.id,
                "professional_id": (professional or self.professional).id,
                "service_id": self.service.id,
                "start_at": start_at,
            },
            format="json",
        )

    def test_create_and_conflict(self):  # Test create and conflict
        self.client.force_authenticate(user=self.client_user)

        response = self._create("2030-01-07T10:00:00Z")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["appointment"]["status"], "booked")
        self.assertEqual(response.data["appointment"]["duration_minutes"], 30)

        response = self._create("2030-01-07T10:15:00Z")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["code"], "TIME_SLOT_CONFLICT")

        response = self._create("2030-01-07T10:30:00Z")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_create_invalid_datetime(self):  # Test create invalid datetime
        self.client.force_authenticate(user=self.client_user)
        response = self._create("tomorrow at ten")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["kind"], "invalid_input")

    def test_check_in_flow(self):  # Test check in flow
        appointment = self.make_appointment(timezone.now() - timedelta(minutes=30))
        self.client.force_authenticate(user=self.client_user)

        url = reverse("appointments:appointment-check-in", args=[appointment.id])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "CHECK_IN_WINDOW_PASSED")
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "no_show")

        ready = self.make_appointment(timezone.now() + timedelta(hours=1))
        response = self.client.post(reverse("appointments:appointment-check-in", args=[ready.id]))
        self.assertEqual(response.data["error"]["code"], "CHECK_IN_TOO_EARLY")

    def test_cancel_other_users_appointment(self):  # Test cancel other users appointment
        appointment = self.make_appointment(at(10))
        self.client.force_authenticate(user=self.other_user)
        response = self.client.post(reverse("appointments:appointment-cancel", args=[appointment.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_only_writes(self):  # Test staff only writes
        appointment = self.make_appointment(at(10), status="in_progress")
        url = reverse("appointments:appointment-complete", args=[appointment.id])

        self.client.force_authenticate(user=self.client_user)
        self.assertEqual(self.client.post(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.staff)
        self.assertEqual(self.client.post(url).status_code, status.HTTP_200_OK)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "completed")

        response = self.client.post(reverse("appointments:appointment-no-show", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_is_scoped_for_clients(self):  # Test list is scoped for clients
        self.make_appointment(at(10))
        self.make_appointment(at(11), user=self.other_user)

        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(reverse("appointments:appointment-list"))
        self.assertEqual(response.data["count"], 1)

        self.client.force_authenticate(user=self.staff)
        response = self.client.get(reverse("appointments:appointment-list"), {"professional": self.professional.id})
        self.assertEqual(response.data["count"], 2)

    def test_list_is_paginated(self):  # Test list is paginated
        for index in range(25):
            self.make_appointment(at(9) + timedelta(minutes=30 * index))
        self.client.force_authenticate(user=self.staff)
        url = reverse("appointments:appointment-list")

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 25)
        self.assertEqual(len(response.data["appointments"]), 20)
        self.assertIn("page=2", response.data["next"])
        self.assertIsNone(response.data["previous"])
        self.assertEqual(response.data["appointments"][0]["start_at"], "2030-01-07T09:00:00Z")

        response = self.client.get(url, {"page": 2})
        self.assertEqual(len(response.data["appointments"]), 5)
        self.assertIsNone(response.data["next"])
        self.assertIsNotNone(response.data["previous"])

        response = self.client.get(url, {"page": 9})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "INVALID_PAGE")

    def test_retrieve(self):  # Test retrieve
        appointment = self.make_appointment(at(10))

        self.client.force_authenticate(user=self.other_user)
        url = reverse("appointments:appointment-detail", args=[appointment.id])
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["appointment"]["id"], appointment.id)

        response = self.client.get(reverse("appointments:appointment-detail", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_available_slots(self):  # Test available slots
        self.make_appointment(at(9))
        self.client.force_authenticate(user=self.client_user)

        response = self.client.get(
            reverse("appointments:appointment-available-slots"),
            {
                "professional_id": self.professional.id,
                "service_id": self.service.id,
                "date": "2030-01-07",
            },
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["slots"]), 17)

        response = self.client.get(
            reverse("appointments:appointment-available-slots"),
            {"professional_id": self.professional.id, "service_id": self.service.id, "date": "someday"},
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AppointmentAdminTest(SimpleTestCase):
    def test_status_is_read_only(self):  # Test status is read only
        model_admin = admin.site._registry[Appointment]
        readonly = model_admin.get_readonly_fields(RequestFactory().get("/admin/"))
        self.assertIn("status", readonly)
        self.assertIn("checkin_at", readonly)
