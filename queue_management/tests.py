import threading
from datetime import timedelta
from unittest import mock

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib import admin
from django.db import connection
from django.test import RequestFactory, SimpleTestCase, TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from appointments.models import Appointment
from core.exceptions import (
    ErrorKind,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    QueueClosedError,
    UnauthorizedError,
)
from core.models import Establishment, Participant, Professional, Service
from queue_management.events import publish_event, queue_group
from queue_management.models import Queue, QueueEntry
from queue_management.routing import websocket_urlpatterns
from queue_management.services import CallResult, QueueService
from queue_management.tasks import broadcast_event


class QueueFixturesMixin:
    def make_fixtures(self):
        self.establishment = Establishment.objects.create(name="Downtown Barbers")
        self.service = Service.objects.create(
            establishment=self.establishment, name="Haircut", duration_minutes=20
        )
        self.professional = Professional.objects.create(
            establishment=self.establishment, name="Sam"
        )
        self.queue = Queue.objects.create(
            establishment=self.establishment, service=self.service, name="Walk-ins"
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

    def make_user(self, index):
        return Participant.objects.create_user(email=f"user{index}@test.com", password="test123")


class JoinQueueTest(QueueFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_positions_increase_in_join_order(self):  # Test positions increase in join order
        first = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        second = QueueService.join(self.queue.id, user_id=self.other_user.pk)
        third = QueueService.join(self.queue.id)

        self.assertEqual([first.position, second.position, third.position], [1, 2, 3])
        self.assertEqual(first.status, "waiting")
        self.assertIsNone(third.user_id)

    def test_estimated_wait_uses_service_duration(self):  # Test estimated wait uses service duration
        first = QueueService.join(self.queue.id)
        second = QueueService.join(self.queue.id)

        self.assertEqual(first.estimated_wait_minutes, 0)
        self.assertEqual(second.estimated_wait_minutes, 20)

    def test_estimated_wait_defaults_without_service(self):  # Test estimated wait defaults without service
        queue = Queue.objects.create(establishment=self.establishment, name="No service")
        QueueService.join(queue.id)
        second = QueueService.join(queue.id)
        self.assertEqual(second.estimated_wait_minutes, 15)

    def test_positions_are_never_reused(self):  # Test positions are never reused
        first = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        QueueService.leave(first.id, self.client_user.pk)
        QueueService.call_next(self.queue.id)

        entry = QueueService.join(self.queue.id)
        self.assertEqual(entry.position, 2)

    def test_closed_queue_rejects_join(self):  # Test closed queue rejects join
        self.queue.status = "closed"
        self.queue.save()

        with self.assertRaises(QueueClosedError) as ctx:
            QueueService.join(self.queue.id, user_id=self.client_user.pk)
        self.assertEqual(ctx.exception.kind, ErrorKind.CONFLICT)
        self.assertFalse(QueueEntry.objects.exists())

    def test_missing_queue(self):  # Test missing queue
        with self.assertRaises(NotFoundError):
            QueueService.join(999999)

    def test_invalid_priority(self):  # Test invalid priority
        for priority in (-1, True, "2", 1.5):
            with self.assertRaises(InvalidInputError):
                QueueService.join(self.queue.id, priority=priority)


class CallNextTest(QueueFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_empty_queue_returns_none(self):  # Test empty queue returns none
        self.assertIsNone(QueueService.call_next(self.queue.id))

    def test_missing_queue(self):  # Test missing queue
        with self.assertRaises(NotFoundError):
            QueueService.call_next(999999)

    def test_calls_in_join_order(self):  # Test calls in join order
        first = QueueService.join(self.queue.id)
        second = QueueService.join(self.queue.id)

        result = QueueService.call_next(self.queue.id)
        self.assertEqual(result.kind, CallResult.QUEUE_ENTRY)
        self.assertEqual(result.record.id, first.id)
        self.assertEqual(result.record.status, "called")
        self.assertIsNotNone(result.record.called_at)

        self.assertEqual(QueueService.call_next(self.queue.id).record.id, second.id)
        self.assertIsNone(QueueService.call_next(self.queue.id))

    def test_priority_before_arrival(self):  # Test priority before arrival
        early = QueueService.join(self.queue.id, priority=0)
        urgent = QueueService.join(self.queue.id, priority=5)
        later_urgent = QueueService.join(self.queue.id, priority=5)

        called = [QueueService.call_next(self.queue.id).record.id for _ in range(3)]
        self.assertEqual(called, [urgent.id, later_urgent.id, early.id])

    def test_identical_timestamps_fall_back_to_id(self):  # Test identical timestamps fall back to id
        first = QueueService.join(self.queue.id)
        second = QueueService.join(self.queue.id)
        QueueEntry.objects.filter(pk__in=[first.id, second.id]).update(created_at=timezone.now())

        self.assertEqual(QueueService.call_next(self.queue.id).record.id, first.id)

    def _checked_in_appointment(self, start_at):
        return Appointment.objects.create(
            establishment=self.establishment,
            professional=self.professional,
            service=self.service,
            user=self.client_user,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=20),
            status="checked_in",
        )

    def test_checked_in_appointment_takes_precedence(self):  # Test checked in appointment takes precedence
        entry = QueueService.join(self.queue.id)
        appointment = self._checked_in_appointment(timezone.now() + timedelta(minutes=5))

        result = QueueService.call_next(
            self.queue.id,
            establishment_id=self.establishment.id,
            professional_id=self.professional.id,
        )

        self.assertEqual(result.kind, CallResult.APPOINTMENT)
        self.assertEqual(result.record.id, appointment.id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "in_progress")
        entry.refresh_from_db()
        self.assertEqual(entry.status, "waiting")

    def test_appointment_outside_window_is_skipped(self):  # Test appointment outside window is skipped
        entry = QueueService.join(self.queue.id)
        appointment = self._checked_in_appointment(timezone.now() + timedelta(hours=2))

        result = QueueService.call_next(
            self.queue.id,
            establishment_id=self.establishment.id,
            professional_id=self.professional.id,
        )

        self.assertEqual(result.kind, CallResult.QUEUE_ENTRY)
        self.assertEqual(result.record.id, entry.id)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, "checked_in")

    def test_appointment_ignored_without_professional(self):  # Test appointment ignored without professional
        self._checked_in_appointment(timezone.now())
        self.assertIsNone(
            QueueService.call_next(self.queue.id, establishment_id=self.establishment.id)
        )


class LeaveAndStatusTest(QueueFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_owner_can_leave(self):  # Test owner can leave
        entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        self.assertTrue(QueueService.leave(entry.id, self.client_user.pk))
        entry.refresh_from_db()
        self.assertEqual(entry.status, "cancelled")

    def test_called_entry_can_leave(self):  # Test called entry can leave
        entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        QueueService.call_next(self.queue.id)
        self.assertTrue(QueueService.leave(entry.id, str(self.client_user.pk)))

    def test_other_user_cannot_leave(self):  # Test other user cannot leave
        entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        with self.assertRaises(UnauthorizedError):
            QueueService.leave(entry.id, self.other_user.pk)

    def test_anonymous_entry_cannot_be_left(self):  # Test anonymous entry cannot be left
        entry = QueueService.join(self.queue.id)
        with self.assertRaises(UnauthorizedError):
            QueueService.leave(entry.id, self.client_user.pk)

    def test_terminal_entry_cannot_leave(self):  # Test terminal entry cannot leave
        entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        QueueService.leave(entry.id, self.client_user.pk)
        with self.assertRaises(InvalidStateError):
            QueueService.leave(entry.id, self.client_user.pk)

    def test_missing_entry(self):  # Test missing entry
        with self.assertRaises(NotFoundError):
            QueueService.leave(999999, self.client_user.pk)

    def test_status_reports_latest_waiting_entry(self):  # Test status reports latest waiting entry
        QueueService.join(self.queue.id, user_id=self.other_user.pk)
        QueueService.join(self.queue.id, user_id=self.client_user.pk)
        QueueService.join(self.queue.id, user_id=self.client_user.pk)

        result = QueueService.status(self.queue.id, user_id=self.client_user.pk)
        self.assertEqual(result.total_waiting, 3)
        self.assertEqual(result.user_position, 3)
        self.assertEqual(result.estimated_wait_minutes, 40)

    def test_status_without_user_entry(self):  # Test status without user entry
        QueueService.join(self.queue.id, user_id=self.other_user.pk)
        result = QueueService.status(self.queue.id, user_id=self.client_user.pk)
        self.assertEqual(result.total_waiting, 1)
        self.assertIsNone(result.user_position)
        self.assertIsNone(result.estimated_wait_minutes)

    def test_status_missing_queue(self):  # Test status missing queue
        with self.assertRaises(NotFoundError):
            QueueService.status(999999)


class StaffOperationsTest(QueueFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_set_status(self):  # Test set status
        queue = QueueService.set_status(self.queue.id, "closed")
        self.assertEqual(queue.status, "closed")
        with self.assertRaises(QueueClosedError):
            QueueService.join(self.queue.id)
        QueueService.set_status(self.queue.id, "open")
        self.assertEqual(QueueService.join(self.queue.id).position, 1)

    def test_set_status_rejects_unknown(self):  # Test set status rejects unknown
        with self.assertRaises(InvalidInputError):
            QueueService.set_status(self.queue.id, "paused")

    def test_create_queue(self):  # Test create queue
        queue = QueueService.create_queue(self.establishment.id, "Evening", service_id=self.service.id)
        self.assertEqual(queue.status, "open")
        other = Establishment.objects.create(name="Elsewhere")
        with self.assertRaises(NotFoundError):
            QueueService.create_queue(other.id, "Wrong service", service_id=self.service.id)

    def test_list_queues(self):  # Test list queues
        QueueService.join(self.queue.id)
        QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)
        closed = QueueService.create_queue(self.establishment.id, "Evening", status="closed")
        elsewhere = Establishment.objects.create(name="Elsewhere")
        QueueService.create_queue(elsewhere.id, "Walk-ins")

        queues = list(QueueService.list_queues(establishment_id=self.establishment.id))
        self.assertEqual([q.id for q in queues], [closed.id, self.queue.id])
        self.assertEqual([q.waiting_count for q in queues], [0, 1])

        open_queues = QueueService.list_queues(establishment_id=self.establishment.id, status="open")
        self.assertEqual([q.id for q in open_queues], [self.queue.id])
        self.assertEqual(QueueService.list_queues().count(), 3)

        with self.assertRaises(InvalidInputError):
            QueueService.list_queues(status="paused")

    def test_get_queue(self):  # Test get queue
        QueueService.join(self.queue.id)
        entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)
        QueueService.leave(entry.id, user_id=self.client_user.pk)

        queue = QueueService.get_queue(self.queue.id)
        self.assertEqual(queue.name, "Walk-ins")
        self.assertEqual(queue.waiting_count, 1)

        with self.assertRaises(NotFoundError):
            QueueService.get_queue(999999)

    def test_mark_served(self):  # Test mark served
        entry = QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)

        served = QueueService.mark_served(entry.id)
        self.assertEqual(served.status, "served")
        self.assertIsNotNone(served.served_at)

    def test_mark_no_show(self):  # Test mark no show
        entry = QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)
        self.assertEqual(QueueService.mark_entry_no_show(entry.id).status, "no_show")

    def test_waiting_entry_cannot_be_served(self):  # Test waiting entry cannot be served
        entry = QueueService.join(self.queue.id)
        with self.assertRaises(InvalidStateError):
            QueueService.mark_served(entry.id)

    def test_board(self):  # Test board
        served = QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)
        QueueService.mark_served(served.id)
        being_served = QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)
        normal = QueueService.join(self.queue.id)
        urgent = QueueService.join(self.queue.id, priority=3)

        board = QueueService.board(self.queue.id)

        self.assertEqual([e.id for e in board["waiting"]], [urgent.id, normal.id])
        self.assertEqual([e.estimated_wait_minutes for e in board["waiting"]], [0, 20])
        self.assertEqual([e.id for e in board["called"]], [being_served.id])
        self.assertEqual(board["stats"]["total_waiting"], 2)
        self.assertEqual(board["stats"]["total_being_served"], 1)
        self.assertEqual(board["stats"]["total_served_today"], 1)
        self.assertEqual(board["stats"]["average_wait_minutes"], 0)


class EventPublicationTest(QueueFixturesMixin, TestCase):
    def setUp(self):  # Setup
        self.make_fixtures()

    def test_join_publishes_after_commit(self):  # Test join publishes after commit
        with mock.patch("queue_management.tasks.broadcast_event.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                entry = QueueService.join(self.queue.id, user_id=self.client_user.pk)

        delay.assert_called_once()
        groups, message = delay.call_args[0]
        self.assertEqual(groups, [queue_group(self.queue.id)])
        self.assertEqual(message["event"], "queue.joined")
        self.assertEqual(message["data"]["entry_id"], entry.id)

    def test_failed_join_publishes_nothing(self):  # Test failed join publishes nothing
        self.queue.status = "closed"
        self.queue.save()
        with mock.patch("queue_management.tasks.broadcast_event.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(QueueClosedError):
                    QueueService.join(self.queue.id)

        self.assertEqual(callbacks, [])
        delay.assert_not_called()

    def test_broker_failure_is_swallowed(self):  # Test broker failure is swallowed
        with mock.patch(
            "queue_management.tasks.broadcast_event.delay", side_effect=ConnectionError("down")
        ):
            with self.captureOnCommitCallbacks(execute=True):
                publish_event("queue.called", {"queue_id": self.queue.id, "entry_id": 1})

    def test_broadcast_reaches_group(self):  # Test broadcast reaches group
        layer = get_channel_layer()
        self.addCleanup(async_to_sync(layer.flush))
        channel = async_to_sync(layer.new_channel)()
        async_to_sync(layer.group_add)(queue_group(self.queue.id), channel)

        sent = broadcast_event(
            [queue_group(self.queue.id)],
            {"event": "queue.called", "data": {"queue_id": self.queue.id}, "timestamp": "now"},
        )

        self.assertEqual(sent, 1)
        message = async_to_sync(layer.receive)(channel)
        self.assertEqual(message["type"], "queue.event")
        self.assertEqual(message["event"], "queue.called")

    def test_broadcast_without_layer(self):  # Test broadcast without layer
        with mock.patch("queue_management.tasks.get_channel_layer", return_value=None):
            self.assertEqual(broadcast_event(["queue_1"], {"event": "queue.left"}), 0)


class QueueConcurrencyTest(QueueFixturesMixin, TransactionTestCase):
    """Real threads against a committed database"""

    def setUp(self):  # Setup
        self.make_fixtures()

    def _run_threads(self, target, count):
        errors = []

        def worker(index):
            try:
                target(index)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        return errors

    def test_concurrent_joins_get_unique_positions(self):  # Test concurrent joins get unique positions
        users = [self.make_user(i) for i in range(12)]
        positions = []

        def join(index):
            positions.append(QueueService.join(self.queue.id, user_id=users[index].pk).position)

        errors = self._run_threads(join, len(users))

        self.assertEqual(errors, [])
        self.assertEqual(sorted(positions), list(range(1, len(users) + 1)))
        stored = list(QueueEntry.objects.filter(queue=self.queue).values_list("position", flat=True))
        self.assertEqual(sorted(stored), list(range(1, len(users) + 1)))

    def test_concurrent_call_next_never_shares_an_entry(self):  # Test concurrent call next never shares an entry
        for _ in range(5):
            QueueService.join(self.queue.id)
        called = []

        def call(index):
            result = QueueService.call_next(self.queue.id)
            if result is not None:
                called.append(result.record.id)

        errors = self._run_threads(call, 8)

        self.assertEqual(errors, [])
        self.assertEqual(len(called), 5)
        self.assertEqual(len(set(called)), 5)
        self.assertEqual(QueueEntry.objects.filter(status="called").count(), 5)
        self.assertFalse(QueueEntry.objects.filter(status="waiting").exists())


class QueueAPITest(QueueFixturesMixin, APITestCase):
    def setUp(self):  # Setup
        self.client = APIClient()
        self.make_fixtures()

    def test_requires_authentication(self):  # Test requires authentication
        url = reverse("queue_management:queue_join", args=[self.queue.id])
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_join_and_status(self):  # Test join and status
        self.client.force_authenticate(user=self.client_user)

        response = self.client.post(
            reverse("queue_management:queue_join", args=[self.queue.id]), {}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["entry"]["position"], 1)
        self.assertEqual(response.data["entry"]["estimated_wait_minutes"], 0)

        response = self.client.get(reverse("queue_management:queue_status", args=[self.queue.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_waiting"], 1)
        self.assertEqual(response.data["user_position"], 1)

    def test_client_cannot_set_priority(self):  # Test client cannot set priority
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(
            reverse("queue_management:queue_join", args=[self.queue.id]),
            {"priority": 3},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"]["kind"], "unauthorized")

    def test_negative_priority_is_invalid(self):  # Test negative priority is invalid
        self.client.force_authenticate(user=self.staff)
        response = self.client.post(
            reverse("queue_management:queue_join", args=[self.queue.id]),
            {"priority": -1},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["kind"], "invalid_input")

    def test_closed_queue_is_conflict(self):  # Test closed queue is conflict
        self.queue.status = "closed"
        self.queue.save()
        self.client.force_authenticate(user=self.client_user)

        response = self.client.post(
            reverse("queue_management:queue_join", args=[self.queue.id]), {}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["code"], "QUEUE_CLOSED")

    def test_missing_queue_is_not_found(self):  # Test missing queue is not found
        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(reverse("queue_management:queue_status", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_call_next_is_staff_only(self):  # Test call next is staff only
        QueueService.join(self.queue.id)
        url = reverse("queue_management:queue_call_next", args=[self.queue.id])

        self.client.force_authenticate(user=self.client_user)
        self.assertEqual(self.client.post(url, {}, format="json").status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.staff)
        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["kind"], "queue_entry")
        self.assertEqual(response.data["entry"]["status"], "called")

        response = self.client.post(url, {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["kind"])

    def test_leave_other_users_entry_is_forbidden(self):  # Test leave other users entry is forbidden
        entry = QueueService.join(self.queue.id, user_id=self.other_user.pk)
        self.client.force_authenticate(user=self.client_user)

        response = self.client.post(reverse("queue_management:entry_leave", args=[entry.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_queue_management(self):  # Test staff queue management
        self.client.force_authenticate(user=self.staff)

        response = self.client.post(
            reverse("queue_management:queue_create"),
            {"establishment_id": self.establishment.id, "name": "Express"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        queue_id = response.data["queue"]["id"]

        response = self.client.patch(
            reverse("queue_management:queue_detail", args=[queue_id]),
            {"status": "closed"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["queue"]["status"], "closed")

        response = self.client.patch(
            reverse("queue_management:queue_detail", args=[queue_id]),
            {"status": "paused"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_get_queues(self):  # Test list and get queues
        QueueService.join(self.queue.id)
        QueueService.join(self.queue.id)
        closed = QueueService.create_queue(self.establishment.id, "Evening", status="closed")
        self.client.force_authenticate(user=self.client_user)

        response = self.client.get(reverse("queue_management:queue_list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total"], 2)
        self.assertEqual([q["id"] for q in response.data["queues"]], [closed.id, self.queue.id])

        response = self.client.get(
            reverse("queue_management:queue_list"),
            {"establishment_id": self.establishment.id, "status": "open"},
        )
        self.assertEqual(response.data["total"], 1)
        self.assertEqual(response.data["queues"][0]["waiting_count"], 2)

        response = self.client.get(reverse("queue_management:queue_list"), {"status": "paused"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse("queue_management:queue_get", args=[self.queue.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["queue"]["waiting_count"], 2)

        response = self.client.get(reverse("queue_management:queue_get", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clients_cannot_create_or_close_queues(self):  # Test clients cannot create or close queues
        self.client.force_authenticate(user=self.client_user)

        response = self.client.post(
            reverse("queue_management:queue_create"),
            {"establishment_id": self.establishment.id, "name": "Express"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.patch(
            reverse("queue_management:queue_detail", args=[self.queue.id]),
            {"status": "closed"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_served_and_board(self):  # Test served and board
        entry = QueueService.join(self.queue.id)
        QueueService.call_next(self.queue.id)
        QueueService.join(self.queue.id)
        self.client.force_authenticate(user=self.staff)

        response = self.client.post(reverse("queue_management:entry_served", args=[entry.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["entry"]["status"], "served")

        response = self.client.post(reverse("queue_management:entry_no_show", args=[entry.id]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse("queue_management:queue_board", args=[self.queue.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["stats"]["total_waiting"], 1)
        self.assertEqual(response.data["stats"]["total_served_today"], 1)
        self.assertEqual(len(response.data["waiting"]), 1)


class QueueAdminTest(SimpleTestCase):
    def test_status_is_read_only(self):  # Test status is read only
        request = RequestFactory().get("/admin/")
        for model in (Queue, QueueEntry):
            model_admin = admin.site._registry[model]
            self.assertIn("status", model_admin.get_readonly_fields(request))


class QueueConsumerTest(SimpleTestCase):
    def test_receives_queue_events(self):  # Test receives queue events
        layer = get_channel_layer()
        self.addCleanup(async_to_sync(layer.flush))

        async def scenario():
            communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), "/ws/queues/5/")
            connected, _ = await communicator.connect()
            hello = await communicator.receive_json_from()
            await layer.group_send(
                queue_group(5),
                {"type": "queue.event", "event": "queue.called", "data": {"entry_id": 9}, "timestamp": "now"},
            )
            message = await communicator.receive_json_from()
            await communicator.disconnect()
            return connected, hello, message

        connected, hello, message = async_to_sync(scenario)()

        self.assertTrue(connected)
        self.assertEqual(hello, {"type": "connection_established", "queue_id": 5})
        self.assertEqual(message["event"], "queue.called")
        self.assertEqual(message["data"], {"entry_id": 9})
