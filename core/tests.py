import threading
from datetime import time, timedelta

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status

from core.api import error_response
from core.exceptions import (
    AppointmentConflictError,
    CheckInTooEarlyError,
    ErrorKind,
    InvalidInputError,
    NotFoundError,
    QueueClosedError,
    UnauthorizedError,
)
from core import locking
from core.locking import keyed_lock, queue_key, professional_key, supports_row_locks
from core.logging_config import get_logging_config
from core.models import Participant
from core import scheduling_config


class ParticipantModelTest(TestCase):  # ParticipantModelTest class implementation
    def test_create_participant(self):  # Test create participant
        participant = Participant.objects.create_user(
            email="Client@Test.com", password="test123", full_name="Ada Client"
        )
        self.assertEqual(participant.email, "Client@test.com")
        self.assertEqual(participant.role, "client")
        self.assertTrue(participant.check_password("test123"))
        self.assertFalse(participant.is_operator)

    def test_create_superuser(self):  # Test create superuser
        admin = Participant.objects.create_superuser(email="admin@test.com", password="test123")
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role, "admin")
        self.assertTrue(admin.is_operator)

    def test_staff_roles_are_operators(self):  # Test staff roles are operators
        for role in ("staff", "professional"):
            participant = Participant.objects.create_user(
                email=f"{role}@test.com", password="test123", role=role
            )
            self.assertTrue(participant.is_operator)

    def test_email_required(self):  # Test email required
        with self.assertRaises(ValueError):
            Participant.objects.create_user(email="", password="test123")


class ErrorTaxonomyTest(SimpleTestCase):
    def test_subclasses_keep_parent_kind(self):  # Test subclasses keep parent kind
        self.assertEqual(QueueClosedError("closed").kind, ErrorKind.CONFLICT)
        self.assertEqual(AppointmentConflictError("taken").kind, ErrorKind.CONFLICT)
        self.assertEqual(CheckInTooEarlyError("early").kind, ErrorKind.INVALID_STATE)

    def test_to_dict(self):  # Test to dict
        error = NotFoundError("Queue not found")
        self.assertEqual(
            error.to_dict(),
            {"code": "NOT_FOUND", "kind": "not_found", "message": "Queue not found"},
        )
        self.assertEqual(InvalidInputError("bad", code="BAD_DATE").code, "BAD_DATE")

    def test_error_response_status_mapping(self):  # Test error response status mapping
        cases = [
            (NotFoundError("missing"), status.HTTP_404_NOT_FOUND),
            (CheckInTooEarlyError("early"), status.HTTP_400_BAD_REQUEST),
            (UnauthorizedError("not yours"), status.HTTP_403_FORBIDDEN),
            (QueueClosedError("closed"), status.HTTP_409_CONFLICT),
            (InvalidInputError("bad"), status.HTTP_400_BAD_REQUEST),
        ]
        for error, expected in cases:
            response = error_response(error)
            self.assertEqual(response.status_code, expected)
            self.assertFalse(response.data["success"])
            self.assertEqual(response.data["error"]["kind"], error.kind.value)


class SchedulingConfigTest(SimpleTestCase):
    def test_defaults(self):  # Test defaults
        self.assertEqual(scheduling_config.grace_before(), timedelta(minutes=10))
        self.assertEqual(scheduling_config.grace_after(), timedelta(minutes=15))
        self.assertEqual(scheduling_config.default_service_minutes(), 15)
        self.assertEqual(scheduling_config.business_hours(), (time(9, 0), time(18, 0)))

    @override_settings(
        QUEUE_GRACE_BEFORE_MINUTES=5,
        QUEUE_GRACE_AFTER_MINUTES=30,
        SCHEDULING_OPENS_AT="08:30",
        SCHEDULING_CLOSES_AT=time(12, 0),
    )
    def test_overrides(self):  # Test overrides
        self.assertEqual(scheduling_config.grace_before(), timedelta(minutes=5))
        self.assertEqual(scheduling_config.grace_after(), timedelta(minutes=30))
        self.assertEqual(scheduling_config.business_hours(), (time(8, 30), time(12, 0)))


class LoggingConfigTest(SimpleTestCase):
    def test_json_format_uses_json_formatter(self):  # Test json format uses json formatter
        config = get_logging_config("/nonexistent/base/dir", log_format="json")
        self.assertEqual(config["handlers"]["console"]["formatter"], "json")
        self.assertIn("pythonjsonlogger", config["formatters"]["json"]["()"])
        self.assertNotIn("app_file", config["handlers"])

    def test_engine_loggers_configured(self):  # Test engine loggers configured
        config = get_logging_config("/nonexistent/base/dir")
        for name in ("core", "queue_management", "appointments"):
            self.assertIn(name, config["loggers"])


class KeyedLockTest(TestCase):
    def test_keys(self):  # Test keys
        self.assertEqual(queue_key(7), "queue:7")
        self.assertEqual(professional_key(3), "professional:3")

    def test_same_key_is_exclusive(self):  # Test same key is exclusive
        if supports_row_locks():
            self.skipTest("Row-lock backends rely on the database instead")

        holder_inside = threading.Event()
        release_holder = threading.Event()
        order = []

        def holder():
            with keyed_lock("queue:1"):
                order.append("holder-in")
                holder_inside.set()
                release_holder.wait(timeout=5)
                order.append("holder-out")

        def contender():
            holder_inside.wait(timeout=5)
            with keyed_lock("queue:1"):
                order.append("contender-in")

        threads = [threading.Thread(target=holder), threading.Thread(target=contender)]
        for t in threads:
            t.start()
        holder_inside.wait(timeout=5)
        # The contender is blocked until the holder releases
        self.assertEqual(order, ["holder-in"])
        release_holder.set()
        for t in threads:
            t.join(timeout=5)

        self.assertEqual(order, ["holder-in", "holder-out", "contender-in"])
        self.assertNotIn("queue:1", locking._key_locks)

    def test_different_keys_do_not_block(self):  # Test different keys do not block
        if supports_row_locks():
            self.skipTest("Row-lock backends rely on the database instead")

        entered = threading.Event()

        def other():
            with keyed_lock("queue:2"):
                entered.set()

        with keyed_lock("queue:1"):
            t = threading.Thread(target=other)
            t.start()
            self.assertTrue(entered.wait(timeout=5))
            t.join(timeout=5)

    def test_reentrant_within_thread(self):  # Test reentrant within thread
        with keyed_lock("professional:1"):
            with keyed_lock("professional:1"):
                pass

    def test_released_keys_are_dropped(self):  # Test released keys are dropped
        if supports_row_locks():
            self.skipTest("Row-lock backends rely on the database instead")

        with keyed_lock("professional:42"):
            with keyed_lock("professional:42"):
                self.assertIn("professional:42", locking._key_locks)
            self.assertIn("professional:42", locking._key_locks)
        self.assertNotIn("professional:42", locking._key_locks)

        for index in range(50):
            with keyed_lock(queue_key(1000 + index)):
                pass
        self.assertFalse(any(key.startswith("queue:10") for key in locking._key_locks))
