"""
Best-effort publication of queue and appointment events

Events are handed to Celery once the surrounding transaction commits; a
rolled-back operation never announces anything. Failures are logged and
never reach the caller.
"""
import logging

from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

APPOINTMENTS_GROUP = "appointments"


def queue_group(queue_id):
    return f"queue_{queue_id}"


def groups_for(payload):  # Channel groups interested in an event
    groups = []
    if payload.get("queue_id") is not None:
        groups.append(queue_group(payload["queue_id"]))
    if payload.get("appointment_id") is not None:
        groups.append(APPOINTMENTS_GROUP)
    return groups


def _dispatch(event, payload):
    from queue_management.tasks import broadcast_event

    message = {
        "event": event,
        "data": payload,
        "timestamp": timezone.now().isoformat(),
    }
    try:
        broadcast_event.delay(groups_for(payload), message)
    except Exception as e:
        logger.warning(f"Could not publish {event}: {e}")


def publish_event(event, payload):
    """Schedule ``event`` for broadcast after the current transaction commits."""
    try:
        transaction.on_commit(lambda: _dispatch(event, payload))
    except Exception as e:
        logger.warning(f"Could not schedule {event}: {e}")
