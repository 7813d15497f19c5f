"""
Scheduling parameters read from Django settings

Values come from the environment through backend/settings.py; the helpers
here only apply defaults and convert to the types the engines use.
"""
from datetime import time, timedelta

from django.conf import settings

DEFAULT_GRACE_BEFORE_MINUTES = 10
DEFAULT_GRACE_AFTER_MINUTES = 15
DEFAULT_SERVICE_MINUTES = 15
DEFAULT_OPENS_AT = time(9, 0)
DEFAULT_CLOSES_AT = time(18, 0)


def grace_before():
    return timedelta(
        minutes=getattr(settings, "QUEUE_GRACE_BEFORE_MINUTES", DEFAULT_GRACE_BEFORE_MINUTES)
    )


def grace_after():
    return timedelta(
        minutes=getattr(settings, "QUEUE_GRACE_AFTER_MINUTES", DEFAULT_GRACE_AFTER_MINUTES)
    )


def default_service_minutes():
    return getattr(settings, "QUEUE_DEFAULT_SERVICE_MINUTES", DEFAULT_SERVICE_MINUTES)


def _parse_clock(value, fallback):
    if isinstance(value, time):
        return value
    if not value:
        return fallback
    hours, _, minutes = str(value).partition(":")
    return time(int(hours), int(minutes or 0))


def business_hours():
    """Return the (opens_at, closes_at) pair used by slot generation."""
    return (
        _parse_clock(getattr(settings, "SCHEDULING_OPENS_AT", None), DEFAULT_OPENS_AT),
        _parse_clock(getattr(settings, "SCHEDULING_CLOSES_AT", None), DEFAULT_CLOSES_AT),
    )
