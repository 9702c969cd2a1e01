"""
Clinic-local calendar helpers.

Queue numbers and the daily cash total reset at midnight in the clinic's
own time zone (``CLINIC_TIME_ZONE``), not at UTC midnight.
"""
from datetime import datetime, time
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone


def clinic_tz():
    return ZoneInfo(settings.CLINIC_TIME_ZONE)


def local_today(now=None):
    """Calendar date at the clinic for ``now`` (defaults to the current time)."""
    now = now or timezone.now()
    return timezone.localtime(now, clinic_tz()).date()


def local_midnight(now=None):
    """Aware datetime for the most recent local midnight at the clinic."""
    return datetime.combine(local_today(now), time.min, tzinfo=clinic_tz())
