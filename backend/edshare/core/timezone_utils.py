"""
Timezone utilities for the EdShare platform.

Booking dates and times are wall-clock values in the platform timezone;
these helpers turn them into aware datetimes for lead-time arithmetic.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from .config import settings


def get_platform_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.platform_timezone)


def platform_now() -> datetime:
    """Current moment as an aware datetime in the platform timezone."""
    return datetime.now(timezone.utc).astimezone(get_platform_timezone())


def session_start(booking_date: date, start_time: time) -> datetime:
    """
    Aware datetime for a wall-clock session start.

    Args:
        booking_date: Scheduled date
        start_time: Wall-clock start time

    Returns:
        Localized datetime (DST-correct via pytz.localize)
    """
    naive = datetime.combine(booking_date, start_time)
    return get_platform_timezone().localize(naive)


def ensure_aware(moment: datetime, assume: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """Attach the platform timezone to naive datetimes; leave aware ones alone."""
    if moment.tzinfo is not None:
        return moment
    return (assume or get_platform_timezone()).localize(moment)
