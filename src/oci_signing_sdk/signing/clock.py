"""
UTC time source for request signing

The date header is part of every signature and the server rejects requests
whose date is too far from its own clock, so signing waits until a valid
wall-clock reading is available instead of signing with an unset clock.
"""

import time
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from ..exceptions import TimeUnavailableError, ErrorCodes

logger = logging.getLogger(__name__)

# Devices that have not synced time yet report dates in 1970.
DEFAULT_MIN_VALID_YEAR = 2016
DEFAULT_WAIT_ATTEMPTS = 50
DEFAULT_WAIT_DELAY = 0.1

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class Clock(Protocol):
    """Source of the current UTC time"""

    def current_utc_time(self) -> Optional[datetime]:
        """Return the current time, or None if it is not available yet."""
        ...


class SystemClock:
    """
    Clock backed by the host wall clock.

    Readings before ``min_valid_year`` are treated as "clock not set yet".
    """

    def __init__(self, min_valid_year: int = DEFAULT_MIN_VALID_YEAR,
                 now: Optional[Callable[[], datetime]] = None):
        self.min_valid_year = min_valid_year
        self._now = now or (lambda: datetime.now(timezone.utc))

    def current_utc_time(self) -> Optional[datetime]:
        value = self._now()
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if value.year < self.min_valid_year:
            return None
        return value


class FixedClock:
    """Clock that always returns the same instant."""

    def __init__(self, value: datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self.value = value.astimezone(timezone.utc)

    def current_utc_time(self) -> Optional[datetime]:
        return self.value


def wait_for_utc_time(
    clock: Clock,
    attempts: int = DEFAULT_WAIT_ATTEMPTS,
    delay: float = DEFAULT_WAIT_DELAY,
    sleep: Callable[[float], None] = time.sleep
) -> datetime:
    """
    Poll a clock until it returns a valid reading.

    Args:
        clock: Clock to poll
        attempts: Maximum number of readings to take
        delay: Seconds to sleep between readings
        sleep: Sleep function

    Returns:
        datetime: Aware UTC datetime

    Raises:
        TimeUnavailableError: If no valid reading was obtained
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        value = clock.current_utc_time()
        if value is not None:
            return value
        logger.debug(f"Failed to obtain time (attempt {attempt}/{attempts})")
        if attempt < attempts:
            sleep(delay)

    raise TimeUnavailableError(
        f"UTC time not available after {attempts} attempts",
        ErrorCodes.TIME_UNAVAILABLE,
        {"attempts": attempts, "delay": delay}
    )


def format_http_date(value: datetime) -> str:
    """
    Format a datetime as an RFC 1123 HTTP-date in GMT.

    Rendered without strftime so the output does not depend on the locale.

    Example: ``Wed, 21 Oct 2024 07:28:00 GMT``
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return (
        f"{_WEEKDAYS[value.weekday()]}, {value.day:02d} {_MONTHS[value.month - 1]} "
        f"{value.year:04d} {value.hour:02d}:{value.minute:02d}:{value.second:02d} GMT"
    )
