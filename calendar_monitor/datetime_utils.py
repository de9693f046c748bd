"""DateTime parsing utilities for ICS calendar processing - calendar_monitor.

ICS timestamps arrive in three literal shapes. Floating-local timestamps (no
``Z`` suffix) are interpreted at a fixed assumed UTC offset rather than a real
timezone; the offset is a named constant that callers and configuration can
override.
"""

import logging
import os
from datetime import UTC, date, datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser

from .exceptions import MalformedDateTime

logger = logging.getLogger(__name__)

# Offset assumed for floating-local timestamps (UTC+3).
FLOATING_UTC_OFFSET = timedelta(hours=3)

TEST_TIME_ENV = "CALENDAR_MONITOR_TEST_TIME"

_UTC_FORMAT = "%Y%m%dT%H%M%SZ"
_FLOATING_FORMAT = "%Y%m%dT%H%M%S"
_DATE_FORMAT = "%Y%m%d"


def now_utc() -> datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the CALENDAR_MONITOR_TEST_TIME environment
    variable (ISO 8601, e.g. "2025-10-27T08:20:00+03:00"). Naive values are
    taken as UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(UTC)
            return dt.replace(tzinfo=UTC)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.now(UTC)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Return ``dt`` as an aware datetime, treating naive values as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def require_ical_datetime(
    dt_str: str, floating_offset: timedelta = FLOATING_UTC_OFFSET
) -> datetime:
    """Parse an ICS timestamp into a UTC datetime.

    Recognized forms, tried in order:
    - ``20231225T120000Z``: UTC
    - ``20231225T120000``: floating local time at ``floating_offset``
    - ``20231225``: midnight UTC

    Args:
        dt_str: Raw property value
        floating_offset: Assumed UTC offset for floating-local timestamps

    Raises:
        MalformedDateTime: If the value has any other shape
    """
    raw = dt_str.strip()

    if raw.endswith("Z"):
        try:
            return datetime.strptime(raw, _UTC_FORMAT).replace(tzinfo=UTC)
        except ValueError as e:
            raise MalformedDateTime(f"Unable to parse UTC datetime: {raw}") from e

    try:
        naive = datetime.strptime(raw, _FLOATING_FORMAT)
    except ValueError:
        pass
    else:
        return (naive - floating_offset).replace(tzinfo=UTC)

    try:
        day = datetime.strptime(raw, _DATE_FORMAT)
    except ValueError:
        pass
    else:
        return day.replace(tzinfo=UTC)

    raise MalformedDateTime(f"Unable to parse datetime format: {raw}")


def parse_ical_datetime(
    dt_str: str, floating_offset: timedelta = FLOATING_UTC_OFFSET
) -> Optional[datetime]:
    """Lenient ``require_ical_datetime``: logs and returns None on bad input."""
    try:
        return require_ical_datetime(dt_str, floating_offset)
    except MalformedDateTime as e:
        logger.warning("%s", e)
        return None


def parse_ical_date(value: str) -> Optional[date]:
    """Parse the leading ``YYYYMMDD`` of a value (time part ignored)."""
    date_part = value.strip()[:8]
    if len(date_part) != 8 or not date_part.isdigit():
        return None
    try:
        return datetime.strptime(date_part, _DATE_FORMAT).date()
    except ValueError:
        return None


def today_and_tomorrow(now: Optional[datetime] = None) -> tuple[date, date]:
    """UTC calendar dates of ``now`` and the following day."""
    today = (now or now_utc()).astimezone(UTC).date()
    return today, today + timedelta(days=1)
