"""Exception hierarchy for calendar_monitor.

Only source failures are true errors. Malformed timestamps and unsupported
recurrence rules are skip reasons: they are recorded on parse results so
callers can tell a skipped event from a failed source without reading logs.
"""

from typing import Optional


class CalendarMonitorError(Exception):
    """Base exception for all calendar_monitor errors."""


class ConfigError(CalendarMonitorError):
    """Configuration value is missing or invalid."""


class SourceError(CalendarMonitorError):
    """A single calendar source could not be read.

    Fatal to that source only; the cache refresh catches it and continues
    with the remaining sources.
    """

    def __init__(self, message: str, locator: Optional[str] = None):
        super().__init__(message)
        self.locator = locator


class SourceNotFound(SourceError):
    """Local ICS file does not exist."""


class SourceUnavailable(SourceError):
    """Network failure, timeout, unreadable file or non-success HTTP status."""

    def __init__(
        self, message: str, locator: Optional[str] = None, status_code: Optional[int] = None
    ):
        super().__init__(message, locator)
        self.status_code = status_code


class MalformedDateTime(CalendarMonitorError):
    """Timestamp in an unsupported shape. Used as a skip reason."""


class UnsupportedRecurrence(CalendarMonitorError):
    """RRULE other than FREQ=WEEKLY, or unparseable. Used as a skip reason."""


class RemoteCalendarError(CalendarMonitorError):
    """Authenticated remote calendar request or response was unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
