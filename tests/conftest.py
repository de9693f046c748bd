"""Shared fixtures for calendar_monitor tests."""

from collections.abc import AsyncIterator, Generator
from datetime import UTC, date, datetime
from typing import Any

import pytest
import pytest_asyncio

from calendar_monitor.http_client import close_all_clients
from calendar_monitor.models import Meeting


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that finish in well under a second")
    config.addinivalue_line("markers", "integration: Tests spanning several modules")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep configuration and frozen-time variables from leaking between tests."""
    for name in (
        "CALENDAR_MONITOR_TEST_TIME",
        "CALENDAR_MONITOR_DEBUG",
        "CALENDAR_MONITOR_LOG_LEVEL",
        "ICS_FILE_PATHS",
        "ICS_FILE_PATH",
        "GOOGLE_ACCESS_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest_asyncio.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


@pytest.fixture
def now() -> datetime:
    """Monday 2025-01-06 10:00 UTC."""
    return datetime(2025, 1, 6, 10, 0, tzinfo=UTC)


@pytest.fixture
def today(now: datetime) -> date:
    return now.date()


@pytest.fixture
def tomorrow(now: datetime) -> date:
    return date(2025, 1, 7)


@pytest.fixture
def make_meeting() -> Any:
    """Factory building UTC meetings from ``HH:MM`` strings on 2025-01-06."""

    def _make(
        title: str,
        start: str,
        end: str,
        day: int = 6,
        **kwargs: Any,
    ) -> Meeting:
        start_h, start_m = (int(p) for p in start.split(":"))
        end_h, end_m = (int(p) for p in end.split(":"))
        return Meeting(
            title=title,
            start_time=datetime(2025, 1, day, start_h, start_m, tzinfo=UTC),
            end_time=datetime(2025, 1, day, end_h, end_m, tzinfo=UTC),
            **kwargs,
        )

    return _make


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics() -> str:
    """Calendar with meetings today, tomorrow and outside the window.

    - "Standup" today 09:00-09:15 UTC
    - "Planning" tomorrow 14:00-15:00 UTC
    - "Old Review" on 2025-01-01 (dropped by the today/tomorrow filter)
    - "[Focus]" time block today 09:30-11:30 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Calendar Monitor Test//EN
BEGIN:VEVENT
UID:standup@test
DTSTART:20250106T090000Z
DTEND:20250106T091500Z
SUMMARY:Standup
LOCATION:Room 1
DESCRIPTION:Daily standup
END:VEVENT
BEGIN:VEVENT
UID:planning@test
DTSTART:20250107T140000Z
DTEND:20250107T150000Z
SUMMARY:Planning
END:VEVENT
BEGIN:VEVENT
UID:old@test
DTSTART:20250101T100000Z
DTEND:20250101T110000Z
SUMMARY:Old Review
END:VEVENT
BEGIN:VEVENT
UID:focus@test
DTSTART:20250106T093000Z
DTEND:20250106T113000Z
SUMMARY:[Focus]
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """Weekly Monday 1:1 anchored in December 2024, plus an unsupported daily rule."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Calendar Monitor Test//EN
BEGIN:VEVENT
UID:one-on-one@test
DTSTART:20241202T103000Z
DTEND:20241202T110000Z
SUMMARY:1:1
RRULE:FREQ=WEEKLY;BYDAY=MO
END:VEVENT
BEGIN:VEVENT
UID:daily@test
DTSTART:20241202T080000Z
DTEND:20241202T081500Z
SUMMARY:Daily Sync
RRULE:FREQ=DAILY
END:VEVENT
END:VCALENDAR
"""
