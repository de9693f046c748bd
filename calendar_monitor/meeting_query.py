"""Meeting queries over a start-sorted meeting list.

All functions are pure. "First" means first by list position, so the caller's
sort order decides ties between meetings with the same start. Time blocks
(bracket-titled entries) never count as the current or next meeting.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Optional

from .models import Meeting, MeetingStatus


def meeting_status(meeting: Meeting, now: datetime) -> MeetingStatus:
    """Upcoming before start, InProgress for ``start <= now <= end``, Ended after."""
    return meeting.status(now)


def current_meeting(meetings: Sequence[Meeting], now: datetime) -> Optional[Meeting]:
    """First non-time-block meeting in progress at ``now``."""
    return next(
        (m for m in meetings if not m.is_time_block and m.is_active(now)),
        None,
    )


def next_meeting(meetings: Sequence[Meeting], now: datetime) -> Optional[Meeting]:
    """First non-time-block meeting that has not started at ``now``."""
    return next(
        (m for m in meetings if not m.is_time_block and m.is_upcoming(now)),
        None,
    )


def current_and_next(
    meetings: Sequence[Meeting], now: datetime
) -> tuple[Optional[Meeting], Optional[Meeting]]:
    return current_meeting(meetings, now), next_meeting(meetings, now)


def active_time_blocks(meetings: Sequence[Meeting], now: datetime) -> list[Meeting]:
    """All time blocks in progress at ``now``, in list order."""
    return [m for m in meetings if m.is_time_block and m.is_active(now)]


def meetings_for_date(meetings: Sequence[Meeting], day: date) -> list[Meeting]:
    """Meetings whose start falls on ``day`` (UTC calendar date)."""
    return [m for m in meetings if m.start_time.astimezone(UTC).date() == day]


def countdown_seconds(current: Optional[Meeting], now: datetime) -> Optional[int]:
    """Seconds until ``current`` ends, or None without a current meeting."""
    if current is None:
        return None
    return current.time_until_end(now)
