"""Service facade tying sources, the meeting cache and the query engine together."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Optional, Union

from . import meeting_query
from .datetime_utils import now_utc
from .meeting_cache import DEFAULT_CACHE_TTL_SECONDS, MeetingCache
from .models import LocalSource, Meeting, MeetingUpdate, RemoteSource
from .source_merger import merge_current_and_next

logger = logging.getLogger(__name__)

Source = Union[LocalSource, RemoteSource]


class CalendarService:
    """Answers meeting questions for the configured ICS sources.

    Every query goes through the cache, so a burst of queries within the TTL
    costs one refresh at most.
    """

    def __init__(
        self,
        sources: Sequence[Source],
        cache: Optional[MeetingCache] = None,
        ttl: float = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self.sources = list(sources)
        self.cache = cache or MeetingCache()
        self.ttl = ttl

        if not self.sources:
            logger.warning("No calendar sources configured; meetings will be empty")

    async def get_meetings(self, now: Optional[datetime] = None) -> list[Meeting]:
        """All aggregated meetings for today and tomorrow, sorted by start."""
        if not self.sources:
            return []
        now = now or now_utc()
        return list(await self.cache.get_or_refresh(self.sources, self.ttl, now))

    async def get_meetings_for_today(self, now: Optional[datetime] = None) -> list[Meeting]:
        now = now or now_utc()
        meetings = await self.get_meetings(now)
        return meeting_query.meetings_for_date(meetings, now.astimezone(UTC).date())

    async def get_current_and_next_meetings(
        self, now: Optional[datetime] = None
    ) -> tuple[Optional[Meeting], Optional[Meeting]]:
        now = now or now_utc()
        meetings = await self.get_meetings(now)
        return meeting_query.current_and_next(meetings, now)

    async def get_active_time_blocks(self, now: Optional[datetime] = None) -> list[Meeting]:
        now = now or now_utc()
        meetings = await self.get_meetings(now)
        return meeting_query.active_time_blocks(meetings, now)

    async def build_update(
        self,
        now: Optional[datetime] = None,
        external_meetings: Optional[Sequence[Meeting]] = None,
    ) -> MeetingUpdate:
        """Build the payload pushed to clients.

        Args:
            now: Reference instant, defaults to the current time
            external_meetings: Meetings from the authenticated remote calendar;
                they only compete for the current and next slots

        Returns:
            MeetingUpdate with the countdown measured to the end of the current meeting
        """
        now = now or now_utc()
        meetings = await self.get_meetings(now)

        current, upcoming = meeting_query.current_and_next(meetings, now)
        if external_meetings:
            current, upcoming = merge_current_and_next(
                (current, upcoming), external_meetings, now
            )

        return MeetingUpdate(
            current_meeting=current,
            next_meeting=upcoming,
            countdown_seconds=meeting_query.countdown_seconds(current, now),
            active_time_blocks=meeting_query.active_time_blocks(meetings, now),
        )
