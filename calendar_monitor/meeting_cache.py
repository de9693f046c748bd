"""TTL-cached meeting aggregation for calendar_monitor.

The cache owns the last published snapshot. A query within the TTL serves the
snapshot as is; a stale query runs one refresh cycle: every source is fetched
and parsed concurrently (each bounded by a timeout), results are merged,
deduplicated and sorted, and a new snapshot replaces the old one whole.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from .datetime_utils import FLOATING_UTC_OFFSET, today_and_tomorrow
from .event_merger import EventMerger
from .event_parser import parse_ics_feed
from .exceptions import SourceError
from .fetcher import DEFAULT_FETCH_TIMEOUT, SourceFetcher
from .models import LocalSource, Meeting, RemoteSource

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300

Source = Union[LocalSource, RemoteSource]


@dataclass(frozen=True)
class Snapshot:
    """Immutable ``(meetings, fetched_at)`` pair published by a refresh."""

    meetings: tuple[Meeting, ...]
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()


class SourceStatus(str, Enum):
    """Outcome of loading one source during a refresh."""

    OK = "ok"
    FAILED = "failed"


class SourceResult(BaseModel):
    """Per-source result of a refresh cycle."""

    locator: str
    status: SourceStatus
    meetings: list[Meeting] = Field(default_factory=list)
    skipped_count: int = 0
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SourceStatus.OK


class MeetingCache:
    """Single-writer cache of the aggregated meeting list.

    Refreshes are serialized by an ``asyncio.Lock``; readers only ever see a
    complete snapshot because the snapshot reference is swapped in one step.
    """

    def __init__(
        self,
        fetcher: Optional[SourceFetcher] = None,
        merger: Optional[EventMerger] = None,
        floating_offset: timedelta = FLOATING_UTC_OFFSET,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self.fetcher = fetcher or SourceFetcher()
        self.merger = merger or EventMerger()
        self.floating_offset = floating_offset
        self.fetch_timeout = fetch_timeout
        self._snapshot: Optional[Snapshot] = None
        self._last_results: tuple[SourceResult, ...] = ()
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def last_results(self) -> tuple[SourceResult, ...]:
        """Per-source outcomes of the most recent refresh."""
        return self._last_results

    def is_fresh(self, ttl: float, now: datetime) -> bool:
        """True when a snapshot exists and ``0 <= age < ttl``."""
        snapshot = self._snapshot
        if snapshot is None:
            return False
        age = snapshot.age_seconds(now)
        return 0 <= age < ttl

    def invalidate(self) -> None:
        """Force the next query to refresh."""
        self._snapshot = None

    async def get_or_refresh(
        self, sources: Sequence[Source], ttl: float, now: datetime
    ) -> tuple[Meeting, ...]:
        """Serve the snapshot while fresh, otherwise refresh and publish a new one.

        Args:
            sources: Calendar sources to aggregate
            ttl: Cache lifetime in seconds
            now: Reference instant for the TTL check and the new ``fetched_at``

        Returns:
            Meetings sorted ascending by start time
        """
        snapshot = self._snapshot
        if snapshot is not None and self.is_fresh(ttl, now):
            logger.debug("Returning cached meetings (%d items)", len(snapshot.meetings))
            return snapshot.meetings

        async with self._lock:
            # Another caller may have refreshed while we waited for the lock
            snapshot = self._snapshot
            if snapshot is not None and self.is_fresh(ttl, now):
                return snapshot.meetings

            logger.info("Cache expired or empty, fetching fresh calendar data")
            snapshot = await self._refresh(sources, now)
            return snapshot.meetings

    async def _refresh(self, sources: Sequence[Source], now: datetime) -> Snapshot:
        today, tomorrow = today_and_tomorrow(now)
        results = await asyncio.gather(
            *(self._load_source(source, today, tomorrow) for source in sources)
        )

        for result in results:
            if result.ok:
                logger.info("Loaded %d meetings from %s", len(result.meetings), result.locator)
            else:
                logger.warning("Failed to load '%s': %s", result.locator, result.error_message)

        meetings = self.merger.merge(result.meetings for result in results)
        snapshot = Snapshot(meetings=tuple(meetings), fetched_at=now)

        self._snapshot = snapshot
        self._last_results = tuple(results)
        logger.info(
            "Updated cache with %d meetings from %d sources (%d failed)",
            len(meetings),
            len(results),
            sum(1 for r in results if not r.ok),
        )
        return snapshot

    def _timeout_for(self, source: Source) -> float:
        if isinstance(source, RemoteSource):
            return source.timeout
        return self.fetch_timeout

    async def _load_source(self, source: Source, today: date, tomorrow: date) -> SourceResult:
        """Fetch and parse one source; failures become a FAILED result."""
        try:
            content = await asyncio.wait_for(
                self.fetcher.fetch(source), timeout=self._timeout_for(source)
            )
        except SourceError as e:
            return SourceResult(
                locator=source.locator, status=SourceStatus.FAILED, error_message=str(e)
            )
        except asyncio.TimeoutError:
            return SourceResult(
                locator=source.locator,
                status=SourceStatus.FAILED,
                error_message=f"Fetch timed out after {self._timeout_for(source)}s",
            )
        except Exception as e:
            logger.exception("Unexpected error loading %s", source.locator)
            return SourceResult(
                locator=source.locator,
                status=SourceStatus.FAILED,
                error_message=f"Unexpected error: {e}",
            )

        try:
            outcome = parse_ics_feed(
                content, today, tomorrow, self.floating_offset, source_name=source.locator
            )
        except Exception as e:
            logger.exception("Unexpected error parsing %s", source.locator)
            return SourceResult(
                locator=source.locator,
                status=SourceStatus.FAILED,
                error_message=f"Unexpected parse error: {e}",
            )

        if not outcome.success:
            return SourceResult(
                locator=source.locator,
                status=SourceStatus.FAILED,
                error_message=outcome.error_message,
            )

        return SourceResult(
            locator=source.locator,
            status=SourceStatus.OK,
            meetings=outcome.meetings,
            skipped_count=outcome.skipped_count,
        )
