"""Cross-source merging and deduplication for calendar_monitor.

Overlapping feeds often publish the same meeting. Two meetings are duplicates
when title and start instant are identical; the instance with the later end
time is kept as the more complete record.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from .models import Meeting

logger = logging.getLogger(__name__)


class EventMerger:
    """Combines per-source meeting lists into one sorted, duplicate-free list."""

    def deduplicate(self, meetings: Iterable[Meeting]) -> list[Meeting]:
        """Remove same-title/same-start duplicates, keeping the later end time.

        The survivor takes the position of the first occurrence of its key; on
        equal end times the first one seen is kept. The output is never longer
        than the input and deduplicating twice changes nothing.

        Args:
            meetings: Meetings in any order

        Returns:
            Deduplicated list
        """
        positions: dict[tuple[str, datetime], int] = {}
        deduplicated: list[Meeting] = []
        removed = 0

        for meeting in meetings:
            key = (meeting.title, meeting.start_time)
            position = positions.get(key)
            if position is None:
                positions[key] = len(deduplicated)
                deduplicated.append(meeting)
                continue

            removed += 1
            kept = deduplicated[position]
            if meeting.end_time > kept.end_time:
                logger.debug(
                    "Duplicate %r at %s: keeping later end %s over %s",
                    meeting.title,
                    meeting.start_time.strftime("%H:%M"),
                    meeting.end_time.strftime("%H:%M"),
                    kept.end_time.strftime("%H:%M"),
                )
                deduplicated[position] = meeting

        if removed:
            logger.debug("Removed %d duplicate meetings", removed)
        return deduplicated

    def merge(self, per_source: Iterable[Iterable[Meeting]]) -> list[Meeting]:
        """Concatenate source lists, deduplicate and sort ascending by start time.

        The sort is stable, so same-start meetings keep their source order.
        """
        combined = [meeting for meetings in per_source for meeting in meetings]
        logger.debug("Before sort/dedup: %d meetings", len(combined))
        combined.sort(key=lambda m: m.start_time)
        merged = self.deduplicate(combined)
        logger.debug("After sort/dedup: %d meetings", len(merged))
        return merged


def deduplicate_meetings(meetings: Iterable[Meeting]) -> list[Meeting]:
    """Module-level shortcut for ``EventMerger().deduplicate``."""
    return EventMerger().deduplicate(meetings)
