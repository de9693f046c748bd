"""RRULE expansion for calendar_monitor.

Only weekly rules are expanded, and only for two dates: today and tomorrow.
BYDAY and UNTIL are honoured; every other RRULE part (INTERVAL, COUNT, WKST,
...) is ignored.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from .datetime_utils import parse_ical_date
from .exceptions import UnsupportedRecurrence

logger = logging.getLogger(__name__)

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

SUPPORTED_FREQUENCY = "WEEKLY"

Occurrence = tuple[datetime, datetime]


@dataclass(frozen=True)
class RecurrenceRule:
    """Restricted view of an RRULE string."""

    frequency: str
    until: Optional[date] = None
    by_day: Optional[frozenset[str]] = None

    @classmethod
    def parse(cls, rrule_string: str) -> "RecurrenceRule":
        """Parse an RRULE string such as ``FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20250101``.

        Raises:
            UnsupportedRecurrence: If the string is empty or has no FREQ part
        """
        if not rrule_string or not rrule_string.strip():
            raise UnsupportedRecurrence("Empty RRULE string")

        parts: dict[str, str] = {}
        for part in rrule_string.strip().removeprefix("RRULE:").split(";"):
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            parts[key.strip().upper()] = value.strip()

        frequency = parts.get("FREQ", "").upper()
        if not frequency:
            raise UnsupportedRecurrence(f"RRULE missing FREQ: {rrule_string}")

        until = None
        if "UNTIL" in parts:
            until = parse_ical_date(parts["UNTIL"])
            if until is None:
                logger.warning("Failed to parse UNTIL date: %r", parts["UNTIL"])

        by_day = None
        if parts.get("BYDAY"):
            # Ordinal prefixes (e.g. "1MO") only make sense for monthly rules; keep the code.
            by_day = frozenset(
                item.strip().upper()[-2:] for item in parts["BYDAY"].split(",") if item.strip()
            )

        return cls(frequency=frequency, until=until, by_day=by_day)

    @property
    def is_supported(self) -> bool:
        return self.frequency == SUPPORTED_FREQUENCY

    def occurs_on(self, day: date, anchor_weekday: int) -> bool:
        """Weekday membership; without BYDAY only the anchor's weekday matches."""
        if self.by_day is None:
            return day.weekday() == anchor_weekday
        return WEEKDAY_CODES[day.weekday()] in self.by_day


def _adjust_time_to_date(original: datetime, target: date) -> datetime:
    """Keep the wall-clock time (and tzinfo) of ``original`` on ``target``."""
    return original.replace(year=target.year, month=target.month, day=target.day)


def expand(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: Union[str, RecurrenceRule],
    today: date,
    tomorrow: date,
) -> list[Occurrence]:
    """Expand a weekly rule into occurrences on ``today`` and ``tomorrow``.

    Args:
        anchor_start: DTSTART of the recurring master (UTC)
        anchor_end: DTEND of the recurring master (UTC)
        rule: RRULE string or an already parsed rule
        today: First candidate date
        tomorrow: Second candidate date

    Returns:
        Zero, one or two ``(start, end)`` pairs, today's first
    """
    if isinstance(rule, str):
        try:
            rule = RecurrenceRule.parse(rule)
        except UnsupportedRecurrence as e:
            logger.debug("Skipping unparseable RRULE: %s", e)
            return []

    if not rule.is_supported:
        logger.debug("Unsupported RRULE frequency: %s", rule.frequency)
        return []

    if rule.until is not None and today > rule.until and tomorrow > rule.until:
        logger.debug("Skipping recurring event past UNTIL %s", rule.until.isoformat())
        return []

    crosses_midnight = anchor_start.date() != anchor_end.date()
    anchor_weekday = anchor_start.weekday()
    occurrences: list[Occurrence] = []

    for day in (today, tomorrow):
        if rule.until is not None and day > rule.until:
            continue
        if not rule.occurs_on(day, anchor_weekday):
            continue

        start = _adjust_time_to_date(anchor_start, day)
        end = _adjust_time_to_date(anchor_end, day)
        if crosses_midnight:
            end += timedelta(days=1)

        logger.debug(
            "Generated occurrence %s -> %s",
            start.strftime("%Y-%m-%d %H:%M:%S"),
            end.strftime("%Y-%m-%d %H:%M:%S"),
        )
        occurrences.append((start, end))

    return occurrences
