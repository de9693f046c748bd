"""VEVENT parsing for calendar_monitor.

``parse_event`` turns one component's property set into meetings. A
component that cannot produce a meeting (no usable start/end, unsupported
recurrence) is a skip, not an error: ``parse_event_detailed`` reports the
reason so the feed-level result can count skips without relying on logs.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from enum import Enum
from typing import Any, Optional, Union

from icalendar import Calendar
from pydantic import BaseModel, Field

from . import rrule_expander
from .datetime_utils import FLOATING_UTC_OFFSET, require_ical_datetime
from .exceptions import MalformedDateTime, UnsupportedRecurrence
from .models import UNTITLED_EVENT, Meeting

logger = logging.getLogger(__name__)

# Properties read from each VEVENT; all others are ignored.
EVENT_PROPERTIES = ("SUMMARY", "DTSTART", "DTEND", "RRULE", "DESCRIPTION", "LOCATION", "DURATION")

Properties = Union[Mapping[str, str], Iterable[tuple[str, str]]]


class SkipReason(str, Enum):
    """Why a component produced no meetings."""

    MALFORMED_DATETIME = "malformed_datetime"
    MISSING_TIME = "missing_time"
    UNSUPPORTED_RECURRENCE = "unsupported_recurrence"


class SkippedEvent(BaseModel):
    """A component dropped during parsing."""

    title: str
    reason: SkipReason
    detail: Optional[str] = None


class ParseOutcome(BaseModel):
    """Result of parsing one ICS feed."""

    success: bool = True
    meetings: list[Meeting] = Field(default_factory=list)
    skipped: list[SkippedEvent] = Field(default_factory=list)
    total_components: int = 0
    recurring_event_count: int = 0
    error_message: Optional[str] = None

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def parse_event_detailed(
    properties: Properties,
    today: date,
    tomorrow: date,
    floating_offset: timedelta = FLOATING_UTC_OFFSET,
) -> tuple[list[Meeting], Optional[SkippedEvent]]:
    """Parse one component's properties, reporting the skip reason if any.

    Args:
        properties: ``(NAME, raw_value)`` pairs or a mapping of them
        today: First date recurring events are expanded onto
        tomorrow: Second date recurring events are expanded onto
        floating_offset: Offset assumed for floating-local timestamps

    Returns:
        Tuple of (meetings, skipped) where ``skipped`` is None on success
    """
    items = properties.items() if isinstance(properties, Mapping) else properties

    title = UNTITLED_EVENT
    start_time = None
    end_time = None
    description = None
    location = None
    rrule = None
    malformed: list[str] = []

    for name, value in items:
        name = name.upper()
        if value is None:
            continue
        if name == "SUMMARY":
            if value:
                title = value
        elif name in ("DTSTART", "DTEND"):
            try:
                parsed = require_ical_datetime(value, floating_offset)
            except MalformedDateTime as e:
                logger.warning("%s", e)
                malformed.append(f"{name}={value}")
                continue
            if name == "DTSTART":
                start_time = parsed
            else:
                end_time = parsed
        elif name == "RRULE":
            logger.debug("Found RRULE for %r: %s", title, value)
            rrule = value
        elif name == "DURATION":
            # DTEND is required; DURATION alone does not make a usable event
            logger.debug("Ignoring DURATION property: %s", value)
        elif name == "DESCRIPTION":
            description = value
        elif name == "LOCATION":
            location = value

    if start_time is None or end_time is None:
        reason = SkipReason.MALFORMED_DATETIME if malformed else SkipReason.MISSING_TIME
        logger.debug("Skipping event %r - missing start or end time", title)
        return [], SkippedEvent(title=title, reason=reason, detail=", ".join(malformed) or None)

    if rrule is None:
        meeting = Meeting(
            title=title,
            start_time=start_time,
            end_time=end_time,
            description=description,
            location=location,
        )
        return [meeting], None

    try:
        rule = rrule_expander.RecurrenceRule.parse(rrule)
    except UnsupportedRecurrence as e:
        logger.debug("Skipping event %r: %s", title, e)
        return [], SkippedEvent(
            title=title, reason=SkipReason.UNSUPPORTED_RECURRENCE, detail=str(e)
        )

    if not rule.is_supported:
        logger.debug("Unsupported RRULE pattern for %r: %s", title, rrule)
        return [], SkippedEvent(
            title=title, reason=SkipReason.UNSUPPORTED_RECURRENCE, detail=rrule
        )

    meetings = [
        Meeting(
            title=title,
            start_time=occurrence_start,
            end_time=occurrence_end,
            description=description,
            location=location,
        )
        for occurrence_start, occurrence_end in rrule_expander.expand(
            start_time, end_time, rule, today, tomorrow
        )
    ]
    return meetings, None


def parse_event(
    properties: Properties,
    today: date,
    tomorrow: date,
    floating_offset: timedelta = FLOATING_UTC_OFFSET,
) -> list[Meeting]:
    """Parse one component's properties into zero or more meetings."""
    meetings, _ = parse_event_detailed(properties, today, tomorrow, floating_offset)
    return meetings


def _render_property(value: Any) -> str:
    """Render an icalendar property back to its raw ICS value string.

    Text properties are returned unescaped; dates and recurrence rules are
    re-encoded so the datetime normalizer sees the literal ICS form.
    """
    if isinstance(value, list):
        value = value[0]
    if isinstance(value, str):
        return str(value)
    rendered = value.to_ical()
    if isinstance(rendered, bytes):
        return rendered.decode("utf-8")
    return str(rendered)


def extract_event_properties(component: Any) -> list[tuple[str, str]]:
    """Collect the raw values of the properties the event parser reads."""
    properties = []
    for name in EVENT_PROPERTIES:
        value = component.get(name)
        if value is None:
            continue
        try:
            properties.append((name, _render_property(value)))
        except (AttributeError, ValueError) as e:
            logger.warning("Unable to render %s property: %s", name, e)

    # Content lines icalendar could not split are recorded with a None name
    broken = {
        error_name.upper()
        for error_name, _ in getattr(component, "errors", [])
        if error_name
    }
    for name in ("DTSTART", "DTEND"):
        if name in broken and all(prop_name != name for prop_name, _ in properties):
            # icalendar dropped an undecodable timestamp; keep it visible as malformed
            properties.append((name, ""))
    return properties


def parse_ics_feed(
    ics_content: str,
    today: date,
    tomorrow: date,
    floating_offset: timedelta = FLOATING_UTC_OFFSET,
    source_name: Optional[str] = None,
) -> ParseOutcome:
    """Parse ICS text into meetings starting today or tomorrow (UTC dates).

    A feed that icalendar cannot read yields an unsuccessful, empty outcome;
    individual bad events are skipped and counted.

    Returns:
        ParseOutcome with meetings sorted by start time
    """
    try:
        calendars = Calendar.from_ical(ics_content, multiple=True)
    except ValueError as e:
        logger.warning("Error parsing ICS feed %s: %s", source_name or "<inline>", e)
        return ParseOutcome(success=False, error_message=f"Invalid ICS content: {e}")

    outcome = ParseOutcome()
    window = (today, tomorrow)

    for calendar in calendars:
        for component in calendar.walk("VEVENT"):
            outcome.total_components += 1
            properties = extract_event_properties(component)
            if any(name == "RRULE" for name, _ in properties):
                outcome.recurring_event_count += 1

            meetings, skipped = parse_event_detailed(properties, today, tomorrow, floating_offset)
            if skipped is not None:
                outcome.skipped.append(skipped)
                continue

            outcome.meetings.extend(m for m in meetings if m.start_time.date() in window)

    outcome.meetings.sort(key=lambda m: m.start_time)
    logger.debug(
        "Parsed %d meetings from %d events in %s (%d skipped)",
        len(outcome.meetings),
        outcome.total_components,
        source_name or "<inline>",
        outcome.skipped_count,
    )
    return outcome
