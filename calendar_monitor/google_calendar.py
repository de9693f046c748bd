"""Authenticated remote calendar source (Google Calendar API v3).

The OAuth authorization-code exchange and token storage live outside this
package: the client is handed an access token (or a callable returning the
current one) and only reads events for the next day. Recurrence is resolved
by the API (``singleEvents=true``), so no expansion happens here.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Optional, Union

import httpx
from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .datetime_utils import ensure_timezone_aware, now_utc
from .exceptions import RemoteCalendarError
from .http_client import get_shared_client
from .meeting_cache import DEFAULT_CACHE_TTL_SECONDS
from .models import UNTITLED_EVENT, Meeting, ResponseStatus

logger = logging.getLogger(__name__)

GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
MAX_RESULTS = 50

RESPONSE_STATUS_MAP = {
    "accepted": ResponseStatus.ACCEPTED,
    "declined": ResponseStatus.DECLINED,
    "tentative": ResponseStatus.TENTATIVE,
    "needsAction": ResponseStatus.NO_RESPONSE,
}

TokenProvider = Union[str, Callable[[], Optional[str]]]


class GoogleEventTime(BaseModel):
    """Start or end of a Google event; all-day events only carry ``date``."""

    date_time: Optional[str] = Field(default=None, alias="dateTime")
    date: Optional[str] = None
    time_zone: Optional[str] = Field(default=None, alias="timeZone")

    model_config = ConfigDict(populate_by_name=True)


class GoogleAttendee(BaseModel):
    email: Optional[str] = None
    is_self: bool = Field(default=False, alias="self")
    response_status: Optional[str] = Field(default=None, alias="responseStatus")

    model_config = ConfigDict(populate_by_name=True)


class GoogleCalendarEvent(BaseModel):
    id: str = ""
    summary: Optional[str] = None
    start: Optional[GoogleEventTime] = None
    end: Optional[GoogleEventTime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: list[GoogleAttendee] = Field(default_factory=list)


class GoogleCalendarResponse(BaseModel):
    items: Optional[list[GoogleCalendarEvent]] = None


def _parse_rfc3339(value: str) -> datetime:
    return ensure_timezone_aware(date_parser.isoparse(value)).astimezone(UTC)


def convert_google_event(event: GoogleCalendarEvent) -> Optional[Meeting]:
    """Convert one API event; all-day and time-less events yield None."""
    if event.start is None or event.end is None:
        logger.debug("Skipping event without start/end times: %r", event.summary)
        return None
    if event.start.date_time is None or event.end.date_time is None:
        logger.debug("Skipping all-day event: %r", event.summary)
        return None

    try:
        start_time = _parse_rfc3339(event.start.date_time)
        end_time = _parse_rfc3339(event.end.date_time)
    except (ValueError, OverflowError) as e:
        logger.warning("Skipping event %r with unparseable times: %s", event.summary, e)
        return None

    response_status = None
    for attendee in event.attendees:
        if attendee.is_self and attendee.response_status:
            response_status = RESPONSE_STATUS_MAP.get(attendee.response_status)
            break

    meeting = Meeting(
        title=event.summary or UNTITLED_EVENT,
        start_time=start_time,
        end_time=end_time,
        description=event.description,
        location=event.location,
        attendees=[a.email for a in event.attendees if a.email],
        response_status=response_status,
    )
    logger.debug(
        "Converted remote event: %s (%s)", meeting.title, meeting.formatted_time_range
    )
    return meeting


def convert_google_events(payload: dict[str, Any]) -> list[Meeting]:
    """Convert an ``events.list`` response body into meetings.

    Raises:
        RemoteCalendarError: If the body does not have the expected shape
    """
    try:
        response = GoogleCalendarResponse.model_validate(payload)
    except ValidationError as e:
        raise RemoteCalendarError(f"Failed to parse Google Calendar response: {e}") from e

    meetings = []
    for event in response.items or []:
        meeting = convert_google_event(event)
        if meeting is not None:
            meetings.append(meeting)
    return meetings


class GoogleCalendarClient:
    """Reads today's and tomorrow's events with a bearer token."""

    def __init__(
        self,
        access_token: TokenProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        events_url: str = GOOGLE_EVENTS_URL,
        cache_ttl: float = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self._access_token = access_token
        self.http_client = http_client
        self.events_url = events_url
        self.cache_ttl = cache_ttl
        self._cached_events: Optional[list[Meeting]] = None
        self._fetched_at: Optional[datetime] = None
        self._lock = asyncio.Lock()

    def _current_token(self) -> Optional[str]:
        if callable(self._access_token):
            return self._access_token()
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._current_token())

    async def fetch_events(self, now: Optional[datetime] = None) -> list[Meeting]:
        """Fetch events in ``[now, now + 1 day]``.

        Raises:
            RemoteCalendarError: Missing token, transport failure, non-2xx status
                or malformed body
        """
        token = self._current_token()
        if not token:
            raise RemoteCalendarError("No OAuth tokens available. Please authenticate first.")

        now = now or now_utc()
        params = {
            "timeMin": now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "timeMax": (now + timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": str(MAX_RESULTS),
        }
        logger.debug(
            "Fetching Google Calendar events from %s to %s", params["timeMin"], params["timeMax"]
        )

        client = self.http_client or await get_shared_client("google")
        try:
            response = await client.get(
                self.events_url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise RemoteCalendarError(f"Failed to fetch Google Calendar events: {e}") from e

        if response.is_error:
            raise RemoteCalendarError(
                f"Google Calendar API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteCalendarError(f"Failed to parse Google Calendar response: {e}") from e

        meetings = convert_google_events(payload)
        logger.info("Successfully fetched %d events from Google Calendar", len(meetings))
        return meetings

    async def get_events(self, now: Optional[datetime] = None) -> Optional[list[Meeting]]:
        """``fetch_events`` behind a TTL snapshot.

        Returns None while the remote calendar is failing. A failed fetch is
        remembered for the TTL as well, so the API sees at most one request
        per TTL no matter how many callers poll.
        """
        now = now or now_utc()
        async with self._lock:
            if self._fetched_at is not None:
                age = (now - self._fetched_at).total_seconds()
                if 0 <= age < self.cache_ttl:
                    logger.debug("Serving cached remote events (age %.0fs)", age)
                    return None if self._cached_events is None else list(self._cached_events)

            try:
                events: Optional[list[Meeting]] = await self.fetch_events(now)
            except RemoteCalendarError as e:
                logger.warning("Remote calendar unavailable, using ICS results only: %s", e)
                events = None

            self._cached_events = events
            self._fetched_at = now
            return None if events is None else list(events)

    def invalidate(self) -> None:
        """Drop the cached remote events so the next ``get_events`` refetches."""
        self._fetched_at = None
        self._cached_events = None
