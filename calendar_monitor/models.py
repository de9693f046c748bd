"""Data models for meeting aggregation - calendar_monitor."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .datetime_utils import now_utc as _now_utc

UNTITLED_EVENT = "Untitled Event"


class ResponseStatus(str, Enum):
    """Participation status reported by sources with attendee semantics."""

    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    TENTATIVE = "Tentative"
    NO_RESPONSE = "NoResponse"


class MeetingStatus(str, Enum):
    """Temporal status of a meeting relative to a reference instant."""

    UPCOMING = "Upcoming"
    IN_PROGRESS = "InProgress"
    ENDED = "Ended"


class Meeting(BaseModel):
    """Normalized calendar meeting.

    ``end_time >= start_time`` is assumed, not enforced. Instances are frozen:
    a refresh builds new meetings instead of updating old ones.
    """

    title: str = Field(default=UNTITLED_EVENT, description="Meeting title")
    start_time: datetime = Field(..., description="Start instant (UTC)")
    end_time: datetime = Field(..., description="End instant (UTC)")
    description: Optional[str] = Field(default=None, description="Free-text description")
    location: Optional[str] = Field(default=None, description="Location")
    attendees: list[str] = Field(default_factory=list, description="Attendee identifiers")
    response_status: Optional[ResponseStatus] = Field(
        default=None, description="Participation status, absent for plain ICS feeds"
    )

    model_config = ConfigDict(frozen=True)

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()

    def status(self, now: Optional[datetime] = None) -> MeetingStatus:
        """Status at ``now``; InProgress bounds are inclusive on both ends."""
        now = now or _now_utc()
        if now < self.start_time:
            return MeetingStatus.UPCOMING
        if now <= self.end_time:
            return MeetingStatus.IN_PROGRESS
        return MeetingStatus.ENDED

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status(now) is MeetingStatus.IN_PROGRESS

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return self.status(now) is MeetingStatus.UPCOMING

    def has_ended(self, now: Optional[datetime] = None) -> bool:
        return self.status(now) is MeetingStatus.ENDED

    def time_until_start(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until start (negative once started)."""
        now = now or _now_utc()
        return int((self.start_time - now).total_seconds())

    def time_until_end(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until end (negative once ended)."""
        now = now or _now_utc()
        return int((self.end_time - now).total_seconds())

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def is_time_block(self) -> bool:
        """True when the title is wrapped in square brackets, e.g. ``[Focus]``."""
        return self.title.startswith("[") and self.title.endswith("]")

    @property
    def time_block_name(self) -> Optional[str]:
        if self.is_time_block and len(self.title) > 2:
            return self.title[1:-1]
        return None

    @property
    def should_display(self) -> bool:
        """Declined meetings are hidden; everything else is shown."""
        return self.response_status != ResponseStatus.DECLINED

    @property
    def response_status_label(self) -> Optional[str]:
        labels = {
            ResponseStatus.NO_RESPONSE: "Not Responded",
            ResponseStatus.TENTATIVE: "Tentative",
            ResponseStatus.DECLINED: "Declined",
        }
        if self.response_status is None:
            return None
        return labels.get(ResponseStatus(self.response_status))

    def format_time_remaining(self, now: Optional[datetime] = None) -> str:
        """Countdown string: ``MM:SS``, or ``HH:MM:SS`` from one hour up.

        Counts down to the end for running meetings and to the start for
        upcoming ones; ended meetings show ``00:00``.
        """
        now = now or _now_utc()
        status = self.status(now)
        if status is MeetingStatus.IN_PROGRESS:
            seconds = self.time_until_end(now)
        elif status is MeetingStatus.UPCOMING:
            seconds = self.time_until_start(now)
        else:
            seconds = 0

        if seconds <= 0:
            return "00:00"

        minutes, remaining_seconds = divmod(seconds, 60)
        if minutes >= 60:
            hours, remaining_minutes = divmod(minutes, 60)
            return f"{hours:02d}:{remaining_minutes:02d}:{remaining_seconds:02d}"
        return f"{minutes:02d}:{remaining_seconds:02d}"

    @property
    def formatted_start_time(self) -> str:
        return self.start_time.strftime("%H:%M")

    @property
    def formatted_date(self) -> str:
        return self.start_time.strftime("%Y-%m-%d")

    @property
    def formatted_time_range(self) -> str:
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"


# Calendar source configuration (resolved once from locator strings)


class LocalSource(BaseModel):
    """ICS file on the local filesystem."""

    kind: Literal["local"] = "local"
    path: str = Field(..., description="Filesystem path to the ICS file")

    model_config = ConfigDict(frozen=True)

    @property
    def locator(self) -> str:
        return self.path


class RemoteSource(BaseModel):
    """ICS feed served over HTTP(S)."""

    kind: Literal["remote"] = "remote"
    url: str = Field(..., description="ICS calendar URL")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    model_config = ConfigDict(frozen=True)

    @property
    def locator(self) -> str:
        return self.url


CalendarSource = Annotated[Union[LocalSource, RemoteSource], Field(discriminator="kind")]


class MeetingUpdate(BaseModel):
    """Payload pushed to the transport boundary."""

    current_meeting: Optional[Meeting] = None
    next_meeting: Optional[Meeting] = None
    countdown_seconds: Optional[int] = Field(
        default=None, description="Seconds until current_meeting ends"
    )
    active_time_blocks: list[Meeting] = Field(default_factory=list)
