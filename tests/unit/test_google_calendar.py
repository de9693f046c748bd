"""Unit tests for calendar_monitor.google_calendar."""

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from calendar_monitor.exceptions import RemoteCalendarError
from calendar_monitor.google_calendar import GoogleCalendarClient, convert_google_events
from calendar_monitor.http_client import create_client
from calendar_monitor.models import UNTITLED_EVENT, ResponseStatus

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 6, 10, 0, tzinfo=UTC)


def _event(**overrides: Any) -> dict[str, Any]:
    event: dict[str, Any] = {
        "id": "evt-1",
        "summary": "Remote Sync",
        "start": {"dateTime": "2025-01-06T13:00:00+03:00", "timeZone": "Europe/Istanbul"},
        "end": {"dateTime": "2025-01-06T14:00:00+03:00"},
        "attendees": [
            {"email": "me@example.com", "self": True, "responseStatus": "tentative"},
            {"email": "you@example.com", "responseStatus": "accepted"},
        ],
    }
    event.update(overrides)
    return event


class TestConvertGoogleEvents:
    def test_converts_timed_event(self) -> None:
        meetings = convert_google_events({"items": [_event(location="Meet")]})

        assert len(meetings) == 1
        meeting = meetings[0]
        assert meeting.title == "Remote Sync"
        assert meeting.start_time == datetime(2025, 1, 6, 10, 0, tzinfo=UTC)
        assert meeting.end_time == datetime(2025, 1, 6, 11, 0, tzinfo=UTC)
        assert meeting.location == "Meet"
        assert meeting.attendees == ["me@example.com", "you@example.com"]
        assert meeting.response_status is ResponseStatus.TENTATIVE

    def test_skips_all_day_events(self) -> None:
        all_day = _event(start={"date": "2025-01-06"}, end={"date": "2025-01-07"})
        assert convert_google_events({"items": [all_day]}) == []

    def test_skips_events_without_times(self) -> None:
        assert convert_google_events({"items": [{"id": "x", "summary": "No times"}]}) == []

    def test_missing_summary_and_attendees(self) -> None:
        event = _event()
        del event["summary"]
        del event["attendees"]

        meeting = convert_google_events({"items": [event]})[0]

        assert meeting.title == UNTITLED_EVENT
        assert meeting.attendees == []
        assert meeting.response_status is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("accepted", ResponseStatus.ACCEPTED),
            ("declined", ResponseStatus.DECLINED),
            ("needsAction", ResponseStatus.NO_RESPONSE),
        ],
    )
    def test_self_response_status_mapping(self, raw: str, expected: ResponseStatus) -> None:
        event = _event(attendees=[{"email": "me@example.com", "self": True, "responseStatus": raw}])
        assert convert_google_events({"items": [event]})[0].response_status is expected

    def test_missing_items(self) -> None:
        assert convert_google_events({}) == []

    def test_malformed_body_raises(self) -> None:
        with pytest.raises(RemoteCalendarError):
            convert_google_events({"items": "nope"})


class TestGoogleCalendarClient:
    @pytest.mark.asyncio
    async def test_fetch_events_sends_window_and_token(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"items": [_event()]})

        async with create_client(transport=httpx.MockTransport(handler)) as client:
            remote = GoogleCalendarClient("token-123", http_client=client)
            meetings = await remote.fetch_events(NOW)

        assert [m.title for m in meetings] == ["Remote Sync"]
        request = requests[0]
        assert request.headers["authorization"] == "Bearer token-123"
        params = request.url.params
        assert params["timeMin"] == "2025-01-06T10:00:00Z"
        assert params["timeMax"] == "2025-01-07T10:00:00Z"
        assert params["singleEvents"] == "true"
        assert params["orderBy"] == "startTime"
        assert params["maxResults"] == "50"

    @pytest.mark.asyncio
    async def test_token_provider_is_called_per_request(self) -> None:
        tokens = iter(["first", "second"])
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["authorization"])
            return httpx.Response(200, json={"items": []})

        async with create_client(transport=httpx.MockTransport(handler)) as client:
            remote = GoogleCalendarClient(lambda: next(tokens), http_client=client)
            await remote.fetch_events(NOW)
            await remote.fetch_events(NOW)

        assert seen == ["Bearer first", "Bearer second"]

    @pytest.mark.asyncio
    async def test_missing_token_raises(self) -> None:
        remote = GoogleCalendarClient(lambda: None)

        assert not remote.is_authenticated
        with pytest.raises(RemoteCalendarError, match="authenticate"):
            await remote.fetch_events(NOW)

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_token"})

        async with create_client(transport=httpx.MockTransport(handler)) as client:
            remote = GoogleCalendarClient("expired", http_client=client)
            with pytest.raises(RemoteCalendarError) as exc_info:
                await remote.fetch_events(NOW)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        async with create_client(transport=httpx.MockTransport(handler)) as client:
            remote = GoogleCalendarClient("token", http_client=client)
            with pytest.raises(RemoteCalendarError):
                await remote.fetch_events(NOW)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with create_client(transport=httpx.MockTransport(handler)) as client:
            remote = GoogleCalendarClient("token", http_client=client)
            with pytest.raises(RemoteCalendarError):
                await remote.fetch_events(NOW)



class TestCachedEvents:
    @staticmethod
    def _counting_handler(calls: list[httpx.Request], status: int = 200) -> Any:
        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if status != 200:
                return httpx.Response(status, text="unavailable")
            return httpx.Response(200, json={"items": [_event()]})

        return handler

    @pytest.mark.asyncio
    async def test_get_events_serves_snapshot_within_ttl(self) -> None:
        calls: list[httpx.Request] = []

        async with create_client(
            transport=httpx.MockTransport(self._counting_handler(calls))
        ) as client:
            remote = GoogleCalendarClient("token", http_client=client, cache_ttl=300)
            results = [
                await remote.get_events(NOW + timedelta(seconds=tick)) for tick in range(10)
            ]

        assert len(calls) == 1
        assert all(r is not None and [m.title for m in r] == ["Remote Sync"] for r in results)

    @pytest.mark.asyncio
    async def test_get_events_refetches_after_ttl(self) -> None:
        calls: list[httpx.Request] = []

        async with create_client(
            transport=httpx.MockTransport(self._counting_handler(calls))
        ) as client:
            remote = GoogleCalendarClient("token", http_client=client, cache_ttl=300)
            await remote.get_events(NOW)
            await remote.get_events(NOW + timedelta(seconds=299))
            await remote.get_events(NOW + timedelta(seconds=301))

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_failure_is_cached_for_the_ttl(self) -> None:
        calls: list[httpx.Request] = []

        async with create_client(
            transport=httpx.MockTransport(self._counting_handler(calls, status=503))
        ) as client:
            remote = GoogleCalendarClient("token", http_client=client, cache_ttl=300)
            first = await remote.get_events(NOW)
            second = await remote.get_events(NOW + timedelta(seconds=5))

        assert first is None and second is None
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self) -> None:
        calls: list[httpx.Request] = []

        async with create_client(
            transport=httpx.MockTransport(self._counting_handler(calls))
        ) as client:
            remote = GoogleCalendarClient("token", http_client=client)
            await remote.get_events(NOW)
            remote.invalidate()
            await remote.get_events(NOW)

        assert len(calls) == 2
