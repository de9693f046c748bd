"""Unit tests for calendar_monitor.event_merger."""

from typing import Any

import pytest

from calendar_monitor.event_merger import EventMerger, deduplicate_meetings

pytestmark = pytest.mark.unit


class TestEventMerger:
    """Tests for EventMerger class."""

    def setup_method(self) -> None:
        self.merger = EventMerger()

    def test_deduplicate_keeps_later_end(self, make_meeting: Any) -> None:
        short = make_meeting("Sync", "09:00", "09:30")
        long = make_meeting("Sync", "09:00", "10:00")

        for ordering in ([short, long], [long, short]):
            result = self.merger.deduplicate(ordering)
            assert len(result) == 1
            assert result[0].end_time == long.end_time

    def test_deduplicate_requires_same_title_and_start(self, make_meeting: Any) -> None:
        meetings = [
            make_meeting("Sync", "09:00", "09:30"),
            make_meeting("sync", "09:00", "09:30"),
            make_meeting("Sync", "09:05", "09:30"),
        ]
        assert self.merger.deduplicate(meetings) == meetings

    def test_deduplicate_equal_end_keeps_first(self, make_meeting: Any) -> None:
        first = make_meeting("Sync", "09:00", "09:30", location="A")
        second = make_meeting("Sync", "09:00", "09:30", location="B")

        assert self.merger.deduplicate([first, second]) == [first]

    def test_deduplicate_survivor_keeps_first_position(self, make_meeting: Any) -> None:
        a_short = make_meeting("A", "09:00", "09:15")
        b = make_meeting("B", "09:00", "09:30")
        a_long = make_meeting("A", "09:00", "09:45")

        assert self.merger.deduplicate([a_short, b, a_long]) == [a_long, b]

    def test_deduplicate_is_idempotent_and_never_grows(self, make_meeting: Any) -> None:
        meetings = [
            make_meeting("A", "09:00", "09:30"),
            make_meeting("A", "09:00", "10:00"),
            make_meeting("B", "11:00", "12:00"),
            make_meeting("A", "09:00", "09:45"),
            make_meeting("B", "11:00", "12:00"),
            make_meeting("C", "13:00", "13:30"),
        ]

        once = self.merger.deduplicate(meetings)
        twice = self.merger.deduplicate(once)

        assert once == twice
        assert len(once) <= len(meetings)
        assert len(once) == 3

    def test_deduplicate_empty(self) -> None:
        assert self.merger.deduplicate([]) == []

    def test_merge_sorts_across_sources_and_removes_duplicates(self, make_meeting: Any) -> None:
        source_a = [make_meeting("Lunch", "12:00", "13:00"), make_meeting("Sync", "09:00", "09:30")]
        source_b = [make_meeting("Sync", "09:00", "10:00"), make_meeting("Review", "15:00", "16:00")]

        merged = self.merger.merge([source_a, source_b])

        assert [(m.title, m.end_time.hour) for m in merged] == [
            ("Sync", 10),
            ("Lunch", 13),
            ("Review", 16),
        ]

    def test_merge_keeps_source_order_for_equal_starts(self, make_meeting: Any) -> None:
        first = make_meeting("First", "09:00", "09:30")
        second = make_meeting("Second", "09:00", "09:30")

        assert [m.title for m in self.merger.merge([[first], [second]])] == ["First", "Second"]


def test_deduplicate_meetings_shortcut(make_meeting: Any) -> None:
    e1 = make_meeting("Sync", "09:00", "09:30")
    e2 = make_meeting("Sync", "09:00", "09:45")

    assert deduplicate_meetings([e2, e1]) == [e2]
