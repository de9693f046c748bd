"""Reconciliation of local (ICS) results with an authenticated remote source.

Only the single current slot and the single next slot are reconciled. The
remote candidate wins a slot when the slot is empty or when the remote
meeting starts strictly earlier than the local one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from . import meeting_query
from .models import Meeting

logger = logging.getLogger(__name__)

MeetingPair = tuple[Optional[Meeting], Optional[Meeting]]


def _prefer_external(
    local: Optional[Meeting], external: Optional[Meeting], slot: str
) -> Optional[Meeting]:
    if external is None:
        return local
    if local is None or external.start_time < local.start_time:
        logger.debug("Using remote %s meeting %r", slot, external.title)
        return external
    return local


def select_external_candidates(
    external_meetings: Sequence[Meeting], now: datetime
) -> MeetingPair:
    """Current/next of the remote list under the local query rules.

    Declined meetings are dropped first; they are never shown.
    """
    visible = sorted(
        (m for m in external_meetings if m.should_display), key=lambda m: m.start_time
    )
    return meeting_query.current_and_next(visible, now)


def merge_current_and_next(
    local: MeetingPair, external_meetings: Sequence[Meeting], now: datetime
) -> MeetingPair:
    """Merge the remote current/next candidates into the local pair.

    Args:
        local: ``(current, next)`` computed from the aggregated ICS meetings
        external_meetings: Remote meetings, already windowed to today/tomorrow
        now: Reference instant

    Returns:
        Reconciled ``(current, next)`` pair
    """
    local_current, local_next = local
    external_current, external_next = select_external_candidates(external_meetings, now)
    return (
        _prefer_external(local_current, external_current, "current"),
        _prefer_external(local_next, external_next, "next"),
    )
