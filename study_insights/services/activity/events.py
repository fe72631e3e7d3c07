"""
Activity Events — Decision-kind classification, filtering and timestamp parsing.

Every chart works from the same notion of an accept/reject decision and of a
"correct" one: accepting a clean suggestion, or rejecting a buggy one.
Pure functions, no DB calls.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Iterable

from study_insights.models.activity import ActivityEvent

logger = logging.getLogger(__name__)

ACCEPT_EVENTS: frozenset[str] = frozenset(
    {
        "SUGGESTION_ACCEPT",
        "SUGGESTION_TAB_ACCEPT",
        "SUGGESTION_LINE_ACCEPT",
        "SUGGESTION_SELECTION_ACCEPT",
    }
)
REJECT_EVENTS: frozenset[str] = frozenset(
    {
        "SUGGESTION_REJECT",
        "SUGGESTION_TAB_REJECT",
        "SUGGESTION_LINE_REJECT",
        "SUGGESTION_SELECTION_REJECT",
    }
)


class EventFilter(str, Enum):
    """Which decisions a chart looks at."""

    TOTAL = "Total"
    ACCEPT = "Accept"
    REJECT = "Reject"


# =============================================================================
# CLASSIFICATION
# =============================================================================


def is_accept(event: ActivityEvent) -> bool:
    return event.event_type in ACCEPT_EVENTS


def is_reject(event: ActivityEvent) -> bool:
    return event.event_type in REJECT_EVENTS


def is_correct(event: ActivityEvent) -> bool:
    """Accepting a suggestion without a bug, or rejecting one with a bug."""
    return (is_accept(event) and not event.has_bug) or (
        is_reject(event) and event.has_bug
    )


def matches_filter(event: ActivityEvent, event_filter: EventFilter) -> bool:
    if event_filter == EventFilter.ACCEPT:
        return is_accept(event)
    if event_filter == EventFilter.REJECT:
        return is_reject(event)
    if event_filter == EventFilter.TOTAL:
        return is_accept(event) or is_reject(event)
    return False


def filter_events(
    events: Iterable[ActivityEvent], event_filter: EventFilter = EventFilter.TOTAL
) -> list[ActivityEvent]:
    """Keep the decisions selected by event_filter. Unknown event types never match."""
    return [e for e in events if matches_filter(e, event_filter)]


# =============================================================================
# TIMESTAMPS
# =============================================================================


def parse_timestamp(
    value: datetime | str | None, tz: tzinfo | None = None
) -> datetime | None:
    """Parse a logged timestamp into an aware datetime, or None if unusable.

    Naive values are read as UTC. When tz is given the result is converted
    to it, so calendar fields reflect the viewer's local time.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        # Supabase returns UTC stamps with a trailing "Z"
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Skipping unparseable timestamp: %r", value)
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if tz is not None:
        try:
            parsed = parsed.astimezone(tz)
        except OverflowError:
            # Stamps at the edge of the datetime range can't shift zones
            logger.debug("Skipping out-of-range timestamp: %r", value)
            return None
    return parsed


def sort_chronologically(events: Iterable[ActivityEvent]) -> list[ActivityEvent]:
    """Events with a usable timestamp, oldest first. Ties keep input order."""
    stamped: list[tuple[datetime, ActivityEvent]] = []
    for event in events:
        ts = parse_timestamp(event.created_at)
        if ts is not None:
            stamped.append((ts, event))
    stamped.sort(key=lambda pair: pair[0])
    return [event for _, event in stamped]
