"""
Activity Buckets — Group decisions into day / week / month / hour / minute buckets.

Keys are built from the event's local calendar fields in the viewer's time
zone, so two events on the same UTC day can land in different day buckets.
The wall clock is only used to build default label ranges, never to decide
which events are counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from study_insights.models.activity import ActivityEvent
from study_insights.models.dashboard import AccuracyTimeline, DecisionTimeline
from study_insights.services.activity.events import (
    EventFilter,
    filter_events,
    is_accept,
    is_correct,
    is_reject,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class Granularity(str, Enum):
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    HOUR = "Hour"
    MINUTE = "Minute"


# Default label span (periods back from now, periods ahead of now) per granularity
_DEFAULT_SPAN: dict[Granularity, tuple[int, int]] = {
    Granularity.DAY: (6, 0),
    Granularity.WEEK: (5, 1),
    Granularity.MONTH: (5, 1),
    Granularity.HOUR: (23, 0),
    Granularity.MINUTE: (59, 0),
}


@dataclass
class BucketCounts:
    total: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        return (self.correct / self.total) * 100 if self.total else 0.0


@dataclass
class DecisionCounts:
    accepted_count: int = 0
    rejected_count: int = 0


# =============================================================================
# TIME ZONES
# =============================================================================


def resolve_timezone(name: str | None) -> tzinfo:
    """Look up an IANA zone name, falling back to UTC for unknown names."""
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, KeyError, ValueError):
        logger.warning("Invalid timezone '%s', falling back to UTC", name)
        return timezone.utc


# =============================================================================
# KEYS
# =============================================================================


def _format_key(local: datetime, granularity: Granularity) -> str:
    if granularity == Granularity.DAY:
        return local.strftime("%Y-%m-%d")
    if granularity == Granularity.WEEK:
        # isoweekday(): Monday=1 .. Sunday=7, weeks start on Sunday
        start = local.date() - timedelta(days=local.isoweekday() % 7)
        return start.strftime("%Y-%m-%d")
    if granularity == Granularity.MONTH:
        return local.strftime("%Y-%m")
    if granularity == Granularity.HOUR:
        return local.strftime("%Y-%m-%dT%H:00")
    return local.strftime("%Y-%m-%dT%H:%M")


def bucket_key(
    created_at: datetime | str | None,
    granularity: Granularity,
    tz: tzinfo | None = None,
) -> str | None:
    """Bucket key for a timestamp, or None when the timestamp can't be parsed."""
    local = parse_timestamp(created_at, tz or timezone.utc)
    if local is None:
        return None
    try:
        return _format_key(local, granularity)
    except OverflowError:
        # Week start falls before datetime.min
        logger.debug("Skipping out-of-range timestamp: %r", created_at)
        return None


# =============================================================================
# GROUPING
# =============================================================================


def group_accuracy(
    events: Iterable[ActivityEvent],
    granularity: Granularity,
    tz: tzinfo | None = None,
) -> dict[str, BucketCounts]:
    """Count total and correct decisions per bucket.

    Expects an already-filtered event list; every event with a usable
    timestamp lands in exactly one bucket.
    """
    buckets: dict[str, BucketCounts] = {}
    for event in events:
        key = bucket_key(event.created_at, granularity, tz)
        if key is None:
            continue
        counts = buckets.setdefault(key, BucketCounts())
        counts.total += 1
        if is_correct(event):
            counts.correct += 1
    return buckets


def group_decisions(
    events: Iterable[ActivityEvent],
    granularity: Granularity = Granularity.MINUTE,
    tz: tzinfo | None = None,
) -> dict[str, DecisionCounts]:
    """Accepted and rejected counts per bucket, keys in chronological order."""
    buckets: dict[str, DecisionCounts] = {}
    for event in events:
        accepted = is_accept(event)
        if not accepted and not is_reject(event):
            continue
        key = bucket_key(event.created_at, granularity, tz)
        if key is None:
            continue
        counts = buckets.setdefault(key, DecisionCounts())
        if accepted:
            counts.accepted_count += 1
        else:
            counts.rejected_count += 1
    return dict(sorted(buckets.items()))


# =============================================================================
# LABEL RANGES
# =============================================================================


def _shift_months(local: datetime, months: int) -> datetime:
    index = local.year * 12 + (local.month - 1) + months
    return local.replace(year=index // 12, month=index % 12 + 1, day=1)


def _step(local: datetime, granularity: Granularity, periods: int) -> datetime:
    if granularity == Granularity.DAY:
        return local + timedelta(days=periods)
    if granularity == Granularity.WEEK:
        return local + timedelta(weeks=periods)
    if granularity == Granularity.MONTH:
        return _shift_months(local, periods)
    if granularity == Granularity.HOUR:
        return local + timedelta(hours=periods)
    return local + timedelta(minutes=periods)


def label_range(
    granularity: Granularity,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    count: int | None = None,
) -> list[str]:
    """Default chart labels around now, oldest first.

    Day covers the last 7 days, Week and Month run 5 periods back through
    1 ahead, Hour the last 24 hours and Minute the last 60 minutes. count
    overrides the number of periods ending at the current one.
    """
    zone = tz or timezone.utc
    current = (now or datetime.now(zone)).astimezone(zone)

    back, ahead = _DEFAULT_SPAN[granularity]
    if count is not None:
        back, ahead = max(count, 1) - 1, 0

    labels: list[str] = []
    for offset in range(-back, ahead + 1):
        key = _format_key(_step(current, granularity, offset), granularity)
        if key not in labels:
            labels.append(key)
    return labels


# =============================================================================
# CHART SERIES
# =============================================================================


def accuracy_timeline(
    events: Iterable[ActivityEvent],
    granularity: Granularity,
    event_filter: EventFilter = EventFilter.TOTAL,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> AccuracyTimeline:
    """Accuracy per bucket over the default label range; empty buckets read 0."""
    buckets = group_accuracy(filter_events(events, event_filter), granularity, tz)
    labels = label_range(granularity, now=now, tz=tz)
    counts = [buckets.get(label, BucketCounts()) for label in labels]
    return AccuracyTimeline(
        interval=granularity.value,
        event_filter=event_filter.value,
        labels=labels,
        accuracy=[round(c.accuracy, 2) for c in counts],
        totals=[c.total for c in counts],
    )


def decision_timeline(
    events: Iterable[ActivityEvent],
    granularity: Granularity = Granularity.MINUTE,
    tz: tzinfo | None = None,
) -> DecisionTimeline:
    """Accepted/rejected bars for every bucket that saw a decision."""
    buckets = group_decisions(events, granularity, tz)
    accepted = [c.accepted_count for c in buckets.values()]
    rejected = [c.rejected_count for c in buckets.values()]
    return DecisionTimeline(
        interval=granularity.value,
        labels=list(buckets),
        accepted=accepted,
        rejected=rejected,
        total_accepted=sum(accepted),
        total_rejected=sum(rejected),
    )
