"""
Activity Typing — How much code participants typed vs. accepted from suggestions.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Sequence

from study_insights.models.activity import TypingLogEntry
from study_insights.models.dashboard import TypingActivity, TypingBucket, TypingSummary
from study_insights.services.activity.buckets import (
    Granularity,
    bucket_key,
    label_range,
)
from study_insights.services.activity.events import parse_timestamp

TYPING_GRANULARITIES = (Granularity.DAY, Granularity.HOUR)


def _rate(accepted: int, typed: int) -> float:
    return round((accepted / typed) * 100, 2) if typed else 0.0


def _per_minute(amount: int, stamps: list[datetime]) -> float:
    # A bucket's active span counts as at least one minute
    if amount == 0 or not stamps:
        return 0.0
    minutes = max((max(stamps) - min(stamps)).total_seconds() / 60, 1.0)
    return round(amount / minutes, 2)


def summarize_typing(logs: Sequence[TypingLogEntry]) -> TypingSummary:
    total_typed = sum(log.typed_number for log in logs)
    total_accepted = sum(log.accepted_number for log in logs)
    return TypingSummary(
        total_typed=total_typed,
        total_accepted=total_accepted,
        typing_rate=_rate(total_accepted, total_typed),
    )


def group_typing(
    logs: Sequence[TypingLogEntry],
    granularity: Granularity = Granularity.DAY,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    count: int = 30,
) -> TypingActivity:
    """Typed/accepted totals for the last `count` days or hours.

    Buckets are pre-seeded so quiet periods show up as zeros; logs older
    than the range are ignored.
    """
    if granularity not in TYPING_GRANULARITIES:
        raise ValueError(f"Typing activity supports Day or Hour, got {granularity.value}")

    labels = label_range(granularity, now=now, tz=tz, count=count)
    typed: dict[str, int] = {label: 0 for label in labels}
    accepted: dict[str, int] = {label: 0 for label in labels}
    stamps: dict[str, list[datetime]] = {label: [] for label in labels}

    for log in logs:
        local = parse_timestamp(log.created_at, tz)
        if local is None:
            continue
        key = bucket_key(local, granularity, tz)
        if key not in typed:
            continue
        typed[key] += log.typed_number
        accepted[key] += log.accepted_number
        stamps[key].append(local)

    buckets = [
        TypingBucket(
            label=label,
            typed=typed[label],
            accepted=accepted[label],
            typing_rate=_rate(accepted[label], typed[label]),
            typed_per_minute=_per_minute(typed[label], stamps[label]),
            accepted_per_minute=_per_minute(accepted[label], stamps[label]),
        )
        for label in labels
    ]
    total_typed = sum(typed.values())
    total_accepted = sum(accepted.values())

    return TypingActivity(
        interval=granularity.value,
        total_typed=total_typed,
        total_accepted=total_accepted,
        typing_rate=_rate(total_accepted, total_typed),
        buckets=buckets,
        all_time=summarize_typing(logs),
    )
