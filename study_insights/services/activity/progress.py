"""
Activity Progress — Summary numbers for the stat cards and the response-time bar chart.
"""

from __future__ import annotations

from typing import Sequence

from study_insights.models.activity import ActivityEvent
from study_insights.models.dashboard import (
    ActivityStats,
    ProgressData,
    ResponseTimeBreakdown,
    ResponseTimeCategory,
)
from study_insights.services.activity.events import (
    EventFilter,
    filter_events,
    is_accept,
    is_correct,
    is_reject,
    parse_timestamp,
)


def _percent(part: int, whole: int) -> float:
    return round((part / whole) * 100, 2) if whole else 0.0


def empty_progress() -> ProgressData:
    return ProgressData(total_accepted=0, correct_suggestions=0, percentage_correct=0.0)


def calculate_progress(events: Sequence[ActivityEvent]) -> ProgressData:
    """How many suggestions were accepted, and how many of those had no bug."""
    accepted = [e for e in events if is_accept(e)]
    if not accepted:
        return empty_progress()
    correct = sum(1 for e in accepted if not e.has_bug)
    return ProgressData(
        total_accepted=len(accepted),
        correct_suggestions=correct,
        percentage_correct=_percent(correct, len(accepted)),
    )


def activity_stats(events: Sequence[ActivityEvent]) -> ActivityStats:
    """Decision totals plus the most recent decision timestamp."""
    decisions = filter_events(events, EventFilter.TOTAL)
    accepted = sum(1 for e in decisions if is_accept(e))
    correct = sum(1 for e in decisions if is_correct(e))

    stamps = [
        ts for ts in (parse_timestamp(e.created_at) for e in decisions) if ts is not None
    ]
    last = max(stamps).isoformat() if stamps else None

    return ActivityStats(
        total_interactions=len(decisions),
        total_accepted=accepted,
        total_rejected=len(decisions) - accepted,
        correct_decisions=correct,
        decision_accuracy=_percent(correct, len(decisions)),
        last_activity=last,
    )


# =============================================================================
# RESPONSE TIME BREAKDOWN
# =============================================================================


def _category(name: str, events: Sequence[ActivityEvent]) -> ResponseTimeCategory:
    avg = sum(e.duration_ms for e in events) / len(events) if events else 0.0
    return ResponseTimeCategory(category=name, avg_time=avg, count=len(events))


def response_time_breakdown(
    events: Sequence[ActivityEvent], event_filter: EventFilter = EventFilter.TOTAL
) -> ResponseTimeBreakdown:
    """Average response time per category; empty categories are dropped.

    Total compares clean vs. buggy suggestions and accepts vs. rejects.
    Accept/Reject show that decision's overall average and its clean/buggy split.
    """
    decisions = filter_events(events, event_filter)
    clean = [e for e in decisions if not e.has_bug]
    buggy = [e for e in decisions if e.has_bug]

    if event_filter == EventFilter.TOTAL:
        categories = [
            _category("Correct", clean),
            _category("Incorrect", buggy),
            _category("Accepted", [e for e in decisions if is_accept(e)]),
            _category("Rejected", [e for e in decisions if is_reject(e)]),
        ]
    else:
        overall = "Accepted" if event_filter == EventFilter.ACCEPT else "Rejected"
        categories = [
            _category(overall, decisions),
            _category("Correct", clean),
            _category("Incorrect", buggy),
        ]

    return ResponseTimeBreakdown(
        event_filter=event_filter.value,
        categories=[c for c in categories if c.count > 0],
    )
