"""
Activity Rolling Windows — Trailing-window accuracy and response-time curves.

Each point summarizes the last W decisions ending at (and including) the
current one, so early points average over fewer events until the window
fills up.
"""

from __future__ import annotations

from typing import Callable, Sequence

from study_insights.models.activity import ActivityEvent
from study_insights.models.dashboard import (
    ResponseTimeSeries,
    ResponseTimeTrends,
    RollingWindowPoint,
    SeriesPoint,
)
from study_insights.services.activity.events import (
    is_accept,
    is_correct,
    sort_chronologically,
)

DEFAULT_WINDOW_SIZE = 20


def _check_window(window_size: int) -> None:
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")


def rolling_window(
    events: Sequence[ActivityEvent], window_size: int = DEFAULT_WINDOW_SIZE
) -> list[RollingWindowPoint]:
    """Rolling accuracy and mean duration, one point per decision.

    Events may come in any order; they are sorted by created_at first.
    Pass an already-filtered list (see filter_events).
    """
    _check_window(window_size)
    ordered = sort_chronologically(events)

    points: list[RollingWindowPoint] = []
    for i in range(len(ordered)):
        window = ordered[max(0, i - window_size + 1) : i + 1]
        correct = sum(1 for e in window if is_correct(e))
        total_duration = sum(e.duration_ms for e in window)
        points.append(
            RollingWindowPoint(
                index=i + 1,
                rolling_accuracy=(correct / len(window)) * 100,
                rolling_avg_duration=total_duration / len(window),
            )
        )
    return points


def rolling_average(values: Sequence[float], window_size: int) -> list[float]:
    """Trailing mean of values, rounded to 2 decimals."""
    _check_window(window_size)
    averages: list[float] = []
    for i in range(len(values)):
        window = values[max(0, i - window_size + 1) : i + 1]
        averages.append(round(sum(window) / len(window), 2))
    return averages


def response_time_trends(
    events: Sequence[ActivityEvent], window_size: int = DEFAULT_WINDOW_SIZE
) -> ResponseTimeTrends:
    """Rolling accept latency for all, correct and incorrect acceptances.

    x values are the acceptance's position among all accepts, so the three
    series share one axis even though the subsets are averaged separately.
    """
    _check_window(window_size)
    accepted = list(
        enumerate((e for e in sort_chronologically(events) if is_accept(e)), start=1)
    )

    def _series(
        label: str, keep: Callable[[ActivityEvent], bool] | None = None
    ) -> ResponseTimeSeries:
        subset = [(x, e) for x, e in accepted if keep is None or keep(e)]
        averages = rolling_average([e.duration_ms for _, e in subset], window_size)
        return ResponseTimeSeries(
            label=label,
            data=[SeriesPoint(x=x, y=y) for (x, _), y in zip(subset, averages)],
        )

    series = [
        _series(f"All Accept Time ({window_size}-avg)"),
        _series(f"Correct Accept Time ({window_size}-avg)", lambda e: not e.has_bug),
        _series(f"Incorrect Accept Time ({window_size}-avg)", lambda e: e.has_bug),
    ]
    correct_count = sum(1 for _, e in accepted if not e.has_bug)

    return ResponseTimeTrends(
        window_size=window_size,
        series=[s for s in series if s.data],
        total_accepted=len(accepted),
        correct_count=correct_count,
        incorrect_count=len(accepted) - correct_count,
    )
