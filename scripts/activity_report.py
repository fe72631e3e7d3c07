"""
Summarize a participant's decision log from a JSON export.

Usage:
    python3 scripts/activity_report.py logs.json
    python3 scripts/activity_report.py logs.json --window 10 --filter Accept --tz Europe/Berlin

The file holds a JSON array of events as returned by the dashboard export
(or raw log rows: event, created_at, has_bug, duration).
"""

import argparse
import json
from pathlib import Path

from study_insights.models.activity import ActivityEvent
from study_insights.services.activity.buckets import (
    Granularity,
    group_accuracy,
    resolve_timezone,
)
from study_insights.services.activity.events import EventFilter, filter_events
from study_insights.services.activity.progress import activity_stats, calculate_progress
from study_insights.services.activity.rolling import rolling_window


# Dashboard export headers -> log column names
_EXPORT_KEYS = {
    "Event": "event",
    "Duration (ms)": "duration",
    "Has Bug": "has_bug",
    "Created At": "created_at",
}


def load_events(path: Path) -> list[ActivityEvent]:
    """Read a JSON array of event rows."""
    rows = json.loads(path.read_text(encoding="utf-8"))
    return [
        ActivityEvent.model_validate(
            {_EXPORT_KEYS.get(key, key): value for key, value in row.items()}
        )
        for row in rows
    ]


def main() -> None:
    parser = argparse.ArgumentParser(description="Summarize a decision log export")
    parser.add_argument("path", type=Path, help="JSON file with an array of events")
    parser.add_argument("--window", type=int, default=20, help="Rolling window size")
    parser.add_argument(
        "--filter",
        choices=[f.value for f in EventFilter],
        default=EventFilter.TOTAL.value,
        help="Decisions to include (default: Total)",
    )
    parser.add_argument(
        "--interval",
        choices=[g.value for g in Granularity],
        default=Granularity.DAY.value,
        help="Bucket size for the accuracy table (default: Day)",
    )
    parser.add_argument("--tz", default="UTC", help="IANA time zone for buckets")
    args = parser.parse_args()

    events = load_events(args.path)
    selected = filter_events(events, EventFilter(args.filter))

    progress = calculate_progress(events)
    stats = activity_stats(events)
    print(f"\nEvents loaded:        {len(events)}")
    print(f"Decisions ({args.filter}): {len(selected)}")
    print(
        f"Accepted correctly:   {progress.correct_suggestions}/{progress.total_accepted}"
        f" ({progress.percentage_correct:.2f}%)"
    )
    print(f"Decision accuracy:    {stats.decision_accuracy:.2f}%")

    points = rolling_window(selected, args.window)
    if points:
        last = points[-1]
        print(
            f"Rolling {args.window}-decision accuracy: {last.rolling_accuracy:.1f}%"
            f" (avg {last.rolling_avg_duration:.0f} ms)"
        )

    buckets = group_accuracy(
        selected, Granularity(args.interval), resolve_timezone(args.tz)
    )
    print(f"\n{'Bucket':<18} {'Total':>6} {'Correct':>8} {'Accuracy':>9}")
    for key in sorted(buckets):
        counts = buckets[key]
        print(f"{key:<18} {counts.total:>6} {counts.correct:>8} {counts.accuracy:>8.1f}%")
    print()


if __name__ == "__main__":
    main()
