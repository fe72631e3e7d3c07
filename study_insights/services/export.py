"""
Export Service — Flatten a participant's logs for CSV/JSON download.

Two exports: the decision log (accept/reject events from the mode table) and
the keystroke log (typing_log rows with the suggestion that was on screen).
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any, Sequence

from study_insights.models.activity import ActivityEvent, DashboardUser
from study_insights.services.activity_log import embedded_one
from study_insights.services.activity.events import (
    is_accept,
    is_correct,
    is_reject,
    parse_timestamp,
    sort_chronologically,
)

EXPORT_COLUMNS = [
    "No.",
    "PID",
    "Username",
    "Event",
    "Decision",
    "Duration (ms)",
    "Has Bug",
    "Correct",
    "Created At",
]

# Characters that could trigger CSV formula injection
_CSV_INJECTION_CHARS = {"=", "+", "-", "@", "\t", "\r"}


def _sanitize_csv(value: str) -> str:
    """Sanitize a cell value to prevent CSV injection.

    Prefixes cells starting with dangerous characters with a single quote.
    """
    if value and value[0] in _CSV_INJECTION_CHARS:
        return f"'{value}"
    return value


def _decision(event: ActivityEvent) -> str:
    if is_accept(event):
        return "accept"
    if is_reject(event):
        return "reject"
    return ""


def build_export_rows(
    user: DashboardUser, events: Sequence[ActivityEvent]
) -> list[dict[str, Any]]:
    """One row per event with a usable timestamp, oldest first."""
    rows: list[dict[str, Any]] = []
    for number, event in enumerate(sort_chronologically(events), start=1):
        created = parse_timestamp(event.created_at)
        rows.append(
            {
                "No.": number,
                "PID": user.pid or "",
                "Username": user.first_name or "",
                "Event": event.event_type,
                "Decision": _decision(event),
                "Duration (ms)": event.duration_ms,
                "Has Bug": event.has_bug,
                "Correct": is_correct(event),
                "Created At": created.isoformat() if created else "",
            }
        )
    return rows


# =============================================================================
# KEYSTROKE LOG
# =============================================================================

KEYSTROKE_COLUMNS = [
    "No.",
    "PID",
    "Username",
    "Event",
    "Timestamp",
    "Time Difference (ms)",
    "Raw Text",
    "Correct Line",
    "Incorrect Line",
    "Bug Shown",
    "Bug Percentage",
    "Filename",
    "Language",
]

_NA = "N/A"


def build_keystroke_export_rows(
    user: DashboardUser, logs: Sequence[dict[str, Any]]
) -> list[dict[str, Any]]:
    """One row per typing_log entry, with the gap since the previous entry.

    logs must already be ordered by created_at. Newlines in the typed text
    are written as a literal \\n so each entry stays on one line.
    """
    rows: list[dict[str, Any]] = []
    previous: datetime | None = None
    for number, log in enumerate(logs, start=1):
        created = parse_timestamp(log.get("created_at"))
        gap = 0
        if created is not None and previous is not None:
            gap = int((created - previous).total_seconds() * 1000)
        if created is not None:
            previous = created

        suggestion = embedded_one(log.get("line_suggestions"))
        group = embedded_one(suggestion.get("line_suggestions_group"))
        shown_bug = suggestion.get("shown_bug")

        rows.append(
            {
                "No.": number,
                "PID": user.pid or _NA,
                "Username": user.first_name or _NA,
                "Event": log.get("event") or "",
                "Timestamp": created.isoformat() if created else "",
                "Time Difference (ms)": gap,
                "Raw Text": (log.get("raw_text") or "").replace("\n", "\\n"),
                "Correct Line": suggestion.get("correct_line") or _NA,
                "Incorrect Line": suggestion.get("incorrect_line") or _NA,
                "Bug Shown": _NA if shown_bug is None else shown_bug,
                "Bug Percentage": _NA if user.bug_percentage is None else user.bug_percentage,
                "Filename": group.get("filename") or _NA,
                "Language": group.get("language") or _NA,
            }
        )
    return rows


# =============================================================================
# SERIALIZATION
# =============================================================================


def rows_to_csv(
    rows: Sequence[dict[str, Any]], columns: Sequence[str] = EXPORT_COLUMNS
) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for row in rows:
        writer.writerow(
            [
                _sanitize_csv(value) if isinstance(value, str) else value
                for value in (row[column] for column in columns)
            ]
        )
    return output.getvalue()


def rows_to_json(rows: Sequence[dict[str, Any]]) -> str:
    return json.dumps(list(rows), indent=2)
