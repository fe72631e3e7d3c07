"""
Tests for the decision and keystroke log exports.
"""

import csv
import io
import json
from uuid import uuid4

import pytest

from factories import accept, make_event, reject
from study_insights.models.activity import DashboardUser
from study_insights.services.export import (
    EXPORT_COLUMNS,
    KEYSTROKE_COLUMNS,
    _sanitize_csv,
    build_export_rows,
    build_keystroke_export_rows,
    rows_to_csv,
    rows_to_json,
)

_USER = DashboardUser(id=uuid4(), first_name="Linus", pid="P-042")


@pytest.mark.unit
class TestSanitizeCsv:
    @pytest.mark.parametrize("value", ["=SUM(A1)", "+1", "-1", "@cmd", "\tx", "\rx"])
    def test_dangerous_prefixes_quoted(self, value: str) -> None:
        assert _sanitize_csv(value) == f"'{value}"

    def test_plain_values_untouched(self) -> None:
        assert _sanitize_csv("SUGGESTION_TAB_ACCEPT") == "SUGGESTION_TAB_ACCEPT"
        assert _sanitize_csv("") == ""


@pytest.mark.unit
class TestBuildExportRows:
    def test_rows_sorted_and_numbered(self) -> None:
        rows = build_export_rows(
            _USER,
            [
                reject(has_bug=True, minutes=2, duration=300),
                accept(minutes=0, duration=100),
                make_event("SUGGESTION_SHOWN", minutes=1),
            ],
        )

        assert [r["No."] for r in rows] == [1, 2, 3]
        assert [r["Decision"] for r in rows] == ["accept", "", "reject"]
        assert rows[0]["PID"] == "P-042"
        assert rows[0]["Username"] == "Linus"
        assert rows[2]["Correct"] is True
        assert rows[2]["Duration (ms)"] == 300.0
        assert rows[0]["Created At"].startswith("2024-03-10T12:00:00")

    def test_unparseable_timestamps_skipped(self) -> None:
        rows = build_export_rows(_USER, [accept(created_at="nope"), accept()])
        assert len(rows) == 1

    def test_missing_profile_fields(self) -> None:
        rows = build_export_rows(DashboardUser(id=uuid4()), [accept()])
        assert rows[0]["PID"] == ""
        assert rows[0]["Username"] == ""


@pytest.mark.unit
class TestSerialization:
    def test_csv_header_and_injection(self) -> None:
        user = DashboardUser(id=uuid4(), first_name="=HYPERLINK()", pid="P-1")
        body = rows_to_csv(build_export_rows(user, [accept(duration=120)]))

        parsed = list(csv.reader(io.StringIO(body)))
        assert parsed[0] == EXPORT_COLUMNS
        assert parsed[1][2] == "'=HYPERLINK()"
        assert parsed[1][4] == "accept"

    def test_csv_empty_has_header_only(self) -> None:
        parsed = list(csv.reader(io.StringIO(rows_to_csv([]))))
        assert parsed == [EXPORT_COLUMNS]

    def test_json(self) -> None:
        body = rows_to_json(build_export_rows(_USER, [accept(has_bug=True)]))
        data = json.loads(body)
        assert data[0]["Has Bug"] is True
        assert data[0]["Correct"] is False


@pytest.mark.unit
class TestKeystrokeExport:
    def test_suggestion_and_group_fields(self) -> None:
        user = DashboardUser(id=uuid4(), first_name="Linus", pid="P-042", bug_percentage=30)
        rows = build_keystroke_export_rows(
            user,
            [
                {
                    "event": "SUGGESTION_SHOWN",
                    "created_at": "2024-03-10T12:00:00Z",
                    "raw_text": "x = 1",
                    "line_suggestions": [
                        {
                            "correct_line": "y = 2",
                            "incorrect_line": "y = 3",
                            "shown_bug": True,
                            "line_suggestions_group": {"filename": "main.py", "language": "python"},
                        }
                    ],
                }
            ],
        )

        row = rows[0]
        assert row["No."] == 1
        assert row["Incorrect Line"] == "y = 3"
        assert row["Bug Shown"] is True
        assert row["Bug Percentage"] == 30
        assert row["Filename"] == "main.py"
        assert row["Language"] == "python"

    def test_missing_values_read_na(self) -> None:
        rows = build_keystroke_export_rows(
            DashboardUser(id=uuid4()),
            [{"event": "RUN", "created_at": "2024-03-10T12:00:00Z", "raw_text": None}],
        )
        row = rows[0]
        assert row["PID"] == "N/A"
        assert row["Raw Text"] == ""
        assert row["Bug Shown"] == "N/A"
        assert row["Bug Percentage"] == "N/A"
        assert row["Filename"] == "N/A"

    def test_gap_skips_unparseable_stamp(self) -> None:
        rows = build_keystroke_export_rows(
            _USER,
            [
                {"event": "TYPING", "created_at": "2024-03-10T12:00:00Z"},
                {"event": "TYPING", "created_at": "garbage"},
                {"event": "TYPING", "created_at": "2024-03-10T12:00:02Z"},
            ],
        )
        assert [r["Time Difference (ms)"] for r in rows] == [0, 0, 2000]
        assert rows[1]["Timestamp"] == ""

    def test_csv_uses_keystroke_columns(self) -> None:
        rows = build_keystroke_export_rows(
            _USER, [{"event": "TYPING", "created_at": "2024-03-10T12:00:00Z", "raw_text": "-1"}]
        )
        parsed = list(csv.reader(io.StringIO(rows_to_csv(rows, KEYSTROKE_COLUMNS))))
        assert parsed[0] == KEYSTROKE_COLUMNS
        assert parsed[1][6] == "'-1"
