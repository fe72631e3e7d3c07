"""
Activity Log Service — Load participants and their logged decisions from Supabase.

Each study mode logs to its own table. Log reads are paged per participant
and ordered by created_at; the aggregation still sorts where it needs to.
Query errors propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from study_insights.config import settings
from study_insights.models.activity import ActivityEvent, DashboardUser, TypingLogEntry
from study_insights.services.supabase import (
    fetch_all_rows,
    get_first_or_none,
    get_supabase_client,
)

logger = logging.getLogger(__name__)

# mode -> (table, select clause)
MODE_TABLES: dict[str, tuple[str, str]] = {
    "CODE_BLOCK": ("code_block_logs", "id, created_at, event, duration, user_id, has_bug"),
    "LINE_BY_LINE": (
        "line_suggestions_log",
        "id, created_at, event, duration, user_id, line_suggestion:line_suggestion_id (shown_bug)",
    ),
    "CODE_SELECTION": (
        "code_selection_logs",
        "id, created_at, event, duration, user_id, has_bug",
    ),
}

_USER_SELECT = "*, user_settings(mode, bug_percentage)"
_TYPING_SELECT = "id, user_id, typed_number, accepted_number, created_at"

# typing_log events included in the keystroke export
KEYSTROKE_EXPORT_EVENTS = (
    "TYPING",
    "SUGGESTION_SHOWN",
    "SUGGESTION_TAB_ACCEPT",
    "RUN",
    "SUGGESTION_LINE_REJECT",
    "SUGGESTION_GENERATE",
)
_KEYSTROKE_SELECT = (
    "id, created_at, raw_text, line_suggestion_id, user_id, event, "
    "line_suggestions:line_suggestion_id (id, correct_line, incorrect_line, shown_bug, "
    "line_suggestions_group:group_id (filename, language))"
)


# =============================================================================
# ROW NORMALIZATION
# =============================================================================


def embedded_one(value: Any) -> dict[str, Any]:
    """Embedded one-to-one relations come back as a dict or a 0/1-item list."""
    if isinstance(value, list):
        return value[0] if value else {}
    return value or {}


def event_from_row(row: dict[str, Any]) -> ActivityEvent:
    """Build an ActivityEvent, taking has_bug from the joined suggestion if needed."""
    data = dict(row)
    if data.get("has_bug") is None:
        suggestion = embedded_one(data.pop("line_suggestion", None))
        if "shown_bug" in suggestion:
            data["has_bug"] = suggestion["shown_bug"]
    return ActivityEvent.model_validate(data)


def user_from_row(row: dict[str, Any]) -> DashboardUser:
    """Flatten the embedded user_settings row onto the user."""
    user_settings = embedded_one(row.get("user_settings"))
    return DashboardUser(
        id=row["id"],
        role=row.get("role") or "student",
        first_name=row.get("first_name"),
        pid=row.get("pid"),
        mode=user_settings.get("mode") or row.get("mode"),
        class_id=row.get("class_id"),
        bug_percentage=user_settings.get("bug_percentage"),
        last_activity=row.get("last_activity"),
        active=row.get("active", True),
    )


# =============================================================================
# USERS
# =============================================================================


def _ilike_pattern(search: str) -> str:
    """Quote a search term for a PostgREST filter string.

    Commas, dots, colons and parentheses are reserved in or_() filters, so
    the pattern is double-quoted with quotes and backslashes escaped.
    """
    escaped = search.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{escaped}%"'


async def fetch_user(user_id: UUID | str) -> DashboardUser | None:
    """Look up one participant (with settings), or None."""
    sb = await get_supabase_client()
    row = await get_first_or_none(
        sb.table("users").select(_USER_SELECT).eq("id", str(user_id))
    )
    return user_from_row(row) if row else None


async def list_users(
    *,
    limit: int,
    offset: int,
    search: str | None = None,
    class_id: str | None = None,
) -> tuple[list[DashboardUser], int]:
    """Page through participants, optionally by class or name/pid search."""
    sb = await get_supabase_client()
    query = sb.table("users").select(_USER_SELECT, count="exact")
    if class_id:
        query = query.eq("class_id", class_id)
    if search:
        pattern = _ilike_pattern(search)
        query = query.or_(f"first_name.ilike.{pattern},pid.ilike.{pattern}")

    result = await (
        query.order("created_at", desc=False).range(offset, offset + limit - 1).execute()
    )
    rows = result.data or []
    total = result.count if result.count is not None else len(rows)
    return [user_from_row(row) for row in rows], total


# =============================================================================
# DECISION EVENTS
# =============================================================================


async def fetch_user_activity(user: DashboardUser) -> list[ActivityEvent]:
    """All logged events for one participant, from their mode's table, oldest first."""
    if user.mode not in MODE_TABLES:
        logger.warning("User %s has no study mode; returning no activity", user.id)
        return []

    table, columns = MODE_TABLES[user.mode]
    sb = await get_supabase_client()
    rows = await fetch_all_rows(
        lambda: sb.table(table)
        .select(columns)
        .eq("user_id", str(user.id))
        .order("created_at", desc=False),
        page_size=settings.activity_page_size,
        max_rows=settings.activity_fetch_limit,
    )
    return [event_from_row(row) for row in rows]


async def fetch_users_activity(users: list[DashboardUser]) -> list[ActivityEvent]:
    """Events for a group of participants (e.g. a class).

    Each participant is read separately so the per-user row cap never lets
    one busy participant crowd out the others.
    """
    events: list[ActivityEvent] = []
    for user in users:
        events.extend(await fetch_user_activity(user))
    return events


# =============================================================================
# TYPING LOGS
# =============================================================================


async def fetch_typing_logs(user_id: UUID | str) -> list[TypingLogEntry]:
    """Typed/accepted character counts, oldest first."""
    sb = await get_supabase_client()
    rows = await fetch_all_rows(
        lambda: sb.table("typing_log")
        .select(_TYPING_SELECT)
        .eq("user_id", str(user_id))
        .order("created_at", desc=False),
        page_size=settings.activity_page_size,
        max_rows=settings.activity_fetch_limit,
    )
    return [TypingLogEntry.model_validate(row) for row in rows]


async def fetch_keystroke_logs(user_id: UUID | str) -> list[dict[str, Any]]:
    """Raw typing_log rows for the keystroke export, with the suggestion shown."""
    sb = await get_supabase_client()
    return await fetch_all_rows(
        lambda: sb.table("typing_log")
        .select(_KEYSTROKE_SELECT)
        .eq("user_id", str(user_id))
        .in_("event", list(KEYSTROKE_EXPORT_EVENTS))
        .order("created_at", desc=False),
        page_size=settings.activity_page_size,
        max_rows=settings.activity_fetch_limit,
    )
