"""
Insights Router — Chart data for a single participant's dashboard.

Endpoints:
  GET /insights/me                                     — Signed-in user
  GET /insights/users/{id}/progress                    — Accepted-suggestion correctness
  GET /insights/users/{id}/stats                       — Decision totals
  GET /insights/users/{id}/accuracy                    — Accuracy per day/week/month
  GET /insights/users/{id}/learning-progress           — Rolling accuracy curve
  GET /insights/users/{id}/response-time/trend         — Rolling accept latency
  GET /insights/users/{id}/response-time/breakdown     — Avg latency per category
  GET /insights/users/{id}/decisions                   — Accepts/rejects per minute or hour
  GET /insights/users/{id}/typing                      — Typed vs. accepted characters
  GET /insights/users/{id}/export                      — CSV/JSON decision log
  GET /insights/users/{id}/typing/export               — CSV/JSON keystroke log
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from study_insights.config import settings
from study_insights.models.activity import ActivityEvent, DashboardUser
from study_insights.models.dashboard import (
    AccuracyTimeline,
    ActivityStats,
    DecisionTimeline,
    LearningProgress,
    ProgressData,
    ResponseTimeBreakdown,
    ResponseTimeTrends,
    TypingActivity,
)
from study_insights.services import activity_log
from study_insights.services.activity.buckets import (
    Granularity,
    accuracy_timeline,
    decision_timeline,
    resolve_timezone,
)
from study_insights.services.activity.events import EventFilter, filter_events
from study_insights.services.activity.progress import (
    activity_stats,
    calculate_progress,
    response_time_breakdown,
)
from study_insights.services.activity.rolling import (
    response_time_trends,
    rolling_window,
)
from study_insights.services.activity.typing import TYPING_GRANULARITIES, group_typing
from study_insights.services.auth import ensure_can_view, verify_user_jwt
from study_insights.services.export import (
    EXPORT_COLUMNS,
    KEYSTROKE_COLUMNS,
    build_export_rows,
    build_keystroke_export_rows,
    rows_to_csv,
    rows_to_json,
)
from study_insights.services.rate_limiter import get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter()

# Hourly typing charts cover at most one day
_MAX_TYPING_HOURS = 24


# =============================================================================
# DEPENDENCIES / HELPERS
# =============================================================================


async def rate_limit(request: Request) -> None:
    """Rate limit dashboard requests per bearer token."""
    auth_header = request.headers.get("Authorization", "")
    token_hash = hashlib.sha256(auth_header.encode()).hexdigest()[:16]

    limiter = get_rate_limiter()
    if not limiter.check(f"insights:{token_hash}", settings.rate_limit_rpm):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")


async def load_participant(viewer: DashboardUser, user_id: UUID) -> DashboardUser:
    """Authorize the viewer and fetch the participant, 404 if unknown."""
    ensure_can_view(viewer, user_id)
    if viewer.id == user_id:
        return viewer

    try:
        user = await activity_log.fetch_user(user_id)
    except Exception:
        logger.exception("Insights: failed to fetch user %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch user")

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def load_activity(
    viewer: DashboardUser, user_id: UUID
) -> tuple[DashboardUser, list[ActivityEvent]]:
    user = await load_participant(viewer, user_id)
    try:
        events = await activity_log.fetch_user_activity(user)
    except Exception:
        logger.exception("Insights: failed to fetch activity for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch activity")
    return user, events


# =============================================================================
# PROFILE
# =============================================================================


@router.get("/me")
async def get_me(
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
) -> DashboardUser:
    """The signed-in user, with role and study mode."""
    return viewer


# =============================================================================
# SUMMARY
# =============================================================================


@router.get("/users/{user_id}/progress")
async def get_progress(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
) -> ProgressData:
    _, events = await load_activity(viewer, user_id)
    return calculate_progress(events)


@router.get("/users/{user_id}/stats")
async def get_stats(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
) -> ActivityStats:
    _, events = await load_activity(viewer, user_id)
    return activity_stats(events)


# =============================================================================
# TIME-BUCKETED CHARTS
# =============================================================================


@router.get("/users/{user_id}/accuracy")
async def get_accuracy(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    interval: Granularity = Query(default=Granularity.DAY),
    event_filter: EventFilter = Query(default=EventFilter.TOTAL, alias="filter"),
    tz: str | None = Query(default=None),
) -> AccuracyTimeline:
    """Accuracy per day, week or month over the default label range."""
    _, events = await load_activity(viewer, user_id)
    return accuracy_timeline(
        events,
        interval,
        event_filter,
        tz=resolve_timezone(tz or settings.default_timezone),
    )


@router.get("/users/{user_id}/decisions")
async def get_decisions(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    interval: Granularity = Query(default=Granularity.MINUTE),
    tz: str | None = Query(default=None),
) -> DecisionTimeline:
    """Accepted vs. rejected decisions per minute (or hour)."""
    if interval not in (Granularity.MINUTE, Granularity.HOUR):
        raise HTTPException(status_code=422, detail="interval must be Minute or Hour")

    _, events = await load_activity(viewer, user_id)
    return decision_timeline(
        events, interval, tz=resolve_timezone(tz or settings.default_timezone)
    )


# =============================================================================
# ROLLING-WINDOW CHARTS
# =============================================================================


@router.get("/users/{user_id}/learning-progress")
async def get_learning_progress(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    event_filter: EventFilter = Query(default=EventFilter.TOTAL, alias="filter"),
    window: int | None = Query(default=None, ge=1, le=1000),
) -> LearningProgress:
    """Rolling accuracy over the last `window` decisions."""
    window_size = window or settings.rolling_window_default
    _, events = await load_activity(viewer, user_id)
    return LearningProgress(
        event_filter=event_filter.value,
        window_size=window_size,
        points=rolling_window(filter_events(events, event_filter), window_size),
    )


@router.get("/users/{user_id}/response-time/trend")
async def get_response_time_trend(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    window: int | None = Query(default=None, ge=1, le=1000),
) -> ResponseTimeTrends:
    _, events = await load_activity(viewer, user_id)
    return response_time_trends(events, window or settings.rolling_window_default)


@router.get("/users/{user_id}/response-time/breakdown")
async def get_response_time_breakdown(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    event_filter: EventFilter = Query(default=EventFilter.TOTAL, alias="filter"),
) -> ResponseTimeBreakdown:
    _, events = await load_activity(viewer, user_id)
    return response_time_breakdown(events, event_filter)


# =============================================================================
# TYPING
# =============================================================================


@router.get("/users/{user_id}/typing")
async def get_typing(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    interval: Granularity = Query(default=Granularity.DAY),
    count: int = Query(default=30, ge=1, le=30),
    tz: str | None = Query(default=None),
) -> TypingActivity:
    """Typed vs. accepted characters for the last `count` days or hours."""
    if interval not in TYPING_GRANULARITIES:
        raise HTTPException(status_code=422, detail="interval must be Day or Hour")
    if interval == Granularity.HOUR:
        count = min(count, _MAX_TYPING_HOURS)

    await load_participant(viewer, user_id)
    try:
        logs = await activity_log.fetch_typing_logs(user_id)
    except Exception:
        logger.exception("Insights: failed to fetch typing logs for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch typing logs")

    return group_typing(
        logs,
        interval,
        tz=resolve_timezone(tz or settings.default_timezone),
        count=count,
    )


# =============================================================================
# EXPORT
# =============================================================================


ExportFormat = Literal["csv", "json"]


def _download(
    rows: list[dict[str, Any]], format: ExportFormat, filename: str, columns: list[str]
) -> StreamingResponse:
    if format == "json":
        body, media_type = rows_to_json(rows), "application/json"
    else:
        body, media_type = rows_to_csv(rows, columns), "text/csv"

    return StreamingResponse(
        iter([body]),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}.{format}"'},
    )


@router.get("/users/{user_id}/export")
async def export_activity(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    format: ExportFormat = Query(default="csv"),
) -> StreamingResponse:
    """Download the participant's decision log."""
    user, events = await load_activity(viewer, user_id)
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return _download(
        build_export_rows(user, events),
        format,
        f"user-{user.pid or user.id}-logs-{today}",
        EXPORT_COLUMNS,
    )


@router.get("/users/{user_id}/typing/export")
async def export_keystrokes(
    user_id: UUID,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(verify_user_jwt),
    format: ExportFormat = Query(default="csv"),
) -> StreamingResponse:
    """Download the participant's keystroke log with the suggestion shown at each step."""
    user = await load_participant(viewer, user_id)
    try:
        logs = await activity_log.fetch_keystroke_logs(user_id)
    except Exception:
        logger.exception("Insights: failed to fetch keystroke logs for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch typing logs")

    filename = (
        f"typing-logs-{user.first_name}-{user.pid}" if user.pid else f"typing-logs-{user.id}"
    )
    return _download(
        build_keystroke_export_rows(user, logs), format, filename, KEYSTROKE_COLUMNS
    )
