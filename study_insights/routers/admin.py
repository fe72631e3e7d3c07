"""
Admin Router — Instructor/admin views across participants.

Endpoints:
  GET /insights/admin/users                          — Participants with progress
  GET /insights/admin/classes/{class_id}/accuracy    — Class-wide accuracy timeline
"""

from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from study_insights.config import settings
from study_insights.models.activity import ActivityEvent, DashboardUser
from study_insights.models.dashboard import (
    AccuracyTimeline,
    PaginatedResponse,
    UserProgressItem,
)
from study_insights.routers.insights import rate_limit
from study_insights.services import activity_log
from study_insights.services.activity.buckets import (
    Granularity,
    accuracy_timeline,
    resolve_timezone,
)
from study_insights.services.activity.events import EventFilter
from study_insights.services.activity.progress import calculate_progress
from study_insights.services.auth import require_staff

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# USERS
# =============================================================================


@router.get("/users")
async def list_users_with_progress(
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(require_staff),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    search: str | None = Query(default=None),
    class_id: str | None = Query(default=None),
) -> PaginatedResponse:
    """Participants with their accepted-suggestion progress."""
    try:
        users, total = await activity_log.list_users(
            limit=limit, offset=offset, search=search, class_id=class_id
        )
        events = await activity_log.fetch_users_activity(users)
    except Exception:
        logger.exception("Admin: failed to list users with activity")
        raise HTTPException(status_code=500, detail="Failed to fetch users")

    by_user: dict[str, list[ActivityEvent]] = defaultdict(list)
    for event in events:
        if event.user_id:
            by_user[event.user_id].append(event)

    items = [
        UserProgressItem(
            id=user.id,
            first_name=user.first_name,
            pid=user.pid,
            role=user.role,
            mode=user.mode,
            class_id=user.class_id,
            last_activity=user.last_activity.isoformat() if user.last_activity else None,
            progress=calculate_progress(by_user.get(str(user.id), [])),
        )
        for user in users
    ]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


# =============================================================================
# CLASSES
# =============================================================================


@router.get("/classes/{class_id}/accuracy")
async def class_accuracy(
    class_id: str,
    request: Request,
    _rate: None = Depends(rate_limit),
    viewer: DashboardUser = Depends(require_staff),
    interval: Granularity = Query(default=Granularity.DAY),
    event_filter: EventFilter = Query(default=EventFilter.TOTAL, alias="filter"),
    tz: str | None = Query(default=None),
) -> AccuracyTimeline:
    """Accuracy timeline pooled over every participant in a class."""
    if interval not in (Granularity.DAY, Granularity.WEEK, Granularity.MONTH):
        raise HTTPException(status_code=422, detail="interval must be Day, Week or Month")

    try:
        users, _ = await activity_log.list_users(
            limit=settings.admin_page_size_max, offset=0, class_id=class_id
        )
        events = await activity_log.fetch_users_activity(users)
    except Exception:
        logger.exception("Admin: failed to fetch activity for class %s", class_id)
        raise HTTPException(status_code=500, detail="Failed to fetch class activity")

    if not users:
        raise HTTPException(status_code=404, detail="Class not found or empty")

    return accuracy_timeline(
        events,
        interval,
        event_filter,
        tz=resolve_timezone(tz or settings.default_timezone),
    )
