"""Tests for the instructor/admin endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from factories import FakeResult, accept, reject
from study_insights.main import app
from study_insights.models.activity import DashboardUser
from study_insights.routers.admin import class_accuracy, list_users_with_progress
from study_insights.routers.insights import rate_limit
from study_insights.services.activity.buckets import Granularity
from study_insights.services.activity.events import EventFilter
from study_insights.services.auth import verify_user_jwt

_ADMIN = DashboardUser(id=uuid4(), role="admin")
_ALICE = DashboardUser(id=uuid4(), first_name="Alice", pid="P-1", mode="CODE_BLOCK", class_id="cs101")
_BOB = DashboardUser(id=uuid4(), first_name="Bob", pid="P-2", mode="LINE_BY_LINE", class_id="cs101")

_EVENTS = [
    accept(user_id=str(_ALICE.id)),
    accept(has_bug=True, minutes=1, user_id=str(_ALICE.id)),
    accept(minutes=2, user_id=str(_BOB.id)),
    reject(has_bug=True, minutes=3, user_id=str(_BOB.id)),
]


def _patch_users(users: list[DashboardUser], total: int | None = None):  # type: ignore[no-untyped-def]
    return patch(
        "study_insights.services.activity_log.list_users",
        new_callable=AsyncMock,
        return_value=(users, total if total is not None else len(users)),
    )


def _patch_events(events=_EVENTS):  # type: ignore[no-untyped-def]
    return patch(
        "study_insights.services.activity_log.fetch_users_activity",
        new_callable=AsyncMock,
        return_value=list(events),
    )


# =============================================================================
# USERS
# =============================================================================


class TestListUsersWithProgress:
    @pytest.mark.asyncio
    async def test_progress_per_user(self) -> None:
        with _patch_users([_ALICE, _BOB], total=40), _patch_events():
            page = await list_users_with_progress(
                request=None, _rate=None, viewer=_ADMIN,
                limit=2, offset=0, search=None, class_id=None,
            )

        assert page.total == 40
        assert page.limit == 2
        alice, bob = page.items
        assert alice.pid == "P-1"
        assert alice.progress.total_accepted == 2
        assert alice.progress.percentage_correct == 50.0
        assert bob.progress.total_accepted == 1
        assert bob.progress.percentage_correct == 100.0

    @pytest.mark.asyncio
    async def test_user_without_activity(self) -> None:
        with _patch_users([_ALICE]), _patch_events([]):
            page = await list_users_with_progress(
                request=None, _rate=None, viewer=_ADMIN,
                limit=50, offset=0, search="ali", class_id=None,
            )
        assert page.items[0].progress.total_accepted == 0
        assert page.items[0].progress.percentage_correct == 0

    @pytest.mark.asyncio
    async def test_db_error_500(self) -> None:
        with patch(
            "study_insights.services.activity_log.list_users",
            new_callable=AsyncMock,
            side_effect=Exception("DB down"),
        ), pytest.raises(HTTPException) as exc_info:
            await list_users_with_progress(
                request=None, _rate=None, viewer=_ADMIN,
                limit=50, offset=0, search=None, class_id=None,
            )
        assert exc_info.value.status_code == 500


# =============================================================================
# CLASSES
# =============================================================================


class TestClassAccuracy:
    @pytest.mark.asyncio
    async def test_pools_class_events(self) -> None:
        now = datetime.now(timezone.utc).isoformat()
        events = [
            accept(created_at=now, user_id=str(_ALICE.id)),
            accept(has_bug=True, created_at=now, user_id=str(_ALICE.id)),
            accept(created_at=now, user_id=str(_BOB.id)),
            reject(has_bug=True, created_at=now, user_id=str(_BOB.id)),
        ]
        with _patch_users([_ALICE, _BOB]), _patch_events(events):
            timeline = await class_accuracy(
                "cs101", request=None, _rate=None, viewer=_ADMIN,
                interval=Granularity.MONTH, event_filter=EventFilter.TOTAL, tz="UTC",
            )

        assert timeline.interval == "Month"
        assert len(timeline.labels) == 7
        # Current month sits second to last (one month ahead is shown)
        assert timeline.totals[-2] == 4
        assert timeline.accuracy[-2] == 75.0
        assert sum(timeline.totals) == 4

    @pytest.mark.asyncio
    async def test_rejects_minute_interval(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await class_accuracy(
                "cs101", request=None, _rate=None, viewer=_ADMIN,
                interval=Granularity.MINUTE, event_filter=EventFilter.TOTAL, tz=None,
            )
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_class_404(self) -> None:
        with _patch_users([]), _patch_events([]), pytest.raises(HTTPException) as exc_info:
            await class_accuracy(
                "nope", request=None, _rate=None, viewer=_ADMIN,
                interval=Granularity.DAY, event_filter=EventFilter.TOTAL, tz=None,
            )
        assert exc_info.value.status_code == 404


# =============================================================================
# HTTP SURFACE
# =============================================================================

client = TestClient(app)


@pytest.mark.unit
class TestAdminAccess:
    def test_student_forbidden(self) -> None:
        app.dependency_overrides[verify_user_jwt] = lambda: DashboardUser(id=uuid4())
        app.dependency_overrides[rate_limit] = lambda: None
        try:
            resp = client.get("/insights/admin/users")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 403

    def test_instructor_lists_users(self) -> None:
        app.dependency_overrides[verify_user_jwt] = lambda: DashboardUser(
            id=uuid4(), role="instructor"
        )
        app.dependency_overrides[rate_limit] = lambda: None
        try:
            with _patch_users([_ALICE]), _patch_events():
                resp = client.get("/insights/admin/users?class_id=cs101")
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["items"][0]["progress"]["total_accepted"] == 2

    def test_search_with_filter_characters(self) -> None:
        sb = MagicMock()
        query = sb.table.return_value.select.return_value
        query.or_.return_value.order.return_value.range.return_value.execute = AsyncMock(
            return_value=FakeResult([], count=0)
        )
        app.dependency_overrides[verify_user_jwt] = lambda: _ADMIN
        app.dependency_overrides[rate_limit] = lambda: None
        try:
            with patch(
                "study_insights.services.activity_log.get_supabase_client",
                new_callable=AsyncMock,
                return_value=sb,
            ):
                resp = client.get("/insights/admin/users", params={"search": "smith, j.(x)"})
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 200
        assert resp.json()["total"] == 0
        query.or_.assert_called_once_with(
            'first_name.ilike."%smith, j.(x)%",pid.ilike."%smith, j.(x)%"'
        )
