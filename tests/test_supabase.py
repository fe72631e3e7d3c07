"""
Tests for the shared Supabase client helpers.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from factories import FakeResult
from study_insights.services import supabase as supabase_service
from study_insights.services.supabase import close_supabase, fetch_all_rows


def _paged_query(pages: list[list[dict]]) -> MagicMock:
    """Builder whose .range().execute() returns the given pages in order."""
    query = MagicMock()
    query.range.return_value.execute = AsyncMock(
        side_effect=[FakeResult(page) for page in pages]
    )
    return query


class TestFetchAllRows:
    @pytest.mark.asyncio
    async def test_pages_until_short_page(self) -> None:
        query = _paged_query([[{"n": 1}, {"n": 2}], [{"n": 3}, {"n": 4}], [{"n": 5}]])

        rows = await fetch_all_rows(lambda: query, page_size=2)

        assert [r["n"] for r in rows] == [1, 2, 3, 4, 5]
        assert [c.args for c in query.range.call_args_list] == [(0, 1), (2, 3), (4, 5)]

    @pytest.mark.asyncio
    async def test_exact_multiple_needs_one_empty_page(self) -> None:
        query = _paged_query([[{"n": 1}, {"n": 2}], []])
        rows = await fetch_all_rows(lambda: query, page_size=2)
        assert len(rows) == 2
        assert query.range.call_count == 2

    @pytest.mark.asyncio
    async def test_stops_at_row_cap(self) -> None:
        query = _paged_query([[{"n": 1}, {"n": 2}], [{"n": 3}]])

        rows = await fetch_all_rows(lambda: query, page_size=2, max_rows=3)

        assert len(rows) == 3
        # Last page only asks for what is left under the cap
        assert query.range.call_args_list[-1].args == (2, 2)

    @pytest.mark.asyncio
    async def test_fresh_builder_per_page(self) -> None:
        query = _paged_query([[{"n": 1}], []])
        build = MagicMock(return_value=query)
        await fetch_all_rows(build, page_size=1)
        assert build.call_count == 2


class TestCloseSupabase:
    @pytest.mark.asyncio
    async def test_closes_sessions_and_drops_client(self) -> None:
        client = MagicMock()
        client.postgrest.aclose = AsyncMock()
        client.auth.close = AsyncMock()

        with patch.object(supabase_service, "_client", client):
            await close_supabase()
            assert supabase_service._client is None

        client.postgrest.aclose.assert_awaited_once()
        client.auth.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_errors_do_not_block_shutdown(self) -> None:
        client = MagicMock()
        client.postgrest.aclose = AsyncMock(side_effect=RuntimeError("socket gone"))

        with patch.object(supabase_service, "_client", client):
            await close_supabase()
            assert supabase_service._client is None

    @pytest.mark.asyncio
    async def test_close_without_client(self) -> None:
        with patch.object(supabase_service, "_client", None):
            await close_supabase()
            assert supabase_service._client is None
