"""
Supabase Service — Shared async client for the study project plus query helpers.

PostgREST caps every response (1,000 rows on hosted Supabase), so log reads
go through fetch_all_rows, which pages with Range until a short page.
"""

import logging
from typing import Any, Callable

from supabase import acreate_client, AsyncClient

from study_insights.config import settings

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None


async def get_supabase_client() -> AsyncClient:
    """Return the process-wide client, connecting on first use."""
    global _client
    if _client is not None:
        return _client

    try:
        _client = await acreate_client(settings.supabase_url, settings.supabase_service_key)
    except Exception:
        logger.exception("Supabase: could not connect to %s", settings.supabase_url)
        raise
    logger.info("Supabase: client connected")
    return _client


async def close_supabase() -> None:
    """Release the REST and auth HTTP sessions held by the client."""
    global _client
    client, _client = _client, None
    if client is None:
        return

    try:
        await client.postgrest.aclose()
        await client.auth.close()
    except Exception as e:
        # Shutdown continues; the sockets go away with the process
        logger.warning("Supabase: error while closing client: %s", e)
    else:
        logger.info("Supabase: client closed")


async def get_first_or_none(query: Any) -> dict[str, Any] | None:
    """Execute query and return first row or None."""
    result = await query.limit(1).execute()
    data: list[dict[str, Any]] = result.data or []
    return data[0] if data else None


async def fetch_all_rows(
    build_query: Callable[[], Any],
    *,
    page_size: int,
    max_rows: int | None = None,
) -> list[dict[str, Any]]:
    """Read every row of an ordered query, one Range page at a time.

    build_query must return a fresh, ordered builder on each call since
    range() mutates the builder it is called on. Stops at max_rows.
    """
    rows: list[dict[str, Any]] = []
    while True:
        size = page_size if max_rows is None else min(page_size, max_rows - len(rows))
        if size <= 0:
            logger.warning("Supabase: stopped at row cap (%d rows)", len(rows))
            break

        start = len(rows)
        result = await build_query().range(start, start + size - 1).execute()
        page: list[dict[str, Any]] = result.data or []
        rows.extend(page)
        if len(page) < size:
            break
    return rows
