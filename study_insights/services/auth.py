"""
Dashboard Auth — JWT verification for dashboard users.

Participants, instructors and admins sign in through Supabase Auth and the
dashboard sends the Supabase access token as a Bearer token. We verify it
against the project's JWKS endpoint:
  {SUPABASE_URL}/auth/v1/.well-known/jwks.json

The JWKS client is cached in-process with a 1-hour TTL.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from jwt import PyJWKClient

from study_insights.config import settings
from study_insights.models.activity import DashboardUser
from study_insights.services.activity_log import user_from_row
from study_insights.services.supabase import get_first_or_none, get_supabase_client

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWKS client — cached singleton with 1-hour TTL
# ---------------------------------------------------------------------------

_jwks_client: PyJWKClient | None = None
_jwks_client_created_at: float = 0
_JWKS_TTL_SECONDS = 3600


def _get_jwks_client() -> PyJWKClient:
    """Get or create the JWKS client (cached with TTL)."""
    global _jwks_client, _jwks_client_created_at
    now = time.monotonic()

    if _jwks_client is None or (now - _jwks_client_created_at) > _JWKS_TTL_SECONDS:
        jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
        _jwks_client_created_at = now
        logger.info("JWKS client initialized: %s", jwks_url)

    return _jwks_client


# ---------------------------------------------------------------------------
# Auth dependencies
# ---------------------------------------------------------------------------


async def verify_user_jwt(request: Request) -> DashboardUser:
    """FastAPI dependency: verify the Supabase JWT and return the dashboard user.

    Raises 401 on missing/invalid token, 403 when the account has no
    users row or has been deactivated.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing authorization token")

    token = auth_header[7:]  # Strip "Bearer "

    try:
        jwks_client = _get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        payload: dict[str, Any] = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            audience="authenticated",
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Auth: invalid token: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")
    except Exception as e:
        logger.error("Auth: JWKS verification failed: %s", e)
        raise HTTPException(status_code=401, detail="Token verification failed")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: no subject")

    try:
        sb = await get_supabase_client()
        row = await get_first_or_none(
            sb.table("users")
            .select("*, user_settings(mode, bug_percentage)")
            .eq("id", user_id)
        )
    except Exception:
        logger.exception("Auth: database error during user lookup")
        raise HTTPException(status_code=500, detail="Internal error")

    if row is None:
        raise HTTPException(status_code=403, detail="No study account linked to this login")

    user = user_from_row(row)

    if not user.active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    return user


async def require_staff(
    user: DashboardUser = Depends(verify_user_jwt),
) -> DashboardUser:
    """FastAPI dependency: the verified user, only if instructor or admin."""
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Instructor or admin role required")
    return user


def ensure_can_view(viewer: DashboardUser, user_id: UUID) -> None:
    """Students may only read their own analytics."""
    if viewer.is_staff or viewer.id == user_id:
        return
    raise HTTPException(status_code=403, detail="Not allowed to view this user's activity")
