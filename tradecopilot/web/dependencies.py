"""
Shared FastAPI dependencies for authentication and app services.

Supports Supabase Auth (production) and a fixed local user (development).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from tradecopilot.config import get_local_user_id

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """Authenticated user. `id` is the Supabase UUID, or the local user id."""

    id: str
    email: Optional[str] = None


def _is_supabase_enabled() -> bool:
    from tradecopilot.db.supabase_client import is_supabase_configured

    return is_supabase_configured()


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get("access_token")


async def get_user_from_token(access_token: str) -> Optional[CurrentUser]:
    """Validate a Supabase access token. Returns None if invalid."""

    def _do_get_user():
        from tradecopilot.db.supabase_client import get_supabase_client

        try:
            result = get_supabase_client().auth.get_user(access_token)
        except Exception as e:
            logger.debug(f"Token validation failed: {e}")
            return None
        if result is None or result.user is None:
            return None
        return CurrentUser(id=str(result.user.id), email=getattr(result.user, "email", None))

    return await asyncio.to_thread(_do_get_user)


async def get_current_user(request: Request) -> CurrentUser:
    """
    Get the current authenticated user.

    With Supabase enabled, requires a valid Bearer token (or access_token
    cookie). Otherwise every request acts as the configured local user.

    Raises:
        HTTPException 401 if not authenticated
    """
    if not _is_supabase_enabled():
        return CurrentUser(id=get_local_user_id())

    token = _bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_from_token(token)
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_store(request: Request):
    return request.app.state.store


def get_orchestrator(request: Request):
    return request.app.state.orchestrator


def get_chat_service(request: Request):
    return request.app.state.chat
