"""
Settings API routes.

Per-user coaching preferences: experience, style, risk tolerance and
whether the coach should remember patterns.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tradecopilot.journal.store import DEFAULT_USER_SETTINGS
from tradecopilot.web.dependencies import get_current_user, get_store
from tradecopilot.web.schemas import SettingsUpdate, success_response

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _merge_defaults(stored: dict | None) -> dict:
    merged = dict(DEFAULT_USER_SETTINGS)
    for key in DEFAULT_USER_SETTINGS:
        if stored and stored.get(key) is not None:
            merged[key] = stored[key]
    return merged


@router.get("")
async def get_settings(user=Depends(get_current_user), store=Depends(get_store)):
    """Get settings for the current user (defaults for anything never saved)."""
    stored = await asyncio.to_thread(store.get_settings, user.id)
    return JSONResponse(success_response(data=_merge_defaults(stored)))


@router.put("")
async def update_settings(
    update: SettingsUpdate,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    """Create or update the current user's settings."""
    values = update.model_dump(exclude_unset=True)
    saved = await asyncio.to_thread(store.save_settings, user.id, values)
    return JSONResponse(success_response(data=_merge_defaults(saved), message="Settings saved"))
