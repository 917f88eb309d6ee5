"""
Trade journal API routes.

Trades are saved by hand, usually from an analysis, and later updated with
their outcome and realized risk:reward.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tradecopilot.journal.trades import compute_trade_stats, summarize_narrative
from tradecopilot.web.dependencies import get_current_user, get_store
from tradecopilot.web.schemas import TradeCreate, TradeOutcome, TradeUpdate, success_response

router = APIRouter(prefix="/api/trades", tags=["trades"])


async def _check_links(store, user_id: str, values: dict) -> None:
    """A trade may only point at the caller's own conversation and message."""
    message_id = values.get("message_id")
    if message_id:
        message_conversation = await asyncio.to_thread(store.get_message_conversation, message_id)
        if message_conversation is None:
            raise HTTPException(status_code=404, detail="Message not found")
        if values.get("conversation_id") not in (None, message_conversation):
            raise HTTPException(status_code=404, detail="Message not found")
        values["conversation_id"] = message_conversation

    conversation_id = values.get("conversation_id")
    if conversation_id:
        owner = await asyncio.to_thread(store.get_conversation_owner, conversation_id)
        if owner != user_id:
            raise HTTPException(status_code=404, detail="Conversation not found")


@router.get("")
async def list_trades(
    outcome: Optional[TradeOutcome] = None,
    conversation_id: Optional[str] = None,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    """List the current user's trades, newest first."""
    trades = await asyncio.to_thread(
        store.list_trades, user.id, outcome.value if outcome else None, conversation_id
    )
    return JSONResponse(success_response(data=trades))


@router.get("/stats")
async def trade_stats(user=Depends(get_current_user), store=Depends(get_store)):
    """Win rate and average R:R over the journal."""
    trades = await asyncio.to_thread(store.list_trades, user.id)
    return JSONResponse(success_response(data=compute_trade_stats(trades).to_dict()))


@router.get("/{trade_id}")
async def get_trade(trade_id: str, user=Depends(get_current_user), store=Depends(get_store)):
    trade = await asyncio.to_thread(store.get_trade, user.id, trade_id)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    return JSONResponse(success_response(data=trade))


@router.post("", status_code=201)
async def create_trade(
    body: TradeCreate,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    """Save a trade. Without notes, the first line of the analysis narrative is used."""
    values = body.model_dump(exclude={"narrative"})
    if not values.get("notes") and body.narrative:
        values["notes"] = summarize_narrative(body.narrative)

    await _check_links(store, user.id, values)

    trade = await asyncio.to_thread(store.create_trade, user.id, values)
    return JSONResponse(success_response(data=trade, message="Trade saved"), status_code=201)


@router.patch("/{trade_id}")
async def update_trade(
    trade_id: str,
    body: TradeUpdate,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    values = body.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="No fields to update")

    trade = await asyncio.to_thread(store.update_trade, user.id, trade_id, values)
    if trade is None:
        raise HTTPException(status_code=404, detail="Trade not found")
    return JSONResponse(success_response(data=trade, message="Trade updated"))


@router.delete("/{trade_id}")
async def delete_trade(trade_id: str, user=Depends(get_current_user), store=Depends(get_store)):
    deleted = await asyncio.to_thread(store.delete_trade, user.id, trade_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Trade not found")
    return JSONResponse(success_response(message="Trade deleted"))
