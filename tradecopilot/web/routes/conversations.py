"""
Conversation API routes.

Conversations group chat messages. Sending a message runs the coach and
stores both sides of the exchange.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tradecopilot.errors import NotFoundError
from tradecopilot.web.dependencies import get_chat_service, get_current_user, get_store
from tradecopilot.web.schemas import ChatMessageCreate, ConversationCreate, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


async def _require_owner(chat, user_id: str, conversation_id: str) -> None:
    try:
        await chat.ensure_owner(user_id, conversation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("")
async def list_conversations(user=Depends(get_current_user), store=Depends(get_store)):
    """List the current user's conversations, newest first."""
    conversations = await asyncio.to_thread(store.list_conversations, user.id)
    return JSONResponse(success_response(data=conversations))


@router.post("", status_code=201)
async def create_conversation(
    body: ConversationCreate | None = None,
    user=Depends(get_current_user),
    chat=Depends(get_chat_service),
):
    """Start a conversation (titled "Chat <date>" unless a title is given)."""
    title = body.title if body else None
    conversation = await chat.start_conversation(user.id, title)
    return JSONResponse(success_response(data=conversation), status_code=201)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    """Delete a conversation and its messages."""
    deleted = await asyncio.to_thread(store.delete_conversation, user.id, conversation_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return JSONResponse(success_response(message="Conversation deleted"))


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    user=Depends(get_current_user),
    store=Depends(get_store),
    chat=Depends(get_chat_service),
):
    """All messages of a conversation, oldest first."""
    await _require_owner(chat, user.id, conversation_id)
    messages = await asyncio.to_thread(store.list_messages, conversation_id)
    return JSONResponse(success_response(data=messages))


@router.post("/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    body: ChatMessageCreate,
    user=Depends(get_current_user),
    chat=Depends(get_chat_service),
):
    """
    Send one chat turn to the coach.

    Returns the analysis response plus the stored messages. Failures keep the
    `{error, feedback}` shape and status of the analyze endpoint.
    """
    await _require_owner(chat, user.id, conversation_id)

    reply = await chat.send_message(
        user.id,
        conversation_id,
        text=body.text,
        image_url=body.image_url,
        request_analysis=body.request_analysis,
        use_memory=body.use_memory,
    )

    content = dict(reply.outcome.body)
    content.update(
        {
            "attempts": reply.attempts,
            "user_message": reply.user_message,
            "ai_message": reply.ai_message,
            "memory_saved": reply.memory is not None,
        }
    )
    return JSONResponse(content, status_code=reply.outcome.status_code)
