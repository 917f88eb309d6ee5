"""
Memory API routes.

Memories are short notes the coach keeps about a trader. They are appended
after chat turns; users can list them, add their own and delete them.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tradecopilot.web.dependencies import get_current_user, get_store
from tradecopilot.web.schemas import MemoryCreate, success_response

router = APIRouter(prefix="/api/memories", tags=["memories"])


@router.get("")
async def list_memories(user=Depends(get_current_user), store=Depends(get_store)):
    """List the current user's memories, newest first."""
    memories = await asyncio.to_thread(store.list_memories, user.id)
    return JSONResponse(success_response(data=memories))


@router.post("", status_code=201)
async def add_memory(
    memory: MemoryCreate,
    user=Depends(get_current_user),
    store=Depends(get_store),
):
    """Add a memory note by hand."""
    created = await asyncio.to_thread(
        store.append_memory, user.id, memory.content.strip(), memory.kind.value
    )
    return JSONResponse(success_response(data=created, message="Memory saved"), status_code=201)


@router.delete("/{memory_id}")
async def delete_memory(memory_id: str, user=Depends(get_current_user), store=Depends(get_store)):
    """Forget one memory."""
    deleted = await asyncio.to_thread(store.delete_memory, user.id, memory_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Memory not found")
    return JSONResponse(success_response(message="Memory deleted"))
