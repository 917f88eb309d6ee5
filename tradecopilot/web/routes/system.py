"""
System/health API routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tradecopilot import __version__
from tradecopilot.config import get_llm_api_key
from tradecopilot.db.supabase_client import is_supabase_configured
from tradecopilot.web.schemas import success_response

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return JSONResponse(success_response(data={"status": "healthy"}, message="Service is running"))


@router.get("/api/status")
async def api_status(request: Request):
    """Get API status including model and store configuration."""
    config = request.app.state.orchestrator.config
    return JSONResponse(
        success_response(
            data={
                "version": __version__,
                "llm_available": get_llm_api_key() is not None,
                "supabase_enabled": is_supabase_configured(),
                "vision_model": config.vision_model,
                "text_model": config.text_model,
                "disclaimer_policy": config.disclaimer_policy,
            }
        )
    )
