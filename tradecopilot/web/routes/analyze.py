"""
Analysis API route.

POST /api/analyze takes `{imageUrls?, contextText?, conversationId?,
requestAnalysis?, useMemory?}` and returns `{feedback, latency_ms}`, or
`{error, feedback}` with a non-2xx status.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tradecopilot.coach.orchestrator import AnalyzeRequest
from tradecopilot.web.dependencies import get_current_user, get_orchestrator

router = APIRouter(prefix="/api", tags=["analyze"])


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    user=Depends(get_current_user),
    orchestrator=Depends(get_orchestrator),
):
    """Run one analysis request. A conversation must belong to the caller."""
    outcome = await orchestrator.analyze(body, user_id=user.id, check_owner=True)
    return JSONResponse(outcome.body, status_code=outcome.status_code)
