"""
FastAPI server for TradeCopilot.

Provides the JSON API used by the chat client:
- Chart / context analysis
- Conversations and chat turns
- Coaching settings and memories
- Trade journal
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradecopilot import __version__
from tradecopilot.coach.chat import ChatService
from tradecopilot.coach.orchestrator import AnalysisOrchestrator, build_orchestrator
from tradecopilot.config import settings
from tradecopilot.journal.store import CopilotStore, get_store
from tradecopilot.logging_utils import install_log_safety
from tradecopilot.web.routes import (
    analyze_router,
    conversations_router,
    memories_router,
    settings_router,
    system_router,
    trades_router,
)

logger = logging.getLogger(__name__)

# Headers the browser client sends with authenticated calls
ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def create_app(
    store: Optional[CopilotStore] = None,
    orchestrator: Optional[AnalysisOrchestrator] = None,
) -> FastAPI:
    """
    Build the API application.

    `store` and `orchestrator` default to the configured backends; tests pass
    a local store and an orchestrator with a fake provider.
    """
    install_log_safety()

    app = FastAPI(
        title="TradeCopilot",
        description="AI trading coach: chart analysis, chat and trade journal",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=ALLOWED_HEADERS + ["*"],
    )

    if store is None:
        store = get_store()
    if orchestrator is None:
        orchestrator = build_orchestrator(store=store)

    app.state.store = store
    app.state.orchestrator = orchestrator
    app.state.chat = ChatService(
        orchestrator,
        store,
        max_attempts=settings.chat_max_attempts,
        retry_delay_seconds=settings.chat_retry_delay_seconds,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # The analyze client always expects {error, feedback}
        if request.url.path != "/api/analyze":
            return await request_validation_exception_handler(request, exc)
        feedback = orchestrator.normalizer.error_feedback()
        return JSONResponse(
            {"error": "Invalid analyze request body", "feedback": feedback.to_payload()},
            status_code=400,
        )

    app.include_router(system_router)
    app.include_router(analyze_router)
    app.include_router(conversations_router)
    app.include_router(settings_router)
    app.include_router(memories_router)
    app.include_router(trades_router)

    logger.info(f"TradeCopilot API ready (store={store.__class__.__name__})")
    return app


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the API server."""
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run_server()
