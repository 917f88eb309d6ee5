"""Analysis orchestration and the conversation chat flow."""

from tradecopilot.coach.chat import ChatReply, ChatService
from tradecopilot.coach.orchestrator import (
    AnalysisOrchestrator,
    AnalysisOutcome,
    AnalyzeRequest,
    build_orchestrator,
)

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "AnalyzeRequest",
    "ChatReply",
    "ChatService",
    "build_orchestrator",
]
