"""
Conversation chat flow.

Wraps the orchestrator the way the chat UI uses it: run the analysis with a
bounded retry, then persist the user message, the coach's reply and any
memory hint worth keeping.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from tradecopilot.coach.orchestrator import AnalysisOrchestrator, AnalysisOutcome, AnalyzeRequest
from tradecopilot.errors import NotFoundError
from tradecopilot.journal.store import CopilotStore
from tradecopilot.llm.normalizer import is_real_insight

logger = logging.getLogger(__name__)


def default_conversation_title(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"Chat {today.isoformat()}"


@dataclass
class ChatReply:
    """Outcome of one chat turn plus what was persisted for it."""

    outcome: AnalysisOutcome
    attempts: int
    user_message: Optional[dict] = None
    ai_message: Optional[dict] = None
    memory: Optional[dict] = None


class ChatService:
    """Conversation-level operations on top of the analysis orchestrator."""

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        store: CopilotStore,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

    async def start_conversation(self, user_id: str, title: Optional[str] = None) -> dict:
        return await asyncio.to_thread(
            self.store.create_conversation, user_id, title or default_conversation_title()
        )

    async def ensure_owner(self, user_id: str, conversation_id: str) -> None:
        owner = await asyncio.to_thread(self.store.get_conversation_owner, conversation_id)
        if owner is None or owner != user_id:
            raise NotFoundError("Conversation not found")

    async def send_message(
        self,
        user_id: str,
        conversation_id: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        request_analysis: bool = False,
        use_memory: bool = True,
    ) -> ChatReply:
        """
        Run one chat turn.

        Validation failures are not retried. Server-side failures are retried
        up to `max_attempts` in total, waiting `retry_delay_seconds * attempt`
        between attempts. The user message is always saved once the request
        passes validation; the reply and memory only on success.
        """
        await self.ensure_owner(user_id, conversation_id)

        request = AnalyzeRequest(
            image_urls=[image_url] if image_url else None,
            context_text=text.strip() if text and text.strip() else None,
            conversation_id=conversation_id,
            request_analysis=request_analysis,
            use_memory=use_memory,
        )

        attempt = 1
        while True:
            outcome = await self.orchestrator.analyze(request, user_id=user_id)
            if outcome.ok or outcome.status_code < 500 or attempt >= self.max_attempts:
                break
            logger.info(f"Attempt {attempt} failed, retrying...")
            await self._sleep(self.retry_delay_seconds * attempt)
            attempt += 1

        reply = ChatReply(outcome=outcome, attempts=attempt)
        if outcome.status_code == 400:
            return reply

        reply.user_message = await self._save(
            "user message", self.store.add_message, conversation_id, "user", request.context_text, image_url
        )

        if outcome.ok and outcome.result is not None:
            reply.ai_message = await self._save(
                "coach reply", self.store.add_message, conversation_id, "ai", outcome.result.narrative
            )
            if is_real_insight(outcome.result.memory_hint):
                reply.memory = await self._save(
                    "memory", self.store.append_memory, user_id, outcome.result.memory_hint, "note"
                )
        else:
            logger.error(f"Failed to get a reply after {attempt} attempts")

        return reply

    async def _save(self, label: str, fn, *args) -> Optional[dict]:
        """Persist without failing the turn; the caller already has the reply."""
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.error(f"Error saving {label}: {e}")
            return None
