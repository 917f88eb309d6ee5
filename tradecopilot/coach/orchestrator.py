"""
Analysis request orchestration.

One linear pass per request:
validate -> load personalization (best effort) -> load history (best effort)
-> build prompt -> assemble messages -> call provider (timed, optionally retried)
-> normalize -> shape response.

Every outcome, including failures, carries a well-formed `feedback` object.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from tradecopilot.config import CopilotConfig
from tradecopilot.errors import (
    NotFoundError,
    PersonalizationLoadError,
    UpstreamProviderError,
    ValidationError,
)
from tradecopilot.llm.client import Completion, CompletionClient, CompletionProvider
from tradecopilot.llm.normalizer import AnalysisResult, ResponseNormalizer
from tradecopilot.llm.prompts import PromptBuilder

logger = logging.getLogger(__name__)

DEFAULT_USER_TEXT = "Analyze this trading setup"
IMAGE_PLACEHOLDER = "[Shared a chart screenshot]"


class AnalyzeRequest(BaseModel):
    """Body of an analysis request (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    image_urls: Optional[list[str]] = Field(default=None, alias="imageUrls")
    context_text: Optional[str] = Field(default=None, alias="contextText")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    request_analysis: bool = Field(default=False, alias="requestAnalysis")
    use_memory: bool = Field(default=False, alias="useMemory")

    @property
    def images(self) -> list[str]:
        return [url for url in (self.image_urls or []) if url and url.strip()]

    @property
    def text(self) -> Optional[str]:
        if self.context_text and self.context_text.strip():
            return self.context_text
        return None


@dataclass
class AnalysisOutcome:
    """HTTP-style result of one analysis request."""

    status_code: int
    body: dict[str, Any]
    result: Optional[AnalysisResult] = None
    model: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class AnalysisOrchestrator:
    """
    Runs analysis requests against a completion provider.

    Collaborators are injected so tests can substitute a fake provider and
    an in-memory store. `store` may be None, which disables personalization
    and history replay.
    """

    def __init__(
        self,
        config: CopilotConfig,
        provider: CompletionProvider,
        store=None,
        prompt_builder: Optional[PromptBuilder] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.client = CompletionClient(provider, config)
        self.store = store
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.normalizer = normalizer or ResponseNormalizer(config.disclaimer_policy)
        self._sleep = sleep

    async def analyze(
        self,
        request: AnalyzeRequest,
        user_id: Optional[str] = None,
        check_owner: bool = False,
    ) -> AnalysisOutcome:
        """
        Handle one analysis request. Never raises.

        With `check_owner`, a conversation not owned by `user_id` is reported
        as not found (after validation, before any provider call).
        """
        logger.info(
            f"Analyze request received: images={len(request.images)} "
            f"has_context={request.text is not None} analysis={request.request_analysis} "
            f"memory={request.use_memory}"
        )

        try:
            self.validate(request)
        except ValidationError as e:
            logger.info(f"Rejected analyze request: {e}")
            return self._error_outcome(e, request)

        try:
            if check_owner:
                await self._ensure_owner(request.conversation_id, user_id)

            user_settings, memories = await self._load_personalization(request, user_id)
            history = await self._load_history(request.conversation_id)

            system_prompt = self.prompt_builder.build_system_prompt(
                memories=memories,
                request_analysis=request.request_analysis,
                user_settings=user_settings,
            )
            messages = self.build_messages(system_prompt, history, request)

            start = time.perf_counter()
            completion = await self._complete_with_retry(messages, request)
            latency_ms = int((time.perf_counter() - start) * 1000)

            normalized = self.normalizer.normalize(completion.text, request.request_analysis)
            logger.info(
                f"Analysis completed in {latency_ms}ms with {completion.model}"
                f"{' (fallback)' if normalized.fallback else ''}"
            )
            return AnalysisOutcome(
                status_code=200,
                body={"feedback": normalized.result.to_payload(), "latency_ms": latency_ms},
                result=normalized.result,
                model=completion.model,
            )
        except NotFoundError as e:
            logger.info(f"Rejected analyze request: {e}")
            return self._error_outcome(e, request)
        except UpstreamProviderError as e:
            logger.error(f"Completion provider failed: {e}")
            return self._error_outcome(e, request)
        except Exception as e:
            logger.exception(f"Error in analysis request: {e}")
            return self._error_outcome(e, request)

    def validate(self, request: AnalyzeRequest) -> None:
        if not request.images and request.text is None:
            raise ValidationError("Either imageUrls or contextText must be provided")

    def build_messages(
        self,
        system_prompt: str,
        history: list[dict],
        request: AnalyzeRequest,
    ) -> list[dict[str, Any]]:
        """System prompt, replayed history (oldest first), then the current turn."""
        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]

        for message in history:
            content = message.get("text") or (IMAGE_PLACEHOLDER if message.get("image_url") else None)
            if not content:
                continue
            role = "assistant" if message.get("role") == "ai" else "user"
            messages.append({"role": role, "content": content})

        text = request.text or DEFAULT_USER_TEXT
        if request.images:
            parts: list[dict[str, Any]] = [{"type": "text", "text": text}]
            for url in request.images:
                parts.append({"type": "image_url", "image_url": {"url": url, "detail": "high"}})
            messages.append({"role": "user", "content": parts})
        else:
            messages.append({"role": "user", "content": text})

        return messages

    async def _ensure_owner(self, conversation_id: Optional[str], user_id: Optional[str]) -> None:
        """Raises NotFoundError unless `user_id` owns the conversation. Lookup failures propagate."""
        if not conversation_id or self.store is None:
            return
        owner = await self._fetch("conversation owner", self.store.get_conversation_owner, conversation_id)
        if owner is None or owner != user_id:
            raise NotFoundError("Conversation not found")

    async def _load_personalization(
        self, request: AnalyzeRequest, user_id: Optional[str]
    ) -> tuple[Optional[dict], list[str]]:
        """Settings and recent memories, or (None, []) when disabled or unavailable."""
        if not (request.use_memory and request.conversation_id) or self.store is None:
            return None, []

        if user_id is None:
            user_id = await self._lookup("conversation owner", self.store.get_conversation_owner, request.conversation_id)
        if user_id is None:
            return None, []

        user_settings = await self._lookup("user settings", self.store.get_settings, user_id)

        memories: list[str] = []
        if user_settings is None or user_settings.get("remember_patterns") is not False:
            memories = await self._lookup(
                "memories", self.store.list_recent_memories, user_id, self.config.memory_limit
            ) or []

        logger.debug(f"Loaded personalization: settings={user_settings is not None} memories={len(memories)}")
        return user_settings, memories

    async def _load_history(self, conversation_id: Optional[str]) -> list[dict]:
        if not conversation_id or self.store is None or self.config.history_limit <= 0:
            return []
        return await self._lookup(
            "message history", self.store.list_recent_messages, conversation_id, self.config.history_limit
        ) or []

    async def _fetch(self, label: str, fn, *args):
        """Run a store lookup off the event loop."""
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            raise PersonalizationLoadError(f"Failed to load {label}: {e}") from e

    async def _lookup(self, label: str, fn, *args):
        """Like _fetch, but failures degrade to None."""
        try:
            return await self._fetch(label, fn, *args)
        except PersonalizationLoadError as e:
            logger.warning(f"{e} (continuing without it)")
            return None

    async def _complete_with_retry(self, messages: list[dict], request: AnalyzeRequest) -> Completion:
        attempts = 1 + max(0, self.config.max_retries)
        attempt = 1
        while True:
            try:
                return await asyncio.to_thread(
                    self.client.complete,
                    messages,
                    bool(request.images),
                    request.request_analysis,
                )
            except UpstreamProviderError as e:
                if attempt >= attempts or not e.is_retryable(self.config.retry_statuses):
                    raise
                delay = self.config.retry_backoff_seconds * attempt
                logger.warning(f"Attempt {attempt} failed ({e.status_code}), retrying in {delay:.1f}s")
                await self._sleep(delay)
                attempt += 1

    def _error_outcome(self, error: Exception, request: AnalyzeRequest) -> AnalysisOutcome:
        status = getattr(error, "http_status", 500)
        feedback = self.normalizer.error_feedback(request.request_analysis)
        return AnalysisOutcome(
            status_code=status,
            body={"error": str(error) or error.__class__.__name__, "feedback": feedback.to_payload()},
        )


def build_orchestrator(store=None) -> AnalysisOrchestrator:
    """Orchestrator wired with the configured OpenAI provider."""
    from tradecopilot.config import load_copilot_config
    from tradecopilot.llm.client import OpenAICompletionProvider

    config = load_copilot_config()
    provider = OpenAICompletionProvider(config.api_key, config.base_url)
    return AnalysisOrchestrator(config, provider, store=store)
