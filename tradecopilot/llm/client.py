"""
Completion client for the trading coach.

Talks to OpenAI (or any OpenAI-compatible proxy) through the `openai` SDK.
The provider sits behind the CompletionProvider interface so tests can
inject a fake one; CompletionClient owns model selection and payload shape.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from openai import APIConnectionError, APIStatusError, OpenAI

from tradecopilot.config import CopilotConfig
from tradecopilot.errors import UpstreamProviderError

logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT = {"type": "json_object"}


class CompletionProvider(ABC):
    """Abstract base class for chat-completion providers."""

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: Optional[dict] = None,
    ) -> str:
        """
        Run one chat completion and return the text of the single choice.

        Raises:
            UpstreamProviderError: on a non-success status or a failed connection
        """
        pass


class OpenAICompletionProvider(CompletionProvider):
    """Chat completions via the OpenAI SDK."""

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = base_url
        self._client: Optional[OpenAI] = None

    @property
    def is_available(self) -> bool:
        """Check if an API key is configured."""
        return self.api_key is not None

    def _get_client(self) -> OpenAI:
        """Get or create the OpenAI client (no SDK-level retries, the orchestrator owns those)."""
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: Optional[dict] = None,
    ) -> str:
        if not self.is_available:
            raise UpstreamProviderError("LLM API key not configured", retryable=False)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = self._get_client().chat.completions.create(**kwargs)
        except APIStatusError as e:
            body = e.response.text if e.response is not None else str(e)
            if e.status_code == 401:
                logger.error("LLM authentication failed - check LLM_API_KEY")
            elif e.status_code == 429:
                logger.warning("LLM rate limited")
            raise UpstreamProviderError("Chat completion failed", e.status_code, body) from e
        except APIConnectionError as e:
            raise UpstreamProviderError(f"Could not reach completion provider: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


@dataclass
class Completion:
    """Raw provider text plus the model that produced it."""

    text: str
    model: str


class CompletionClient:
    """
    Shapes one completion request and sends it to the provider.

    - Any image attachment selects the vision model, otherwise the text model
    - Detailed analysis gets the larger token budget
    - Always asks for a strict JSON object
    """

    def __init__(self, provider: CompletionProvider, config: CopilotConfig):
        self.provider = provider
        self.config = config

    def select_model(self, has_images: bool) -> str:
        return self.config.vision_model if has_images else self.config.text_model

    def max_tokens_for(self, request_analysis: bool) -> int:
        if request_analysis:
            return self.config.max_tokens_analysis
        return self.config.max_tokens_chat

    def complete(
        self,
        messages: list[dict[str, Any]],
        has_images: bool,
        request_analysis: bool = False,
    ) -> Completion:
        """Make exactly one provider call. Errors propagate to the caller."""
        model = self.select_model(has_images)
        logger.info(f"Calling completion provider with model {model} ({'vision' if has_images else 'text-only'})")

        text = self.provider.complete(
            messages,
            model=model,
            max_tokens=self.max_tokens_for(request_analysis),
            temperature=self.config.temperature,
            response_format=JSON_RESPONSE_FORMAT,
        )
        return Completion(text=text, model=model)
