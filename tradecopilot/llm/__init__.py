"""LLM integration for TradeCopilot."""

from tradecopilot.llm.client import CompletionClient, CompletionProvider, OpenAICompletionProvider
from tradecopilot.llm.normalizer import AnalysisResult, ResponseNormalizer
from tradecopilot.llm.prompts import PromptBuilder

__all__ = [
    "AnalysisResult",
    "CompletionClient",
    "CompletionProvider",
    "OpenAICompletionProvider",
    "PromptBuilder",
    "ResponseNormalizer",
]
