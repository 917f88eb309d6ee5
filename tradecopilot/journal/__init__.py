"""Conversation, memory and trade journal persistence."""

from tradecopilot.journal.store import CopilotStore, LocalStore, SupabaseStore, get_store
from tradecopilot.journal.trades import compute_trade_stats, summarize_narrative

__all__ = [
    "CopilotStore",
    "LocalStore",
    "SupabaseStore",
    "get_store",
    "compute_trade_stats",
    "summarize_narrative",
]
