"""
Route modules for the TradeCopilot API.

This package contains modular route definitions split by functionality.
"""

from .analyze import router as analyze_router
from .conversations import router as conversations_router
from .memories import router as memories_router
from .settings import router as settings_router
from .system import router as system_router
from .trades import router as trades_router

__all__ = [
    "analyze_router",
    "conversations_router",
    "memories_router",
    "settings_router",
    "system_router",
    "trades_router",
]
