"""
Pydantic schemas for API request validation.

The analyze request itself lives in tradecopilot.coach.orchestrator.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ==================== SETTINGS MODELS ====================


class SettingsUpdate(BaseModel):
    """Partial update of a user's coaching preferences."""

    display_name: Optional[str] = Field(None, max_length=200)
    trading_experience: Optional[str] = Field(None, max_length=50)
    trading_style: Optional[str] = Field(None, max_length=50)
    risk_level: Optional[str] = Field(None, max_length=50)
    analysis_depth: Optional[str] = Field(None, max_length=50)
    remember_patterns: Optional[bool] = None
    context_window: Optional[str] = Field(None, max_length=50)


# ==================== MEMORY MODELS ====================


class MemoryKind(str, Enum):
    """Memory note category."""

    preference = "preference"
    pattern = "pattern"
    note = "note"


class MemoryCreate(BaseModel):
    """Manually added memory note."""

    content: str = Field(..., min_length=1, max_length=2000)
    kind: MemoryKind = MemoryKind.note


# ==================== CONVERSATION MODELS ====================


class ConversationCreate(BaseModel):
    """Model for creating a conversation."""

    title: Optional[str] = Field(None, max_length=200)


class ChatMessageCreate(BaseModel):
    """One chat turn (camelCase accepted, like the analyze endpoint)."""

    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    request_analysis: bool = Field(default=False, alias="requestAnalysis")
    use_memory: bool = Field(default=True, alias="useMemory")


# ==================== TRADE MODELS ====================


class TradeDirection(str, Enum):
    """Trade direction enum."""

    long = "long"
    short = "short"


class TradeOutcome(str, Enum):
    """Trade outcome enum."""

    unknown = "unknown"
    win = "win"
    loss = "loss"


class TradeCreate(BaseModel):
    """Model for saving a trade to the journal."""

    model_config = ConfigDict(use_enum_values=True)

    instrument: str = Field(..., min_length=1, max_length=50)
    direction: TradeDirection
    entry_plan: Optional[str] = None
    timeframes: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    outcome: TradeOutcome = TradeOutcome.unknown
    rr_numeric: Optional[float] = None
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    narrative: Optional[str] = Field(
        None, description="Analysis narrative; its first line becomes the default notes"
    )


class TradeUpdate(BaseModel):
    """Model for updating trade fields."""

    model_config = ConfigDict(use_enum_values=True)

    instrument: Optional[str] = Field(None, min_length=1, max_length=50)
    direction: Optional[TradeDirection] = None
    entry_plan: Optional[str] = None
    timeframes: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    outcome: Optional[TradeOutcome] = None
    rr_numeric: Optional[float] = None


# ==================== HELPER FUNCTIONS ====================


def success_response(data: Any = None, message: str = None) -> dict:
    """Create a standardized success response dict."""
    response = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    return response
