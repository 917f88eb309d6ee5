"""
Persistence for settings, memories, conversations, messages and trades.

Two backends share one interface:
- SupabaseStore: production, tables in Supabase (service client, filtered by user)
- LocalStore: development and tests, SQLite/SQLAlchemy via journal.models

Records are plain dicts in the Supabase row shape.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from tradecopilot.journal.models import (
    Conversation,
    Memory,
    MemoryKind,
    Message,
    MessageRole,
    Trade,
    TradeDirection,
    TradeOutcome,
    UserSettings,
    create_session_factory,
    to_dict,
)

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    "display_name",
    "trading_experience",
    "trading_style",
    "risk_level",
    "analysis_depth",
    "remember_patterns",
    "context_window",
)

DEFAULT_USER_SETTINGS = {
    "display_name": None,
    "trading_experience": "Intermediate",
    "trading_style": "Day Trading",
    "risk_level": "Moderate",
    "analysis_depth": "Standard",
    "remember_patterns": True,
    "context_window": "Last 30 trades",
}

TRADE_FIELDS = (
    "conversation_id",
    "message_id",
    "instrument",
    "direction",
    "entry_plan",
    "timeframes",
    "tags",
    "notes",
    "outcome",
    "rr_numeric",
)


class CopilotStore(ABC):
    """Abstract base class for TradeCopilot persistence backends."""

    # ==================== SETTINGS ====================

    @abstractmethod
    def get_settings(self, user_id: str) -> Optional[dict]:
        """Stored settings row for a user, or None if never saved."""

    @abstractmethod
    def save_settings(self, user_id: str, values: dict) -> dict:
        """Upsert a user's settings row and return it."""

    # ==================== MEMORIES ====================

    @abstractmethod
    def list_recent_memories(self, user_id: str, limit: int) -> list[str]:
        """Content of the `limit` newest memories, newest first."""

    @abstractmethod
    def list_memories(self, user_id: str) -> list[dict]:
        """All memory rows for a user, newest first."""

    @abstractmethod
    def append_memory(self, user_id: str, content: str, kind: str = "note") -> dict:
        """Append a memory note."""

    @abstractmethod
    def delete_memory(self, user_id: str, memory_id: str) -> bool:
        """Delete a user's memory note. Returns False if not found."""

    # ==================== CONVERSATIONS ====================

    @abstractmethod
    def create_conversation(self, user_id: str, title: Optional[str] = None) -> dict:
        """Create a conversation."""

    @abstractmethod
    def list_conversations(self, user_id: str) -> list[dict]:
        """Conversations of a user, newest first."""

    @abstractmethod
    def get_conversation_owner(self, conversation_id: str) -> Optional[str]:
        """User id owning a conversation, or None if it does not exist."""

    @abstractmethod
    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation and its messages."""

    @abstractmethod
    def add_message(
        self,
        conversation_id: str,
        role: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        voice_url: Optional[str] = None,
    ) -> dict:
        """Append a message to a conversation."""

    @abstractmethod
    def list_messages(self, conversation_id: str) -> list[dict]:
        """All messages of a conversation, oldest first."""

    @abstractmethod
    def list_recent_messages(self, conversation_id: str, limit: int) -> list[dict]:
        """The `limit` newest messages of a conversation, returned oldest first."""

    @abstractmethod
    def get_message_conversation(self, message_id: str) -> Optional[str]:
        """Id of the conversation a message belongs to, or None if unknown."""

    # ==================== TRADES ====================

    @abstractmethod
    def list_trades(
        self,
        user_id: str,
        outcome: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> list[dict]:
        """A user's trades, newest first, optionally filtered."""

    @abstractmethod
    def get_trade(self, user_id: str, trade_id: str) -> Optional[dict]:
        """One trade, or None if missing or owned by someone else."""

    @abstractmethod
    def create_trade(self, user_id: str, values: dict) -> dict:
        """Insert a trade."""

    @abstractmethod
    def update_trade(self, user_id: str, trade_id: str, values: dict) -> Optional[dict]:
        """Update a trade. Returns None if not found."""

    @abstractmethod
    def delete_trade(self, user_id: str, trade_id: str) -> bool:
        """Delete a trade. Returns False if not found."""


def _pick(values: dict, fields: tuple) -> dict:
    return {key: values[key] for key in fields if key in values}


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseStore(CopilotStore):
    """
    Store backed by Supabase tables.

    Uses the service client, which bypasses RLS, so every query filters on
    user_id (or on a conversation already checked for ownership by the caller).
    """

    def __init__(self, client=None):
        if client is None:
            from tradecopilot.db.supabase_client import get_service_client

            client = get_service_client()
        self.client = client

    def _table(self, name: str):
        return self.client.table(name)

    # Settings

    def get_settings(self, user_id: str) -> Optional[dict]:
        result = (
            self._table("user_settings").select("*").eq("user_id", user_id).limit(1).execute()
        )
        return result.data[0] if result.data else None

    def save_settings(self, user_id: str, values: dict) -> dict:
        row = {"user_id": user_id, **_pick(values, SETTINGS_FIELDS), "updated_at": _utcnow_iso()}
        result = self._table("user_settings").upsert(row, on_conflict="user_id").execute()
        return result.data[0] if result.data else row

    # Memories

    def list_recent_memories(self, user_id: str, limit: int) -> list[str]:
        result = (
            self._table("memories")
            .select("content")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [row["content"] for row in result.data or [] if row.get("content")]

    def list_memories(self, user_id: str) -> list[dict]:
        result = (
            self._table("memories")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data or []

    def append_memory(self, user_id: str, content: str, kind: str = "note") -> dict:
        row = {"user_id": user_id, "kind": kind, "content": content}
        result = self._table("memories").insert(row).execute()
        return result.data[0] if result.data else row

    def delete_memory(self, user_id: str, memory_id: str) -> bool:
        result = (
            self._table("memories").delete().eq("id", memory_id).eq("user_id", user_id).execute()
        )
        return bool(result.data)

    # Conversations

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> dict:
        result = self._table("conversations").insert({"user_id": user_id, "title": title}).execute()
        return result.data[0]

    def list_conversations(self, user_id: str) -> list[dict]:
        result = (
            self._table("conversations")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data or []

    def get_conversation_owner(self, conversation_id: str) -> Optional[str]:
        result = (
            self._table("conversations").select("user_id").eq("id", conversation_id).limit(1).execute()
        )
        return result.data[0]["user_id"] if result.data else None

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        result = (
            self._table("conversations")
            .delete()
            .eq("id", conversation_id)
            .eq("user_id", user_id)
            .execute()
        )
        return bool(result.data)

    def add_message(
        self,
        conversation_id: str,
        role: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        voice_url: Optional[str] = None,
    ) -> dict:
        row = {
            "conversation_id": conversation_id,
            "role": role,
            "text": text,
            "image_url": image_url,
            "voice_url": voice_url,
        }
        result = self._table("messages").insert(row).execute()
        return result.data[0]

    def list_messages(self, conversation_id: str) -> list[dict]:
        result = (
            self._table("messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .execute()
        )
        return result.data or []

    def list_recent_messages(self, conversation_id: str, limit: int) -> list[dict]:
        result = (
            self._table("messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return list(reversed(result.data or []))

    def get_message_conversation(self, message_id: str) -> Optional[str]:
        result = (
            self._table("messages").select("conversation_id").eq("id", message_id).limit(1).execute()
        )
        return result.data[0]["conversation_id"] if result.data else None

    # Trades

    def list_trades(
        self,
        user_id: str,
        outcome: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> list[dict]:
        query = self._table("trades").select("*").eq("user_id", user_id)
        if outcome:
            query = query.eq("outcome", outcome)
        if conversation_id:
            query = query.eq("conversation_id", conversation_id)
        result = query.order("created_at", desc=True).execute()
        return result.data or []

    def get_trade(self, user_id: str, trade_id: str) -> Optional[dict]:
        result = (
            self._table("trades").select("*").eq("id", trade_id).eq("user_id", user_id).limit(1).execute()
        )
        return result.data[0] if result.data else None

    def create_trade(self, user_id: str, values: dict) -> dict:
        row = {"outcome": "unknown", **_pick(values, TRADE_FIELDS), "user_id": user_id}
        result = self._table("trades").insert(row).execute()
        return result.data[0]

    def update_trade(self, user_id: str, trade_id: str, values: dict) -> Optional[dict]:
        updates = {**_pick(values, TRADE_FIELDS), "updated_at": _utcnow_iso()}
        result = (
            self._table("trades").update(updates).eq("id", trade_id).eq("user_id", user_id).execute()
        )
        return result.data[0] if result.data else None

    def delete_trade(self, user_id: str, trade_id: str) -> bool:
        result = self._table("trades").delete().eq("id", trade_id).eq("user_id", user_id).execute()
        return bool(result.data)


class LocalStore(CopilotStore):
    """Store backed by a local SQLAlchemy database (SQLite by default)."""

    def __init__(self, db_url: Optional[str] = None):
        if db_url is None:
            from tradecopilot.config import get_database_url

            db_url = get_database_url()
        self._session_factory = create_session_factory(db_url)

    def _session(self):
        return self._session_factory()

    # Settings

    def get_settings(self, user_id: str) -> Optional[dict]:
        with self._session() as session:
            row = session.query(UserSettings).filter(UserSettings.user_id == user_id).first()
            return to_dict(row) if row else None

    def save_settings(self, user_id: str, values: dict) -> dict:
        with self._session() as session:
            row = session.query(UserSettings).filter(UserSettings.user_id == user_id).first()
            if row is None:
                row = UserSettings(user_id=user_id)
                session.add(row)
            for key, value in _pick(values, SETTINGS_FIELDS).items():
                setattr(row, key, value)
            session.commit()
            return to_dict(row)

    # Memories

    def list_recent_memories(self, user_id: str, limit: int) -> list[str]:
        with self._session() as session:
            rows = (
                session.query(Memory)
                .filter(Memory.user_id == user_id)
                .order_by(Memory.created_at.desc())
                .limit(limit)
                .all()
            )
            return [row.content for row in rows if row.content]

    def list_memories(self, user_id: str) -> list[dict]:
        with self._session() as session:
            rows = (
                session.query(Memory)
                .filter(Memory.user_id == user_id)
                .order_by(Memory.created_at.desc())
                .all()
            )
            return [to_dict(row) for row in rows]

    def append_memory(self, user_id: str, content: str, kind: str = "note") -> dict:
        with self._session() as session:
            row = Memory(user_id=user_id, content=content, kind=MemoryKind(kind))
            session.add(row)
            session.commit()
            return to_dict(row)

    def delete_memory(self, user_id: str, memory_id: str) -> bool:
        with self._session() as session:
            deleted = (
                session.query(Memory)
                .filter(Memory.id == memory_id, Memory.user_id == user_id)
                .delete()
            )
            session.commit()
            return deleted > 0

    # Conversations

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> dict:
        with self._session() as session:
            row = Conversation(user_id=user_id, title=title)
            session.add(row)
            session.commit()
            return to_dict(row)

    def list_conversations(self, user_id: str) -> list[dict]:
        with self._session() as session:
            rows = (
                session.query(Conversation)
                .filter(Conversation.user_id == user_id)
                .order_by(Conversation.created_at.desc())
                .all()
            )
            return [to_dict(row) for row in rows]

    def get_conversation_owner(self, conversation_id: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(Conversation, conversation_id)
            return row.user_id if row else None

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        with self._session() as session:
            row = (
                session.query(Conversation)
                .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
                .first()
            )
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def add_message(
        self,
        conversation_id: str,
        role: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        voice_url: Optional[str] = None,
    ) -> dict:
        with self._session() as session:
            row = Message(
                conversation_id=conversation_id,
                role=MessageRole(role),
                text=text,
                image_url=image_url,
                voice_url=voice_url,
            )
            session.add(row)
            session.commit()
            return to_dict(row)

    def list_messages(self, conversation_id: str) -> list[dict]:
        with self._session() as session:
            rows = (
                session.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at)
                .all()
            )
            return [to_dict(row) for row in rows]

    def list_recent_messages(self, conversation_id: str, limit: int) -> list[dict]:
        with self._session() as session:
            rows = (
                session.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.desc())
                .limit(limit)
                .all()
            )
            return [to_dict(row) for row in reversed(rows)]

    def get_message_conversation(self, message_id: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(Message, message_id)
            return row.conversation_id if row else None

    # Trades

    def list_trades(
        self,
        user_id: str,
        outcome: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> list[dict]:
        with self._session() as session:
            query = session.query(Trade).filter(Trade.user_id == user_id)
            if outcome:
                query = query.filter(Trade.outcome == TradeOutcome(outcome))
            if conversation_id:
                query = query.filter(Trade.conversation_id == conversation_id)
            return [to_dict(row) for row in query.order_by(Trade.created_at.desc()).all()]

    def _owned_trade(self, session, user_id: str, trade_id: str) -> Optional[Trade]:
        return (
            session.query(Trade).filter(Trade.id == trade_id, Trade.user_id == user_id).first()
        )

    def get_trade(self, user_id: str, trade_id: str) -> Optional[dict]:
        with self._session() as session:
            row = self._owned_trade(session, user_id, trade_id)
            return to_dict(row) if row else None

    def create_trade(self, user_id: str, values: dict) -> dict:
        with self._session() as session:
            row = Trade(user_id=user_id)
            self._apply_trade_values(row, {"outcome": "unknown", **values})
            session.add(row)
            session.commit()
            return to_dict(row)

    def update_trade(self, user_id: str, trade_id: str, values: dict) -> Optional[dict]:
        with self._session() as session:
            row = self._owned_trade(session, user_id, trade_id)
            if row is None:
                return None
            self._apply_trade_values(row, values)
            session.commit()
            return to_dict(row)

    def delete_trade(self, user_id: str, trade_id: str) -> bool:
        with self._session() as session:
            row = self._owned_trade(session, user_id, trade_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    @staticmethod
    def _apply_trade_values(row: Trade, values: dict[str, Any]) -> None:
        for key, value in _pick(values, TRADE_FIELDS).items():
            if key == "direction" and value is not None:
                value = TradeDirection(value)
            elif key == "outcome" and value is not None:
                value = TradeOutcome(value)
            setattr(row, key, value)


def get_store() -> CopilotStore:
    """Supabase store in production, local SQLite store otherwise."""
    from tradecopilot.db.supabase_client import is_supabase_configured

    if is_supabase_configured():
        logger.info("Using Supabase store")
        return SupabaseStore()
    logger.info("Using local store")
    return LocalStore()
