"""
SQLAlchemy models for the local (non-Supabase) store.

The tables mirror the Supabase schema: user_settings, memories,
conversations, messages and trades, each owned by a user id.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryKind(enum.Enum):
    """Coarse category of a memory note."""

    PREFERENCE = "preference"
    PATTERN = "pattern"
    NOTE = "note"


class MessageRole(enum.Enum):
    """Author of a conversation message."""

    USER = "user"
    AI = "ai"


class TradeDirection(enum.Enum):
    """Trade direction enum."""

    LONG = "long"
    SHORT = "short"


class TradeOutcome(enum.Enum):
    """Trade outcome enum."""

    UNKNOWN = "unknown"
    WIN = "win"
    LOSS = "loss"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserSettings(Base):
    """Per-user coaching preferences (one row per user)."""

    __tablename__ = "user_settings"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    display_name = Column(String(200))
    trading_experience = Column(String(50), default="Intermediate")
    trading_style = Column(String(50), default="Day Trading")
    risk_level = Column(String(50), default="Moderate")
    analysis_depth = Column(String(50), default="Standard")
    remember_patterns = Column(Boolean, default=True)
    context_window = Column(String(50), default="Last 30 trades")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<UserSettings(user_id='{self.user_id}', experience='{self.trading_experience}')>"


class Memory(Base):
    """Append-only note about the trader's preferences or patterns."""

    __tablename__ = "memories"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    kind = Column(Enum(MemoryKind, values_callable=_enum_values), default=MemoryKind.NOTE)
    content = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    def __repr__(self):
        return f"<Memory(kind='{self.kind.value}', content='{(self.content or '')[:30]}')>"


class Conversation(Base):
    """A chat thread owned by one user."""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    messages = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Conversation(id='{self.id}', title='{self.title}')>"


class Message(Base):
    """Immutable chat message."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    role = Column(Enum(MessageRole, values_callable=_enum_values), nullable=False)
    text = Column(Text)
    image_url = Column(Text)
    voice_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<Message(role='{self.role.value}', conversation='{self.conversation_id}')>"


class Trade(Base):
    """Trade journal entry, usually saved from an analysis."""

    __tablename__ = "trades"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True
    )
    message_id = Column(String(36), ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    instrument = Column(String(50))
    direction = Column(Enum(TradeDirection, values_callable=_enum_values))
    entry_plan = Column(Text)
    timeframes = Column(JSON)
    tags = Column(JSON)
    notes = Column(Text)
    outcome = Column(
        Enum(TradeOutcome, values_callable=_enum_values), default=TradeOutcome.UNKNOWN
    )
    rr_numeric = Column(Float)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        direction = self.direction.value if self.direction else None
        return f"<Trade(instrument='{self.instrument}', direction='{direction}')>"


def to_dict(row) -> dict:
    """Convert a model row to a plain dict (enums as values, datetimes as ISO strings)."""
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        data[column.name] = value
    return data


def create_session_factory(db_url: str):
    """Create an engine for `db_url`, create tables, and return a session factory."""
    kwargs = {}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, or every session would see its own empty database.
            kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, echo=False, **kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
