from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import TIMESTAMP, Integer, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlmodel import SQLModel, Field, Column
from pgvector.sqlalchemy import Vector

from app.core.config import settings

SCHEMA = settings.DB_SCHEMA

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

# GUIDELINES
class Guideline(SQLModel, table=True):
    """Regla condición → acción. El motor de matching sólo la lee."""
    __tablename__ = "guidelines"
    __table_args__ = {"schema": SCHEMA}
    id: Optional[int] = Field(default=None, primary_key=True)
    condition: str = Field(sa_column=Column(Text(), nullable=False))
    action: str = Field(sa_column=Column(Text(), nullable=False))
    priority: int = Field(default=0, ge=0, le=10)
    active: bool = Field(default=True, index=True)
    category: Optional[str] = Field(default=None, index=True)
    condition_embedding: Optional[list[float]] = Field(
        default=None,
        sa_column=Column(Vector(dim=settings.EMBEDDING_DIM), nullable=True)
    )
    embedding_model: Optional[str] = None
    embedding_generated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(TIMESTAMP(timezone=True), nullable=True)
    )
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now())
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    )

# CONVERSACIONES
class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"
    __table_args__ = {"schema": SCHEMA}
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True, unique=True)
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_column=Column(TIMESTAMP(timezone=True))
    )
    updated_at: datetime = Field(
        default_factory=now_utc,
        sa_column=Column(TIMESTAMP(timezone=True))
    )

class ConversationMessage(SQLModel, table=True):
    __tablename__ = "conversation_messages"
    __table_args__ = {"schema": SCHEMA}
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key=f"{SCHEMA}.conversations.id", index=True)
    role: str
    content: str = Field(sa_column=Column(Text(), nullable=False))
    guidelines_used: list[int] = Field(default_factory=list, sa_column=Column(ARRAY(Integer())))
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_column=Column(TIMESTAMP(timezone=True))
    )

# Registro append-only: el contador de uso se deriva con COUNT(*)
class GuidelineUsage(SQLModel, table=True):
    __tablename__ = "guideline_usage"
    __table_args__ = {"schema": SCHEMA}
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key=f"{SCHEMA}.conversations.id", index=True)
    guideline_id: int = Field(foreign_key=f"{SCHEMA}.guidelines.id", index=True)
    score: float
    applied: bool = True
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_column=Column(TIMESTAMP(timezone=True))
    )

class MessageEmbedding(SQLModel, table=True):
    __tablename__ = "message_embeddings"
    __table_args__ = {"schema": SCHEMA}
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True)
    message_hash: str = Field(index=True, unique=True)
    message_text: str = Field(sa_column=Column(Text(), nullable=False))
    embedding: list[float] = Field(sa_column=Column(Vector(dim=settings.EMBEDDING_DIM)))
    embedding_model: str
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_column=Column(TIMESTAMP(timezone=True), index=True)
    )
