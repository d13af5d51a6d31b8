"""Database models for the multi-agent tutor.

This module defines SQLAlchemy ORM models for:
- Tutor Agents (persona catalog)
- Tutor Sessions (one per user)
- Tutor Conversations (one per session and agent)
- Tutor Messages
- Tutor Interaction Logs (audit trail)
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..base import Base, utc_now


TUTOR_MODES = ("manual", "router", "random", "collaborative")


class TutorAgent(Base):
    """A configured AI persona. Read-only from the tutor core."""
    __tablename__ = "tutor_agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    personality = Column(String(100), nullable=True)
    system_prompt = Column(Text, nullable=False)
    temperature = Column(Float, nullable=True)
    dos_rules = Column(Text, nullable=True)  # JSON array of strings, may be malformed
    donts_rules = Column(Text, nullable=True)
    avatar_url = Column(String(255), nullable=True)
    welcome_message = Column(Text, nullable=True)
    category = Column(String(50), default="tutor", nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now)


class TutorSession(Base):
    """Per-user container holding the active routing mode."""
    __tablename__ = "tutor_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)
    mode = Column(Enum(*TUTOR_MODES, name="tutor_mode"), default="manual", nullable=False)
    active_agent_id = Column(Integer, ForeignKey("tutor_agents.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utc_now, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    conversations = relationship("TutorConversation", back_populates="session", cascade="all, delete-orphan")


class TutorConversation(Base):
    """Message thread between one session and one agent."""
    __tablename__ = "tutor_conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("tutor_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("tutor_agents.id", ondelete="CASCADE"), nullable=False, index=True)
    message_count = Column(Integer, default=0, nullable=False)
    last_message_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    session = relationship("TutorSession", back_populates="conversations")
    agent = relationship("TutorAgent", lazy="joined")
    messages = relationship("TutorMessage", back_populates="conversation", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("session_id", "agent_id", name="unique_session_agent"),
    )


class TutorMessage(Base):
    """A single user or assistant message. Append-only apart from clearing."""
    __tablename__ = "tutor_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("tutor_conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum("user", "assistant", name="tutor_message_role"), nullable=False)
    content = Column(Text, nullable=False)
    ai_model = Column(String(100), nullable=True)
    ai_provider = Column(String(50), nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    temperature = Column(Float, nullable=True)
    routing_reason = Column(Text, nullable=True)  # free text from the AI router
    routing_confidence = Column(Float, nullable=True)
    synthesized_from = Column(Text, nullable=True)  # JSON list of agent contributions
    created_at = Column(DateTime, default=utc_now, index=True)

    # Relationships
    conversation = relationship("TutorConversation", back_populates="messages")

    __table_args__ = (
        Index("idx_conversation_created", "conversation_id", "created_at"),
    )


class TutorInteractionLog(Base):
    """Append-only audit record. Nothing on the response path reads it."""
    __tablename__ = "tutor_interaction_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    session_id = Column(Integer, nullable=True, index=True)
    conversation_id = Column(Integer, nullable=True)
    message_id = Column(Integer, nullable=True)
    agent_id = Column(Integer, nullable=True)
    agent_name = Column(String(100), nullable=True)
    agent_display_name = Column(String(255), nullable=True)
    event_type = Column(String(50), nullable=False, index=True)
    user_message = Column(Text, nullable=True)
    assistant_message = Column(Text, nullable=True)
    message_char_count = Column(Integer, nullable=True)
    response_char_count = Column(Integer, nullable=True)
    mode = Column(String(20), nullable=True)
    ai_model = Column(String(100), nullable=True)
    ai_provider = Column(String(50), nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    routing_reason = Column(Text, nullable=True)  # free text from the AI router
    routing_confidence = Column(Float, nullable=True)
    routing_alternatives = Column(Text, nullable=True)
    agent_contributions = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    error_code = Column(String(50), nullable=True)
    timestamp = Column(DateTime, default=utc_now, index=True)
