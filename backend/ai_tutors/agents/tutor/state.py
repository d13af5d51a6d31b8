"""State and data definitions for the multi-agent tutor.

Agents are plain data: every behavioural difference between personas lives
in these records, never in subclasses.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TutorMode(str, Enum):
    """Routing strategy held by a session."""

    MANUAL = "manual"
    ROUTER = "router"
    RANDOM = "random"
    COLLABORATIVE = "collaborative"


class CollaborativeStyle(str, Enum):
    """Dispatch discipline for collaborative replies."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    DEBATE = "debate"
    RANDOM = "random"


class EventType(str, Enum):
    """Interaction log event types."""

    SESSION_START = "session_start"
    MODE_CHANGE = "mode_change"
    AGENT_SWITCH = "agent_switch"
    MESSAGE_SENT = "message_sent"
    MESSAGE_RECEIVED = "message_received"
    CONVERSATION_CLEAR = "conversation_clear"
    ERROR = "error"


def parse_rules(raw: Any) -> List[str]:
    """
    Parse a dos/don'ts rule list leniently.

    Accepts a list or a JSON-encoded list. Anything malformed yields an
    empty list instead of an error.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(rule).strip() for rule in raw if isinstance(rule, str) and rule.strip()]


# =============================================================================
# Agents
# =============================================================================

class AgentProfile(BaseModel):
    """Immutable snapshot of a tutor agent used during one routing decision."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    display_name: str
    description: Optional[str] = None
    personality: Optional[str] = None
    system_prompt: str = ""
    temperature: Optional[float] = None
    dos_rules: List[str] = Field(default_factory=list)
    donts_rules: List[str] = Field(default_factory=list)
    avatar_url: Optional[str] = None
    welcome_message: Optional[str] = None

    @field_validator("dos_rules", "donts_rules", mode="before")
    @classmethod
    def _lenient_rules(cls, value: Any) -> List[str]:
        return parse_rules(value)


class AgentRef(BaseModel):
    id: int
    name: str
    display_name: str


class AgentSummary(BaseModel):
    """Agent fields shown next to a conversation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    welcome_message: Optional[str] = None
    personality: Optional[str] = None


# =============================================================================
# Routing
# =============================================================================

class AgentAlternative(BaseModel):
    agent_id: int
    agent_name: str
    score: float


class RoutingInfo(BaseModel):
    """Outcome of a routing decision."""

    selected_agent: AgentRef
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: Optional[List[AgentAlternative]] = None


# =============================================================================
# Collaboration
# =============================================================================

class CollaborativeOptions(BaseModel):
    """Caller-supplied knobs for a collaborative reply.

    Unset fields fall back to the TUTOR_COLLAB_* settings.
    """

    style: Optional[CollaborativeStyle] = None
    max_agents: Optional[int] = Field(default=None, ge=1)
    selected_agent_ids: List[int] = Field(default_factory=list)
    max_response_length: Optional[int] = Field(default=None, ge=50)
    show_individual_responses: bool = True
    synthesize: bool = True


class AgentContribution(BaseModel):
    agent_id: int
    agent_name: str
    agent_display_name: str
    contribution: str
    response_time_ms: int
    round: int = 1
    failed: bool = False
    model: Optional[str] = None
    provider: Optional[str] = None


class CollaborativeInfo(BaseModel):
    style: CollaborativeStyle
    agent_contributions: List[AgentContribution]
    synthesis: Optional[str] = None
    mentioned_agents: List[str] = Field(default_factory=list)
    total_rounds: Optional[int] = None


class CollaborativeResult(BaseModel):
    """What the orchestrator hands back to the session layer."""

    content: str
    info: CollaborativeInfo
    model: Optional[str] = None
    provider: Optional[str] = None
    routing_info: Optional[RoutingInfo] = None


# =============================================================================
# Sessions, conversations and messages
# =============================================================================

class TutorSessionData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    mode: TutorMode
    active_agent_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class TutorMessageData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    role: str  # "user" | "assistant"
    content: str
    ai_model: Optional[str] = None
    ai_provider: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    response_time_ms: Optional[int] = None
    temperature: Optional[float] = None
    routing_reason: Optional[str] = None
    routing_confidence: Optional[float] = None
    synthesized_from: Optional[str] = None
    created_at: datetime


class MessagePreview(BaseModel):
    role: str
    content: str
    created_at: datetime


class TutorConversationData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    agent_id: int
    message_count: int
    last_message_at: Optional[datetime] = None
    created_at: datetime


class ConversationWithPreview(TutorConversationData):
    agent: AgentSummary
    last_message: Optional[MessagePreview] = None


class ConversationWithMessages(TutorConversationData):
    messages: List[TutorMessageData] = Field(default_factory=list)


class TutorSessionResponse(BaseModel):
    session: TutorSessionData
    conversations: List[ConversationWithPreview]
    agents: List[AgentProfile]


class TutorMessageResponse(BaseModel):
    user_message: TutorMessageData
    assistant_message: TutorMessageData
    routing_info: Optional[RoutingInfo] = None
    collaborative_info: Optional[CollaborativeInfo] = None


# =============================================================================
# Audit and stats
# =============================================================================

class InteractionLogData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    session_id: Optional[int] = None
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None
    agent_id: Optional[int] = None
    agent_name: Optional[str] = None
    agent_display_name: Optional[str] = None
    event_type: str
    user_message: Optional[str] = None
    assistant_message: Optional[str] = None
    message_char_count: Optional[int] = None
    response_char_count: Optional[int] = None
    mode: Optional[str] = None
    ai_model: Optional[str] = None
    ai_provider: Optional[str] = None
    response_time_ms: Optional[int] = None
    routing_reason: Optional[str] = None
    routing_confidence: Optional[float] = None
    routing_alternatives: Optional[str] = None
    agent_contributions: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: datetime


class ModeCount(BaseModel):
    mode: Optional[str]
    count: int


class AgentCount(BaseModel):
    agent: Optional[str]
    count: int


class TutorStats(BaseModel):
    total_sessions: int
    total_messages: int
    messages_by_mode: List[ModeCount]
    messages_by_agent: List[AgentCount]
    avg_response_time_ms: Optional[float] = None
