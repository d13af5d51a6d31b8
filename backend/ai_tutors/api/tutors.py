"""Tutor API endpoints for multi-persona tutoring.

Authentication is handled upstream; callers pass the user id in the path.
Tutor errors raised by the service are translated to JSON responses by the
application's exception handler.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..agents.base.llm import LangChainCompletionService
from ..agents.tutor.service import TutorService
from ..agents.tutor.state import (
    AgentProfile,
    CollaborativeOptions,
    ConversationWithMessages,
    ConversationWithPreview,
    InteractionLogData,
    TutorMessageData,
    TutorMessageResponse,
    TutorSessionData,
    TutorSessionResponse,
    TutorStats,
)
from ..db.base import get_tutor_session_maker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors", tags=["Tutors"])


# ==============================================================================
# Dependencies
# ==============================================================================

_tutor_service: Optional[TutorService] = None


def get_tutor_service() -> TutorService:
    """Get or create the shared tutor service."""
    global _tutor_service

    if _tutor_service is None:
        _tutor_service = TutorService(
            session_maker=get_tutor_session_maker(),
            completion=LangChainCompletionService(),
        )

    return _tutor_service


# ==============================================================================
# Pydantic Models
# ==============================================================================

class ModeUpdate(BaseModel):
    """Switch the session's routing mode."""
    mode: str


class ActiveAgentUpdate(BaseModel):
    """Pick the agent for manual mode. null clears the selection."""
    agent_id: Optional[int] = None


class SendMessageRequest(BaseModel):
    """Message addressed to a tutor agent."""
    agent_id: int
    message: str = Field(min_length=1, max_length=10000)
    session_id: Optional[int] = None
    collaborative_options: Optional[CollaborativeOptions] = None


# ==============================================================================
# Session Endpoints
# ==============================================================================

@router.get("/users/{user_id}/session", response_model=TutorSessionResponse)
async def get_session(
    user_id: int,
    service: TutorService = Depends(get_tutor_service),
) -> TutorSessionResponse:
    """Get the user's session with conversation previews and available agents."""
    return await service.get_or_create_session(user_id)


@router.put("/users/{user_id}/mode", response_model=TutorSessionData)
async def update_mode(
    user_id: int,
    request: ModeUpdate,
    service: TutorService = Depends(get_tutor_service),
) -> TutorSessionData:
    return await service.update_mode(user_id, request.mode)


@router.put("/users/{user_id}/active-agent", response_model=TutorSessionData)
async def set_active_agent(
    user_id: int,
    request: ActiveAgentUpdate,
    service: TutorService = Depends(get_tutor_service),
) -> TutorSessionData:
    return await service.set_active_agent(user_id, request.agent_id)


@router.get("/agents", response_model=List[AgentProfile])
async def list_agents(
    service: TutorService = Depends(get_tutor_service),
) -> List[AgentProfile]:
    """Active tutor agents."""
    return await service.directory.list_available()


# ==============================================================================
# Conversation Endpoints
# ==============================================================================

@router.get("/users/{user_id}/conversations", response_model=List[ConversationWithPreview])
async def get_conversations(
    user_id: int,
    service: TutorService = Depends(get_tutor_service),
) -> List[ConversationWithPreview]:
    return await service.get_conversations(user_id)


@router.get("/users/{user_id}/conversations/{agent_id}", response_model=ConversationWithMessages)
async def get_conversation(
    user_id: int,
    agent_id: int,
    service: TutorService = Depends(get_tutor_service),
) -> ConversationWithMessages:
    """Get (or start) the conversation with one agent."""
    return await service.get_or_create_conversation(user_id, agent_id)


@router.delete("/users/{user_id}/conversations/{agent_id}")
async def clear_conversation(
    user_id: int,
    agent_id: int,
    service: TutorService = Depends(get_tutor_service),
) -> dict[str, Any]:
    await service.clear_conversation(user_id, agent_id)
    return {"status": "cleared", "agent_id": agent_id}


@router.get("/conversations/{conversation_id}/messages", response_model=List[TutorMessageData])
async def get_message_history(
    conversation_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    service: TutorService = Depends(get_tutor_service),
) -> List[TutorMessageData]:
    return await service.get_message_history(conversation_id, limit=limit)


# ==============================================================================
# Messaging
# ==============================================================================

@router.post(
    "/users/{user_id}/messages",
    response_model=TutorMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    user_id: int,
    request: SendMessageRequest,
    service: TutorService = Depends(get_tutor_service),
) -> TutorMessageResponse:
    """
    Send a message to a tutor.

    The session mode decides who answers: the addressed agent (manual), a
    routed agent (router), a random agent (random) or several agents
    (collaborative).
    """
    return await service.send_message(
        user_id,
        request.agent_id,
        request.message,
        session_id=request.session_id,
        collaborative_options=request.collaborative_options,
    )


# ==============================================================================
# Admin Endpoints
# ==============================================================================

@router.get("/logs", response_model=List[InteractionLogData])
async def get_interaction_logs(
    user_id: Optional[int] = None,
    session_id: Optional[int] = None,
    event_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    service: TutorService = Depends(get_tutor_service),
) -> List[InteractionLogData]:
    return await service.get_interaction_logs(
        user_id=user_id,
        session_id=session_id,
        event_type=event_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )


@router.get("/stats", response_model=TutorStats)
async def get_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    service: TutorService = Depends(get_tutor_service),
) -> TutorStats:
    return await service.get_stats(start_date=start_date, end_date=end_date)
