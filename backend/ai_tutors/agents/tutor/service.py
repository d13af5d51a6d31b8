"""Tutor session service.

Owns the session/conversation/message lifecycle and the ``send_message``
entry point, which resolves the session, routes the message according to
the session mode, persists the message pair and records best-effort
interaction events.
"""

import asyncio
import json
import logging
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.config import Settings, get_settings
from ...core.exceptions import (
    AgentNotFoundError,
    ConversationNotFoundError,
    InvalidModeError,
    NoAgentsAvailableError,
    SelectedAgentNotFoundError,
    SessionNotFoundError,
    UpstreamCompletionError,
)
from ...db.base import utc_now
from ...db.tutor.models import TutorConversation, TutorMessage, TutorSession
from ..base.llm import CompletionResult, CompletionService
from .collaboration import CollaborationOrchestrator, random_routing_info
from .mentions import strip_mentions
from .prompts import build_agent_system_prompt
from .router import route
from .state import (
    AgentProfile,
    AgentSummary,
    CollaborativeInfo,
    CollaborativeOptions,
    ConversationWithMessages,
    ConversationWithPreview,
    EventType,
    InteractionLogData,
    MessagePreview,
    RoutingInfo,
    TutorMessageData,
    TutorMessageResponse,
    TutorMode,
    TutorSessionData,
    TutorSessionResponse,
    TutorStats,
)
from .tools.catalog import AgentDirectory, get_active_agent, list_available_agents
from .tools.interactions import (
    AuditSink,
    DatabaseAuditSink,
    InteractionLogger,
    get_interaction_logs,
    get_stats,
)

logger = logging.getLogger(__name__)


class TutorService:
    """Entry point for every tutor operation exposed to callers."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        completion: CompletionService,
        audit_sink: Optional[AuditSink] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session_maker = session_maker
        self.completion = completion
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.directory = AgentDirectory(session_maker)
        self.interactions = InteractionLogger(audit_sink or DatabaseAuditSink(session_maker))
        self.collaboration = CollaborationOrchestrator(completion, self.settings, self.rng)

    # =========================================================================
    # Session management
    # =========================================================================

    @staticmethod
    async def _find_session(db: AsyncSession, user_id: int) -> Optional[TutorSession]:
        result = await db.execute(select(TutorSession).where(TutorSession.user_id == user_id))
        return result.scalar_one_or_none()

    async def _create_session(self, db: AsyncSession, user_id: int) -> Tuple[TutorSession, bool]:
        """Create the user's session. Returns (session, created)."""
        session = TutorSession(user_id=user_id, mode=TutorMode.MANUAL.value)
        db.add(session)
        try:
            await db.commit()
        except IntegrityError:
            # A concurrent request created it first.
            await db.rollback()
            existing = await self._find_session(db, user_id)
            if existing is None:
                raise
            return existing, False
        logger.info(f"Created tutor session {session.id} for user {user_id}")
        return session, True

    async def get_or_create_session(self, user_id: int) -> TutorSessionResponse:
        """
        Return the user's session, creating it on first access.

        A stale ``active_agent_id`` pointing at an inactive or deleted agent
        is cleared on the way.
        """
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            created = False
            if session is None:
                session, created = await self._create_session(db, user_id)

            if session.active_agent_id is not None:
                if await get_active_agent(db, session.active_agent_id) is None:
                    logger.info(f"Clearing inactive agent {session.active_agent_id} from session {session.id}")
                    session.active_agent_id = None
                    await db.commit()
                    await db.refresh(session)

            conversations = await self._conversation_previews(db, session.id)
            agents = await list_available_agents(db)
            session_data = TutorSessionData.model_validate(session)

        if created:
            await self.interactions.log(
                user_id,
                EventType.SESSION_START,
                session_id=session_data.id,
                mode=session_data.mode.value,
            )

        return TutorSessionResponse(session=session_data, conversations=conversations, agents=agents)

    async def update_mode(self, user_id: int, mode: str) -> TutorSessionData:
        """Switch the session's routing mode."""
        try:
            mode = TutorMode(mode)
        except ValueError:
            raise InvalidModeError(f"Invalid mode: {mode}")

        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            if session is None:
                raise SessionNotFoundError()
            session.mode = mode.value
            await db.commit()
            await db.refresh(session)
            session_data = TutorSessionData.model_validate(session)

        logger.info(f"User {user_id} switched tutor mode to {mode.value}")
        await self.interactions.log(
            user_id, EventType.MODE_CHANGE, session_id=session_data.id, mode=mode.value
        )
        return session_data

    async def set_active_agent(self, user_id: int, agent_id: Optional[int]) -> TutorSessionData:
        """Set (or clear, with None) the agent used by manual mode."""
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            if session is None:
                raise SessionNotFoundError()

            agent = None
            if agent_id is not None:
                agent = await get_active_agent(db, agent_id)
                if agent is None:
                    raise AgentNotFoundError()

            session.active_agent_id = agent_id
            await db.commit()
            await db.refresh(session)
            session_data = TutorSessionData.model_validate(session)

        await self.interactions.log(
            user_id,
            EventType.AGENT_SWITCH,
            session_id=session_data.id,
            mode=session_data.mode.value,
            agent_id=agent_id,
            agent_name=agent.name if agent else None,
            agent_display_name=agent.display_name if agent else None,
        )
        return session_data

    # =========================================================================
    # Conversation management
    # =========================================================================

    @staticmethod
    async def _conversation_previews(db: AsyncSession, session_id: int) -> List[ConversationWithPreview]:
        result = await db.execute(
            select(TutorConversation)
            .where(TutorConversation.session_id == session_id)
            .order_by(TutorConversation.last_message_at.desc(), TutorConversation.id.desc())
        )
        conversations = result.unique().scalars().all()

        previews = []
        for conversation in conversations:
            last_result = await db.execute(
                select(TutorMessage)
                .where(TutorMessage.conversation_id == conversation.id)
                .order_by(TutorMessage.created_at.desc(), TutorMessage.id.desc())
                .limit(1)
            )
            last = last_result.scalar_one_or_none()
            previews.append(ConversationWithPreview(
                id=conversation.id,
                session_id=conversation.session_id,
                agent_id=conversation.agent_id,
                message_count=conversation.message_count,
                last_message_at=conversation.last_message_at,
                created_at=conversation.created_at,
                agent=AgentSummary.model_validate(conversation.agent),
                last_message=MessagePreview(
                    role=last.role, content=last.content, created_at=last.created_at
                ) if last else None,
            ))
        return previews

    @staticmethod
    async def _get_or_create_conversation_row(
        db: AsyncSession,
        session_id: int,
        agent_id: int,
    ) -> TutorConversation:
        query = select(TutorConversation).where(
            TutorConversation.session_id == session_id,
            TutorConversation.agent_id == agent_id,
        )
        conversation = (await db.execute(query)).unique().scalar_one_or_none()
        if conversation is not None:
            return conversation

        conversation = TutorConversation(session_id=session_id, agent_id=agent_id, message_count=0)
        db.add(conversation)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            conversation = (await db.execute(query)).unique().scalar_one()
        return conversation

    async def get_conversations(self, user_id: int) -> List[ConversationWithPreview]:
        """All of the user's conversations, most recently active first."""
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            if session is None:
                return []
            return await self._conversation_previews(db, session.id)

    async def get_or_create_conversation(self, user_id: int, agent_id: int) -> ConversationWithMessages:
        """The (session, agent) conversation with its full message list."""
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            if session is None:
                raise SessionNotFoundError()
            if await get_active_agent(db, agent_id) is None:
                raise AgentNotFoundError()

            conversation = await self._get_or_create_conversation_row(db, session.id, agent_id)
            messages = await db.execute(
                select(TutorMessage)
                .where(TutorMessage.conversation_id == conversation.id)
                .order_by(TutorMessage.created_at, TutorMessage.id)
            )
            return ConversationWithMessages(
                id=conversation.id,
                session_id=conversation.session_id,
                agent_id=conversation.agent_id,
                message_count=conversation.message_count,
                last_message_at=conversation.last_message_at,
                created_at=conversation.created_at,
                messages=[TutorMessageData.model_validate(m) for m in messages.scalars().all()],
            )

    async def get_message_history(self, conversation_id: int, limit: int = 50) -> List[TutorMessageData]:
        """The most recent ``limit`` messages of a conversation, oldest first."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(TutorMessage)
                .where(TutorMessage.conversation_id == conversation_id)
                .order_by(TutorMessage.created_at.desc(), TutorMessage.id.desc())
                .limit(limit)
            )
            messages = list(result.scalars().all())

        messages.reverse()
        return [TutorMessageData.model_validate(m) for m in messages]

    async def clear_conversation(self, user_id: int, agent_id: int) -> None:
        """
        Delete every message of the (session, agent) conversation and reset
        its counters in one transaction. Clearing an empty conversation is a
        no-op.
        """
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            if session is None:
                raise SessionNotFoundError()

            result = await db.execute(
                select(TutorConversation).where(
                    TutorConversation.session_id == session.id,
                    TutorConversation.agent_id == agent_id,
                )
            )
            conversation = result.unique().scalar_one_or_none()
            if conversation is None:
                raise ConversationNotFoundError()

            await db.execute(delete(TutorMessage).where(TutorMessage.conversation_id == conversation.id))
            conversation.message_count = 0
            conversation.last_message_at = None
            await db.commit()

            session_id, mode = session.id, session.mode
            conversation_id = conversation.id
            agent = conversation.agent

        logger.info(f"Cleared conversation {conversation_id} for user {user_id}")
        await self.interactions.log(
            user_id,
            EventType.CONVERSATION_CLEAR,
            session_id=session_id,
            conversation_id=conversation_id,
            agent_id=agent_id,
            agent_name=agent.name if agent else None,
            agent_display_name=agent.display_name if agent else None,
            mode=mode,
        )

    # =========================================================================
    # Message handling
    # =========================================================================

    async def _resolve_send_context(
        self,
        user_id: int,
        agent_id: int,
        session_id: Optional[int],
    ) -> Tuple[TutorSessionData, AgentProfile]:
        async with self.session_maker() as db:
            session = await self._find_session(db, user_id)
            created = False
            if session is None:
                session, created = await self._create_session(db, user_id)
            if session_id is not None and session.id != session_id:
                raise SessionNotFoundError()
            session_data = TutorSessionData.model_validate(session)
            target = await get_active_agent(db, agent_id)

        if created:
            await self.interactions.log(
                user_id, EventType.SESSION_START, session_id=session_data.id, mode=session_data.mode.value
            )
        if target is None:
            raise AgentNotFoundError()
        return session_data, target

    async def _prepare_conversation(self, session_id: int, agent_id: int) -> Tuple[int, List[Dict[str, Any]]]:
        """Resolve the conversation and load the recent history sent as context."""
        async with self.session_maker() as db:
            conversation = await self._get_or_create_conversation_row(db, session_id, agent_id)
            result = await db.execute(
                select(TutorMessage)
                .where(TutorMessage.conversation_id == conversation.id)
                .order_by(TutorMessage.created_at.desc(), TutorMessage.id.desc())
                .limit(self.settings.TUTOR_HISTORY_WINDOW)
            )
            recent = list(result.scalars().all())

        recent.reverse()
        history = [{"role": m.role, "content": m.content} for m in recent]
        return conversation.id, history

    async def _available_agents(self) -> List[AgentProfile]:
        agents = await self.directory.list_available()
        if not agents:
            raise NoAgentsAvailableError()
        return agents

    async def _complete_single(
        self,
        agent: AgentProfile,
        text: str,
        history: List[Dict[str, Any]],
        user_id: int,
        session_id: int,
        conversation_id: int,
        mode: TutorMode,
    ) -> CompletionResult:
        """Call one agent. Any failure is logged and raised as UpstreamCompletionError."""
        try:
            return await asyncio.wait_for(
                self.completion.complete(
                    system_prompt=build_agent_system_prompt(agent),
                    user_prompt=text,
                    conversation_history=history,
                    temperature=self._temperature_for(agent),
                    tags=[f"tutor-{mode.value}", agent.name],
                ),
                timeout=self.settings.TUTOR_AGENT_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.error(f"Completion failed for agent {agent.name}: {e!r}")
            await self.interactions.log(
                user_id,
                EventType.ERROR,
                session_id=session_id,
                conversation_id=conversation_id,
                agent_id=agent.id,
                agent_name=agent.name,
                agent_display_name=agent.display_name,
                mode=mode.value,
                error_message=str(e) or repr(e),
                error_code=UpstreamCompletionError.code,
            )
            raise UpstreamCompletionError() from e

    def _temperature_for(self, agent: AgentProfile) -> float:
        if agent.temperature is not None:
            return agent.temperature
        return self.settings.TUTOR_DEFAULT_AGENT_TEMPERATURE

    async def _persist_exchange(
        self,
        conversation_id: int,
        user_content: str,
        assistant_fields: Dict[str, Any],
        routing_info: Optional[RoutingInfo],
    ) -> Tuple[TutorMessageData, TutorMessageData]:
        """Store the user message, then the assistant message, and bump counters."""
        routing_fields = {}
        if routing_info is not None:
            routing_fields = {
                "routing_reason": routing_info.reason,
                "routing_confidence": routing_info.confidence,
            }

        async with self.session_maker() as db:
            conversation = await db.get(TutorConversation, conversation_id)
            if conversation is None:
                raise ConversationNotFoundError()

            user_message = TutorMessage(
                conversation_id=conversation_id, role="user", content=user_content, **routing_fields
            )
            db.add(user_message)
            await db.flush()

            assistant_message = TutorMessage(
                conversation_id=conversation_id, role="assistant", **assistant_fields, **routing_fields
            )
            db.add(assistant_message)

            conversation.message_count = (conversation.message_count or 0) + 2
            conversation.last_message_at = utc_now()
            await db.commit()

            return (
                TutorMessageData.model_validate(user_message),
                TutorMessageData.model_validate(assistant_message),
            )

    async def send_message(
        self,
        user_id: int,
        agent_id: int,
        message: str,
        session_id: Optional[int] = None,
        collaborative_options: Optional[CollaborativeOptions] = None,
    ) -> TutorMessageResponse:
        """
        Answer a user message according to the session's mode.

        Args:
            user_id: Sender
            agent_id: Agent the message is addressed to
            message: Raw text, may contain @mentions
            session_id: Optional session id that must match the user's session
            collaborative_options: Overrides for collaborative mode

        Returns:
            Both persisted messages plus routing or collaborative metadata

        Raises:
            SessionNotFoundError: If ``session_id`` is not the user's session
            AgentNotFoundError: If the target agent is missing or inactive
            NoAgentsAvailableError: If router/random/collaborative mode has no agents
            SelectedAgentNotFoundError: If the routed agent cannot be re-resolved
            UpstreamCompletionError: If a single-agent completion fails
        """
        start = time.perf_counter()
        session_data, target = await self._resolve_send_context(user_id, agent_id, session_id)
        mode = session_data.mode
        text = strip_mentions(message)

        routing_info: Optional[RoutingInfo] = None
        collaborative_info: Optional[CollaborativeInfo] = None

        # Resolve who answers
        if mode in (TutorMode.ROUTER, TutorMode.RANDOM):
            agents = await self._available_agents()
            if mode == TutorMode.ROUTER:
                routing_info = await route(
                    text,
                    agents,
                    self.completion,
                    use_ai=self.settings.TUTOR_ROUTER_USE_AI,
                    temperature=self.settings.TUTOR_ROUTER_TEMPERATURE,
                )
            else:
                routing_info = random_routing_info(self.rng.choice(agents))

            responder = await self.directory.get_active(routing_info.selected_agent.id)
            if responder is None:
                raise SelectedAgentNotFoundError()
        else:
            responder = target

        conversation_id, history = await self._prepare_conversation(session_data.id, responder.id)

        # Dispatch
        if mode == TutorMode.COLLABORATIVE:
            agents = await self._available_agents()
            result = await self.collaboration.run(message, agents, history, collaborative_options)
            routing_info = result.routing_info
            collaborative_info = result.info
            reply = result.content
            assistant_fields = {
                "ai_model": result.model,
                "ai_provider": result.provider,
                "synthesized_from": json.dumps(
                    [item.model_dump() for item in result.info.agent_contributions]
                ),
            }
            logged_agent = None
            if routing_info is not None:
                logged_agent = next(
                    (a for a in agents if a.id == routing_info.selected_agent.id), None
                )
        else:
            completion = await self._complete_single(
                responder, text, history, user_id, session_data.id, conversation_id, mode
            )
            reply = completion.reply
            assistant_fields = {
                "ai_model": completion.model,
                "ai_provider": completion.provider,
                "prompt_tokens": completion.prompt_tokens,
                "completion_tokens": completion.completion_tokens,
                "total_tokens": completion.total_tokens,
                "temperature": self._temperature_for(responder),
            }
            logged_agent = responder

        response_time_ms = int((time.perf_counter() - start) * 1000)
        assistant_fields.update(content=reply, response_time_ms=response_time_ms)

        user_message, assistant_message = await self._persist_exchange(
            conversation_id, message, assistant_fields, routing_info
        )

        await self._log_exchange(
            user_id,
            session_data.id,
            mode,
            logged_agent,
            user_message,
            assistant_message,
            routing_info,
            collaborative_info,
        )

        return TutorMessageResponse(
            user_message=user_message,
            assistant_message=assistant_message,
            routing_info=routing_info,
            collaborative_info=collaborative_info,
        )

    async def _log_exchange(
        self,
        user_id: int,
        session_id: int,
        mode: TutorMode,
        agent: Optional[AgentProfile],
        user_message: TutorMessageData,
        assistant_message: TutorMessageData,
        routing_info: Optional[RoutingInfo],
        collaborative_info: Optional[CollaborativeInfo],
    ) -> None:
        agent_fields = {}
        if agent is not None:
            agent_fields = {
                "agent_id": agent.id,
                "agent_name": agent.name,
                "agent_display_name": agent.display_name,
            }

        await self.interactions.log(
            user_id,
            EventType.MESSAGE_SENT,
            session_id=session_id,
            conversation_id=user_message.conversation_id,
            message_id=user_message.id,
            user_message=user_message.content,
            message_char_count=len(user_message.content),
            mode=mode.value,
            **agent_fields,
        )

        routing_fields = {}
        if routing_info is not None:
            routing_fields = {
                "routing_reason": routing_info.reason,
                "routing_confidence": routing_info.confidence,
                "routing_alternatives": json.dumps(
                    [alt.model_dump() for alt in routing_info.alternatives]
                ) if routing_info.alternatives is not None else None,
            }

        await self.interactions.log(
            user_id,
            EventType.MESSAGE_RECEIVED,
            session_id=session_id,
            conversation_id=assistant_message.conversation_id,
            message_id=assistant_message.id,
            assistant_message=assistant_message.content,
            response_char_count=len(assistant_message.content),
            mode=mode.value,
            ai_model=assistant_message.ai_model,
            ai_provider=assistant_message.ai_provider,
            response_time_ms=assistant_message.response_time_ms,
            agent_contributions=assistant_message.synthesized_from if collaborative_info else None,
            **agent_fields,
            **routing_fields,
        )

    # =========================================================================
    # Reporting
    # =========================================================================

    async def get_interaction_logs(
        self,
        user_id: Optional[int] = None,
        session_id: Optional[int] = None,
        event_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[InteractionLogData]:
        async with self.session_maker() as db:
            return await get_interaction_logs(
                db,
                user_id=user_id,
                session_id=session_id,
                event_type=event_type,
                start_date=start_date,
                end_date=end_date,
                limit=limit,
            )

    async def get_stats(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TutorStats:
        async with self.session_maker() as db:
            return await get_stats(db, start_date=start_date, end_date=end_date)
