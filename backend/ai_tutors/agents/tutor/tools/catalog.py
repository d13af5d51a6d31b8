"""Agent directory tools.

Read-only access to the tutor agent catalog. Only active agents in the
``tutor`` category take part in routing.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ....db.tutor.models import TutorAgent
from ..state import AgentProfile, parse_rules

logger = logging.getLogger(__name__)

TUTOR_CATEGORY = "tutor"


def to_profile(agent: TutorAgent) -> AgentProfile:
    """Snapshot an ORM agent row. Malformed rule columns become empty lists."""
    return AgentProfile.model_validate(agent)


async def list_available_agents(db: AsyncSession) -> List[AgentProfile]:
    """Active tutor-category agents ordered by name."""
    result = await db.execute(
        select(TutorAgent)
        .where(TutorAgent.category == TUTOR_CATEGORY, TutorAgent.is_active == True)  # noqa: E712
        .order_by(TutorAgent.name)
    )
    return [to_profile(agent) for agent in result.scalars().all()]


async def get_active_agent(db: AsyncSession, agent_id: int) -> Optional[AgentProfile]:
    """Fetch an agent only if it is active and in the tutor category."""
    result = await db.execute(
        select(TutorAgent).where(
            TutorAgent.id == agent_id,
            TutorAgent.category == TUTOR_CATEGORY,
            TutorAgent.is_active == True,  # noqa: E712
        )
    )
    agent = result.scalar_one_or_none()
    return to_profile(agent) if agent else None


class AgentDirectory:
    """Catalog reader bound to a session factory."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def list_available(self) -> List[AgentProfile]:
        async with self._session_maker() as db:
            agents = await list_available_agents(db)
        logger.debug(f"Agent directory: {len(agents)} available agents")
        return agents

    async def get_active(self, agent_id: int) -> Optional[AgentProfile]:
        async with self._session_maker() as db:
            return await get_active_agent(db, agent_id)


__all__ = [
    "AgentDirectory",
    "AgentProfile",
    "get_active_agent",
    "list_available_agents",
    "parse_rules",
    "to_profile",
]
