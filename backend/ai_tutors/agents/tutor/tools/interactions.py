"""Interaction logging and aggregate stats.

The interaction log is a best-effort audit side channel: a failed write is
logged and discarded, never surfaced to the operation that triggered it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ....db.base import utc_now
from ....db.tutor.models import TutorInteractionLog, TutorMessage, TutorSession
from ..state import AgentCount, EventType, InteractionLogData, ModeCount, TutorStats

logger = logging.getLogger(__name__)

_LOG_COLUMNS = frozenset(column.name for column in TutorInteractionLog.__table__.columns) - {"id"}


class AuditSink(Protocol):
    """Destination for interaction-log records. May raise."""

    async def write(self, record: Dict[str, Any]) -> None:
        ...


class DatabaseAuditSink:
    """Writes records to ``tutor_interaction_logs`` in a session of its own."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def write(self, record: Dict[str, Any]) -> None:
        async with self._session_maker() as db:
            db.add(TutorInteractionLog(**record))
            await db.commit()


class InteractionLogger:
    """Best-effort front for an audit sink."""

    def __init__(self, sink: AuditSink):
        self.sink = sink

    async def log(self, user_id: int, event_type: EventType, **fields: Any) -> None:
        """
        Record one interaction event. Never raises.

        Args:
            user_id: Owner of the session
            event_type: One of the EventType values
            **fields: Any other TutorInteractionLog column
        """
        record = {
            key: value for key, value in fields.items()
            if key in _LOG_COLUMNS and value is not None
        }
        record["user_id"] = user_id
        record["event_type"] = EventType(event_type).value
        record.setdefault("timestamp", utc_now())

        try:
            await self.sink.write(record)
        except Exception as e:
            logger.warning(f"Failed to log interaction ({record['event_type']}): {e}")


# =============================================================================
# Reporting
# =============================================================================

def _in_range(column, start_date: Optional[datetime], end_date: Optional[datetime]) -> list:
    conditions = []
    if start_date is not None:
        conditions.append(column >= start_date)
    if end_date is not None:
        conditions.append(column <= end_date)
    return conditions


async def get_interaction_logs(
    db: AsyncSession,
    user_id: Optional[int] = None,
    session_id: Optional[int] = None,
    event_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 100,
) -> List[InteractionLogData]:
    """Filtered interaction logs, newest first."""
    query = select(TutorInteractionLog)
    if user_id is not None:
        query = query.where(TutorInteractionLog.user_id == user_id)
    if session_id is not None:
        query = query.where(TutorInteractionLog.session_id == session_id)
    if event_type:
        query = query.where(TutorInteractionLog.event_type == event_type)
    for condition in _in_range(TutorInteractionLog.timestamp, start_date, end_date):
        query = query.where(condition)

    query = query.order_by(TutorInteractionLog.timestamp.desc(), TutorInteractionLog.id.desc())
    result = await db.execute(query.limit(limit))
    return [InteractionLogData.model_validate(row) for row in result.scalars().all()]


async def get_stats(
    db: AsyncSession,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> TutorStats:
    """
    Aggregate usage stats.

    Every figure honours the date range: sessions by creation time,
    assistant messages by creation time, breakdowns and average latency by
    the timestamp of their message_received events.
    """
    sessions_query = select(func.count(TutorSession.id)).where(
        *_in_range(TutorSession.created_at, start_date, end_date)
    )
    messages_query = select(func.count(TutorMessage.id)).where(
        TutorMessage.role == "assistant",
        *_in_range(TutorMessage.created_at, start_date, end_date),
    )
    received = [
        TutorInteractionLog.event_type == EventType.MESSAGE_RECEIVED.value,
        *_in_range(TutorInteractionLog.timestamp, start_date, end_date),
    ]

    total_sessions = (await db.execute(sessions_query)).scalar_one()
    total_messages = (await db.execute(messages_query)).scalar_one()

    mode_count = func.count(TutorInteractionLog.id)
    by_mode = await db.execute(
        select(TutorInteractionLog.mode, mode_count)
        .where(*received)
        .group_by(TutorInteractionLog.mode)
        .order_by(mode_count.desc(), TutorInteractionLog.mode)
    )

    agent_count = func.count(TutorInteractionLog.id)
    by_agent = await db.execute(
        select(TutorInteractionLog.agent_name, agent_count)
        .where(*received)
        .group_by(TutorInteractionLog.agent_name)
        .order_by(agent_count.desc(), TutorInteractionLog.agent_name)
    )

    avg_response = (
        await db.execute(select(func.avg(TutorInteractionLog.response_time_ms)).where(*received))
    ).scalar_one()

    return TutorStats(
        total_sessions=total_sessions,
        total_messages=total_messages,
        messages_by_mode=[ModeCount(mode=mode, count=count) for mode, count in by_mode.all()],
        messages_by_agent=[AgentCount(agent=agent, count=count) for agent, count in by_agent.all()],
        avg_response_time_ms=float(avg_response) if avg_response is not None else None,
    )
