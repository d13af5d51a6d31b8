"""
Pytest configuration and fixtures.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ai_tutors.agents.base.llm import CompletionResult
from ai_tutors.agents.tutor.service import TutorService
from ai_tutors.agents.tutor.state import AgentProfile
from ai_tutors.api.tutors import get_tutor_service
from ai_tutors.core.config import Settings
from ai_tutors.db.base import init_databases
from ai_tutors.db.tutor.models import TutorAgent
from ai_tutors.main import app


TEST_TUTOR_DB_URL = "sqlite+aiosqlite:///:memory:"

# Mirrors the persona catalog the keyword router was tuned against.
MOCK_AGENTS = [
    {"id": 1, "name": "socratic-tutor", "display_name": "Socratic Guide", "description": "Guides through questions"},
    {"id": 2, "name": "helper-tutor", "display_name": "Helpful Guide", "description": "Clear explanations"},
    {"id": 3, "name": "project-tutor", "display_name": "Project Coach", "description": "Practical help"},
    {"id": 4, "name": "beatrice-peer", "display_name": "Beatrice", "description": "Kind and encouraging"},
    {"id": 5, "name": "laila-peer", "display_name": "Laila", "description": "Smart and argumentative"},
    {"id": 6, "name": "carmen-peer", "display_name": "Carmen", "description": "Friendly classmate"},
]


# =============================================================================
# Fakes
# =============================================================================

class FakeCompletionService:
    """
    Scripted completion service.

    Agent calls answer "Reply from <agent-name>"; the agent name is the last
    trace tag. Router and synthesis calls are recognised by their tags.
    """

    def __init__(
        self,
        failing_agents: Iterable[str] = (),
        router_reply: Optional[str] = None,
        router_error: Optional[Exception] = None,
        synthesis_error: Optional[Exception] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.failing_agents = set(failing_agents)
        self.router_reply = router_reply
        self.router_error = router_error
        self.synthesis_error = synthesis_error
        self.delays = delays or {}
        self.calls: List[Dict[str, Any]] = []

    def calls_tagged(self, tag: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if tag in call["tags"]]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        tags: Optional[List[str]] = None,
    ) -> CompletionResult:
        tags = list(tags or [])
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "history": list(conversation_history or []),
            "temperature": temperature,
            "tags": tags,
        })

        if "tutor-router" in tags:
            if self.router_error is not None:
                raise self.router_error
            return CompletionResult(reply=self.router_reply or "", model="fake-model", provider="fake")

        if "tutor-collaborative-synthesis" in tags:
            if self.synthesis_error is not None:
                raise self.synthesis_error
            return CompletionResult(reply="Synthesized answer", model="fake-model", provider="fake")

        agent_name = tags[-1] if tags else "unknown"
        if agent_name in self.delays:
            await asyncio.sleep(self.delays[agent_name])
        if agent_name in self.failing_agents:
            raise RuntimeError(f"provider unavailable for {agent_name}")

        return CompletionResult(
            reply=f"Reply from {agent_name}",
            model="fake-model",
            provider="fake",
            prompt_tokens=12,
            completion_tokens=8,
            total_tokens=20,
        )


class RecordingAuditSink:
    """Keeps audit records in memory."""

    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    async def write(self, record: Dict[str, Any]) -> None:
        self.records.append(record)

    def events(self) -> List[str]:
        return [record["event_type"] for record in self.records]


class FailingAuditSink:
    """Audit sink whose every write fails."""

    def __init__(self):
        self.attempts = 0

    async def write(self, record: Dict[str, Any]) -> None:
        self.attempts += 1
        raise RuntimeError("audit store unavailable")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def mock_agents() -> List[AgentProfile]:
    """In-memory agent profiles for routing tests."""
    return [AgentProfile(**data) for data in MOCK_AGENTS]


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        TUTOR_DB_URL=TEST_TUTOR_DB_URL,
        TUTOR_ROUTER_USE_AI=True,
        TUTOR_AGENT_TIMEOUT_SECONDS=1.0,
        TUTOR_COLLAB_MAX_AGENTS=3,
        LANGSMITH_TRACING=False,
    )


@pytest.fixture
async def test_engine():
    """Create an in-memory test database."""
    engine = create_async_engine(
        TEST_TUTOR_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_databases(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seeded_agents(session_maker) -> Dict[str, int]:
    """Insert the mock agents plus one inactive agent. Returns name -> id."""
    async with session_maker() as db:
        for data in MOCK_AGENTS:
            db.add(TutorAgent(
                id=data["id"],
                name=data["name"],
                display_name=data["display_name"],
                description=data["description"],
                system_prompt=f"You are {data['display_name']}.",
                temperature=0.6,
                dos_rules=json.dumps(["Be concise"]),
                donts_rules="not-json",
                category="tutor",
                is_active=True,
            ))
        db.add(TutorAgent(
            id=7,
            name="retired-tutor",
            display_name="Retired Tutor",
            description="No longer available",
            system_prompt="You are retired.",
            category="tutor",
            is_active=False,
        ))
        await db.commit()

    ids = {data["name"]: data["id"] for data in MOCK_AGENTS}
    ids["retired-tutor"] = 7
    return ids


@pytest.fixture
def fake_completion() -> FakeCompletionService:
    return FakeCompletionService()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def tutor_service(session_maker, fake_completion, test_settings, seeded_agents) -> TutorService:
    """Service writing audit records to the test database."""
    return TutorService(
        session_maker=session_maker,
        completion=fake_completion,
        settings=test_settings,
    )


@pytest.fixture
async def async_client(tutor_service) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test service."""
    app.dependency_overrides[get_tutor_service] = lambda: tutor_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
