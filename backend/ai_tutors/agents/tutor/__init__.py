"""Tutor Agents - Multi-persona tutoring.

Students talk to one or more tutor personas. Personas are plain data
records; this package decides which of them answer a message and how their
answers are combined:

- Mentions: @name and @"Display Name" addressing
- Router: keyword scoring and AI classification with keyword fallback
- Collaboration: parallel, sequential, debate and random dispatch
- Service: session, conversation and message lifecycle
"""

from .collaboration import CollaborationOrchestrator
from .mentions import parse_mentions, strip_mentions
from .router import ai_route, keyword_route, rank_agents, route
from .service import TutorService
from .state import (
    AgentContribution,
    AgentProfile,
    CollaborativeInfo,
    CollaborativeOptions,
    CollaborativeStyle,
    EventType,
    RoutingInfo,
    TutorMessageResponse,
    TutorMode,
)

__all__ = [
    # Service
    "TutorService",
    "CollaborationOrchestrator",
    # Routing
    "route",
    "ai_route",
    "keyword_route",
    "rank_agents",
    # Mentions
    "parse_mentions",
    "strip_mentions",
    # State
    "AgentContribution",
    "AgentProfile",
    "CollaborativeInfo",
    "CollaborativeOptions",
    "CollaborativeStyle",
    "EventType",
    "RoutingInfo",
    "TutorMessageResponse",
    "TutorMode",
]
