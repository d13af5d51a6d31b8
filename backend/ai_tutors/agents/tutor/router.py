"""Agent routing.

Selects which single tutor answers a message. Two strategies exist:

- keyword routing: deterministic scoring of the message against keyword
  families and agent metadata, no I/O
- AI routing: one completion call asking the model to pick an agent by
  name, falling back to keyword routing on any failure

``route`` composes the two.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ...core.exceptions import NoAgentsAvailableError
from ..base.llm import CompletionService
from .prompts import ROUTER_SYSTEM_PROMPT, build_router_prompt
from .state import AgentAlternative, AgentProfile, AgentRef, RoutingInfo

logger = logging.getLogger(__name__)


# =============================================================================
# KEYWORD FAMILIES
# =============================================================================

@dataclass(frozen=True)
class KeywordFamily:
    """
    A group of phrases signalling one kind of need.

    Attributes:
        name: Family identifier
        keywords: Phrases matched on word boundaries in the lowercased message
        traits: Substrings of an agent's name/personality/description that
            make it a target of this family
        weight: Score added to each target agent when the family matches
        reason: Human-readable routing reason
        confidence: Confidence reported when this family decides the route
    """
    name: str
    keywords: Tuple[str, ...]
    traits: Tuple[str, ...]
    weight: float
    reason: str
    confidence: float


EMOTIONAL_WEIGHT = 10.0

KEYWORD_FAMILIES: Tuple[KeywordFamily, ...] = (
    KeywordFamily(
        name="emotional",
        keywords=(
            "frustrated", "frustrating", "stressed", "overwhelmed", "anxious", "dumb",
            "stupid", "give up", "cant do this", "can't do this", "hopeless", "hate this",
        ),
        traits=("supportive", "encouraging", "beatrice"),
        # Outweighs every other family combined, so distress always wins
        weight=EMOTIONAL_WEIGHT,
        reason="Emotional support needed",
        confidence=0.9,
    ),
    KeywordFamily(
        name="debate",
        keywords=(
            "disagree", "think about", "opinion", "what do you think", "argue",
            "debate", "counterargument", "convince me",
        ),
        traits=("argumentative", "challenges", "laila", "socratic"),
        weight=2.0,
        reason="Intellectual discussion",
        confidence=0.85,
    ),
    KeywordFamily(
        name="conceptual",
        keywords=("why", "what if", "understand", "concept", "concepts", "theory", "intuition"),
        traits=("socratic", "questions"),
        weight=2.0,
        reason="Conceptual exploration",
        confidence=0.8,
    ),
    KeywordFamily(
        name="howto",
        keywords=(
            "how do", "how to", "how can", "show me", "steps", "step by step",
            "guide", "tutorial", "explain",
        ),
        traits=("helper", "explanations"),
        weight=2.0,
        reason="Step-by-step guidance",
        confidence=0.85,
    ),
    KeywordFamily(
        name="practical",
        keywords=(
            "project", "build", "code", "implement", "debug", "bug", "error",
            "fix", "deploy", "compile",
        ),
        traits=("project", "practical", "hands-on", "helper"),
        weight=2.0,
        reason="Hands-on technical work",
        confidence=0.82,
    ),
    KeywordFamily(
        name="casual",
        keywords=("hey", "hi", "hello", "stuck", "confused", "lost"),
        traits=("casual", "friendly", "classmate", "encouraging", "supportive", "buddy"),
        weight=1.5,
        reason="Casual peer support",
        confidence=0.75,
    ),
)

DEFAULT_REASON = "Default selection"
DEFAULT_CONFIDENCE = 0.5
OVERLAP_REASON = "Matches agent description"
OVERLAP_CONFIDENCE = 0.6

# Per-word bonus for literal overlap with an agent's description/personality.
OVERLAP_BONUS = 0.1
MAX_OVERLAP_BONUS = 0.3

_STOPWORDS = frozenset({
    "about", "after", "again", "also", "been", "being", "could", "does", "doing",
    "from", "have", "help", "into", "just", "like", "more", "need", "only", "really",
    "should", "some", "than", "that", "their", "them", "then", "there", "these",
    "they", "this", "those", "very", "want", "what", "when", "where", "which",
    "while", "will", "with", "would", "your",
})

_WORD = re.compile(r"[a-z][a-z'\-]+")

_KEYWORD_PATTERNS: Dict[str, re.Pattern] = {
    keyword: re.compile(r"(?<![a-z])" + re.escape(keyword) + r"(?![a-z])")
    for family in KEYWORD_FAMILIES
    for keyword in family.keywords
}


def _agent_text(agent: AgentProfile) -> str:
    return " ".join(
        part for part in (agent.name, agent.personality, agent.description) if part
    ).lower()


def _matched_families(message_lower: str) -> List[KeywordFamily]:
    return [
        family for family in KEYWORD_FAMILIES
        if any(_KEYWORD_PATTERNS[keyword].search(message_lower) for keyword in family.keywords)
    ]


def _overlap_bonus(message_words: set, agent: AgentProfile) -> float:
    metadata = " ".join(part for part in (agent.description, agent.personality) if part).lower()
    agent_words = {word for word in _WORD.findall(metadata) if len(word) >= 4}
    overlap = (message_words & agent_words) - _STOPWORDS
    return min(len(overlap) * OVERLAP_BONUS, MAX_OVERLAP_BONUS)


def rank_agents(
    message: str,
    agents: Sequence[AgentProfile],
) -> List[Tuple[AgentProfile, float, Optional[KeywordFamily]]]:
    """
    Score every agent against a message.

    Returns:
        (agent, score, deciding family) tuples sorted by score descending,
        then agent id ascending. The deciding family is the heaviest matched
        family that targets the agent, first in declaration order on ties.
    """
    message_lower = (message or "").lower()
    families = _matched_families(message_lower)
    message_words = {word for word in _WORD.findall(message_lower) if len(word) >= 4}

    ranked = []
    for agent in agents:
        text = _agent_text(agent)
        score = 0.0
        deciding: Optional[KeywordFamily] = None
        for family in families:
            if any(trait in text for trait in family.traits):
                score += family.weight
                if deciding is None or family.weight > deciding.weight:
                    deciding = family
        score += _overlap_bonus(message_words, agent)
        ranked.append((agent, round(score, 4), deciding))

    ranked.sort(key=lambda item: (-item[1], item[0].id))
    return ranked


def _build_alternatives(
    selected: AgentProfile,
    scores: Sequence[Tuple[AgentProfile, float]],
) -> List[AgentAlternative]:
    alternatives = [
        AgentAlternative(agent_id=agent.id, agent_name=agent.name, score=score)
        for agent, score in scores
        if agent.id != selected.id
    ]
    alternatives.sort(key=lambda alt: (-alt.score, alt.agent_id))
    return alternatives


def _agent_ref(agent: AgentProfile) -> AgentRef:
    return AgentRef(id=agent.id, name=agent.name, display_name=agent.display_name)


# =============================================================================
# ROUTING STRATEGIES
# =============================================================================

def keyword_route(message: str, agents: Sequence[AgentProfile]) -> RoutingInfo:
    """
    Deterministic keyword routing.

    Args:
        message: Mention-stripped user message
        agents: Candidate agents, at least one

    Returns:
        RoutingInfo with every non-selected agent as an alternative. Scores
        are normalised against the winner's score.

    Raises:
        NoAgentsAvailableError: If the candidate list is empty
    """
    if not agents:
        raise NoAgentsAvailableError()

    ranked = rank_agents(message, agents)
    selected, top_score, family = ranked[0]

    if family is not None:
        reason, confidence = family.reason, family.confidence
    elif top_score > 0:
        reason, confidence = OVERLAP_REASON, OVERLAP_CONFIDENCE
    else:
        reason, confidence = DEFAULT_REASON, DEFAULT_CONFIDENCE

    normalised = [
        (agent, round(score / top_score, 3) if top_score > 0 else 0.0)
        for agent, score, _ in ranked
    ]

    return RoutingInfo(
        selected_agent=_agent_ref(selected),
        reason=reason,
        confidence=confidence,
        alternatives=_build_alternatives(selected, normalised),
    )


def _extract_json(reply: str) -> dict:
    """Parse the router's JSON reply, tolerating a surrounding code fence."""
    text = (reply or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```[a-zA-Z]*\s*", "", text)
        text = re.sub(r"\s*```$", "", text)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        # Some models wrap the object in prose.
        match = re.search(r"\{[\s\S]*\}", text)
        if not match:
            raise ValueError("No JSON object in router reply")
        parsed = json.loads(match.group(0))

    if not isinstance(parsed, dict):
        raise ValueError("Router reply is not a JSON object")
    return parsed


def _coerce_confidence(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.8
    return max(0.0, min(1.0, float(value)))


async def _classify_with_ai(
    message: str,
    agents: Sequence[AgentProfile],
    completion: CompletionService,
    temperature: float,
) -> RoutingInfo:
    result = await completion.complete(
        system_prompt=ROUTER_SYSTEM_PROMPT,
        user_prompt=build_router_prompt(message, agents),
        conversation_history=[],
        temperature=temperature,
        tags=["tutor-router"],
    )
    parsed = _extract_json(result.reply)

    name = parsed.get("selectedAgent")
    selected = next((agent for agent in agents if agent.name == name), None)
    if selected is None:
        raise ValueError(f"AI selected unknown agent: {name}")

    alternatives = None
    scores = parsed.get("scores")
    if isinstance(scores, dict):
        alternatives = _build_alternatives(
            selected,
            [(agent, _score_value(scores.get(agent.name))) for agent in agents],
        )

    reason = parsed.get("reason")
    return RoutingInfo(
        selected_agent=_agent_ref(selected),
        reason=reason if isinstance(reason, str) and reason.strip() else "AI-based routing",
        confidence=_coerce_confidence(parsed.get("confidence")),
        alternatives=alternatives,
    )


def _score_value(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


async def ai_route(
    message: str,
    agents: Sequence[AgentProfile],
    completion: CompletionService,
    temperature: float = 0.3,
) -> RoutingInfo:
    """
    AI routing with keyword fallback.

    Any failure (provider error, unparsable reply, unknown agent name) is
    logged and answered by ``keyword_route`` with the same inputs.
    """
    if not agents:
        raise NoAgentsAvailableError()

    try:
        routing = await _classify_with_ai(message, agents, completion, temperature)
    except Exception as e:
        logger.warning(f"AI routing failed, falling back to keyword routing: {e}")
        return keyword_route(message, agents)

    logger.info(
        f"AI router selected {routing.selected_agent.name} "
        f"(confidence={routing.confidence:.2f})"
    )
    return routing


async def route(
    message: str,
    agents: Sequence[AgentProfile],
    completion: Optional[CompletionService] = None,
    use_ai: bool = True,
    temperature: float = 0.3,
) -> RoutingInfo:
    """
    Pick one agent for a message.

    ``use_ai=False`` (or no completion service) never makes an external call.
    """
    if use_ai and completion is not None:
        return await ai_route(message, agents, completion, temperature=temperature)

    routing = keyword_route(message, agents)
    logger.info(f"Keyword router selected {routing.selected_agent.name} ({routing.reason})")
    return routing
