"""Prompt templates for the tutor agents.

This module contains the persona system prompt builder plus the templates
used by the AI router and the collaboration orchestrator.
"""

from typing import List, Sequence

from .state import AgentContribution, AgentProfile


# =============================================================================
# PERSONA PROMPTS
# =============================================================================

IDENTITY_REMINDER_TEMPLATE = (
    "IMPORTANT: You are {display_name}. Stay in character throughout the conversation. "
    "Remember what the user has told you and refer back to previous messages when relevant."
)

COLLABORATIVE_IDENTITY_TEMPLATE = (
    "IMPORTANT: You are {display_name} participating in a collaborative tutoring session. "
    "Provide a focused response from your unique perspective. "
    "Be aware of what has been discussed previously."
)


def format_rules(dos_rules: Sequence[str], donts_rules: Sequence[str]) -> str:
    """Render DO/DON'T blocks. Empty lists are omitted entirely."""
    blocks = []
    if dos_rules:
        blocks.append("DO:\n" + "\n".join(f"- {rule}" for rule in dos_rules))
    if donts_rules:
        blocks.append("DON'T:\n" + "\n".join(f"- {rule}" for rule in donts_rules))
    return "\n\n".join(blocks)


def build_agent_system_prompt(agent: AgentProfile, collaborative: bool = False) -> str:
    """
    Build the full system prompt for one persona.

    Args:
        agent: The persona to speak as
        collaborative: Use the collaborative-session identity reminder

    Returns:
        The agent's own prompt followed by the identity reminder and any
        dos/don'ts rules
    """
    template = COLLABORATIVE_IDENTITY_TEMPLATE if collaborative else IDENTITY_REMINDER_TEMPLATE
    parts = [agent.system_prompt.strip(), template.format(display_name=agent.display_name)]

    rules = format_rules(agent.dos_rules, agent.donts_rules)
    if rules:
        parts.append(rules)

    return "\n\n".join(part for part in parts if part)


# =============================================================================
# ROUTER PROMPTS
# =============================================================================

ROUTER_SYSTEM_PROMPT = (
    "You are a routing assistant. Always respond with valid JSON only, no markdown formatting."
)

ROUTER_PROMPT_TEMPLATE = """You are a routing assistant. Analyze the student's message and determine which tutor agent would be best suited to help them.

Available agents:
{agent_descriptions}

Student's message: "{message}"

Respond in this exact JSON format (no markdown, just JSON):
{{
  "selectedAgent": "agent-name-here",
  "reason": "Brief explanation of why this agent is best",
  "confidence": 0.85,
  "scores": {{
    "agent-name-1": 0.85,
    "agent-name-2": 0.60
  }}
}}

Consider:
- Emotional tone (frustrated, curious, casual, urgent)
- Type of help needed (conceptual understanding, step-by-step guidance, project work, emotional support)
- Complexity of the question
- Whether they need encouragement or direct answers"""


def build_router_prompt(message: str, agents: Sequence[AgentProfile]) -> str:
    descriptions = "\n".join(
        f"- {agent.name} ({agent.display_name}): {agent.description or 'No description'}"
        for agent in agents
    )
    return ROUTER_PROMPT_TEMPLATE.format(agent_descriptions=descriptions, message=message)


# =============================================================================
# COLLABORATION PROMPTS
# =============================================================================

CONTRIBUTION_NOTE_TEMPLATE = (
    "[Note: Provide a brief, focused response from your perspective as {display_name}. "
    "Keep it under {max_length} characters.]"
)

SEQUENTIAL_TEMPLATE = """{message}

Other tutors have already answered in this session:

{transcript}

Build on what they said instead of repeating it."""

DEBATE_TEMPLATE = """{message}

This is round {round} of a discussion. The other tutors said this in the previous round:

{transcript}

Respond in light of their points: agree, refine or push back where you see it differently."""

SYNTHESIS_SYSTEM_PROMPT = (
    "You are an expert at synthesizing multiple perspectives into a coherent, helpful response."
)

SYNTHESIS_TEMPLATE = """You are synthesizing responses from multiple tutors about: "{message}"

Here are the individual responses:

{responses}

Create a unified, coherent response that:
1. Combines the best insights from each tutor
2. Resolves any contradictions thoughtfully
3. Maintains a helpful, educational tone
4. Is well-structured and easy to follow

Synthesized response:"""


def format_contributions(contributions: Sequence[AgentContribution], separator: str = "\n\n") -> str:
    """Render contributions as **Display Name**: text blocks."""
    return separator.join(
        f"**{item.agent_display_name}**: {item.contribution}" for item in contributions
    )


def build_contribution_prompt(
    message: str,
    agent: AgentProfile,
    max_length: int,
    earlier: List[AgentContribution] = None,
    round_number: int = 1,
    debate: bool = False,
) -> str:
    """Build the user prompt one agent sees during a collaborative turn."""
    if earlier and debate:
        body = DEBATE_TEMPLATE.format(
            message=message, round=round_number, transcript=format_contributions(earlier)
        )
    elif earlier:
        body = SEQUENTIAL_TEMPLATE.format(message=message, transcript=format_contributions(earlier))
    else:
        body = message

    note = CONTRIBUTION_NOTE_TEMPLATE.format(display_name=agent.display_name, max_length=max_length)
    return f"{body}\n\n{note}"


def build_synthesis_prompt(message: str, contributions: Sequence[AgentContribution]) -> str:
    return SYNTHESIS_TEMPLATE.format(message=message, responses=format_contributions(contributions))
