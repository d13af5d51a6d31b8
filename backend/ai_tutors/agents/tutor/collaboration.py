"""Collaboration orchestrator.

Produces one assistant reply drawing on several tutors. Four dispatch
styles are supported:

- parallel: every participant answers concurrently; presentation follows
  selection order
- sequential: participants answer one after another, each seeing the
  contributions made earlier in the turn
- debate: two sequential rounds, round 2 sees the others' round-1 answers
- random: one participant chosen uniformly, answering alone

Each agent call is isolated: a failure or timeout becomes a placeholder
contribution instead of aborting the turn.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...core.config import Settings, get_settings
from ...core.exceptions import InvalidModeError, NoAgentsAvailableError
from ..base.llm import CompletionService
from .mentions import parse_mentions, strip_mentions
from .prompts import (
    SYNTHESIS_SYSTEM_PROMPT,
    build_agent_system_prompt,
    build_contribution_prompt,
    build_synthesis_prompt,
)
from .router import rank_agents
from .state import (
    AgentContribution,
    AgentProfile,
    AgentRef,
    CollaborativeInfo,
    CollaborativeOptions,
    CollaborativeResult,
    CollaborativeStyle,
    RoutingInfo,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_TEMPLATE = "[{display_name} was unable to respond]"
CONTRIBUTION_SEPARATOR = "\n\n---\n\n"
DEBATE_ROUNDS = 2

RANDOM_REASON = "Randomly selected"
RANDOM_CONFIDENCE = 1.0


def placeholder_for(agent: AgentProfile) -> str:
    return PLACEHOLDER_TEMPLATE.format(display_name=agent.display_name)


def random_routing_info(agent: AgentProfile) -> RoutingInfo:
    """Routing info for a uniform random pick. No scoring takes place."""
    return RoutingInfo(
        selected_agent=AgentRef(id=agent.id, name=agent.name, display_name=agent.display_name),
        reason=RANDOM_REASON,
        confidence=RANDOM_CONFIDENCE,
    )


def render_contributions(
    contributions: Sequence[AgentContribution],
    label_rounds: bool = False,
) -> str:
    blocks = []
    for item in contributions:
        label = f"**{item.agent_display_name}**"
        if label_rounds:
            label += f" (round {item.round})"
        blocks.append(f"{label}:\n{item.contribution}")
    return CONTRIBUTION_SEPARATOR.join(blocks)


class CollaborationOrchestrator:
    """Runs one collaborative turn across a subset of agents."""

    def __init__(
        self,
        completion: CompletionService,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.completion = completion
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_participants(
        self,
        message: str,
        agents: Sequence[AgentProfile],
        options: CollaborativeOptions,
    ) -> Tuple[List[AgentProfile], List[AgentProfile]]:
        """
        Resolve who takes part in the turn.

        Mentioned agents come first and are always included. Without
        mentions, an explicit ``selected_agent_ids`` list is used. When
        neither resolves to an available agent, the keyword router's top
        ``max_agents`` take part (everyone if the pool is that small).

        Returns:
            (participants, mentioned agents)

        Raises:
            NoAgentsAvailableError: If the resulting pool is empty
        """
        max_agents = options.max_agents or self.settings.TUTOR_COLLAB_MAX_AGENTS
        mentioned = parse_mentions(message, agents)

        participants: List[AgentProfile] = []
        if mentioned:
            participants = list(mentioned)
        elif options.selected_agent_ids:
            by_id = {agent.id: agent for agent in agents}
            for agent_id in options.selected_agent_ids:
                agent = by_id.get(agent_id)
                if agent is not None and agent not in participants:
                    participants.append(agent)
            if not participants:
                logger.info(
                    f"None of the selected agents {options.selected_agent_ids} are available, "
                    "using the keyword shortlist"
                )

        if not participants:
            if len(agents) <= max_agents:
                participants = list(agents)
            else:
                ranked = rank_agents(strip_mentions(message), agents)
                participants = [agent for agent, _, _ in ranked[:max_agents]]

        if not participants:
            raise NoAgentsAvailableError()

        return participants, mentioned

    # -------------------------------------------------------------------------
    # Per-agent call
    # -------------------------------------------------------------------------

    async def _ask(
        self,
        agent: AgentProfile,
        prompt: str,
        history: List[Dict[str, Any]],
        round_number: int = 1,
    ) -> AgentContribution:
        """Ask one agent. Failures and timeouts become a placeholder."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.completion.complete(
                    system_prompt=build_agent_system_prompt(agent, collaborative=True),
                    user_prompt=prompt,
                    conversation_history=history,
                    temperature=(
                        agent.temperature
                        if agent.temperature is not None
                        else self.settings.TUTOR_DEFAULT_AGENT_TEMPERATURE
                    ),
                    tags=["tutor-collaborative", agent.name],
                ),
                timeout=self.settings.TUTOR_AGENT_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.warning(f"Agent {agent.name} failed to respond in collaboration: {e!r}")
            return AgentContribution(
                agent_id=agent.id,
                agent_name=agent.name,
                agent_display_name=agent.display_name,
                contribution=placeholder_for(agent),
                response_time_ms=int((time.perf_counter() - start) * 1000),
                round=round_number,
                failed=True,
            )

        return AgentContribution(
            agent_id=agent.id,
            agent_name=agent.name,
            agent_display_name=agent.display_name,
            contribution=result.reply,
            response_time_ms=int((time.perf_counter() - start) * 1000),
            round=round_number,
            model=result.model,
            provider=result.provider,
        )

    # -------------------------------------------------------------------------
    # Styles
    # -------------------------------------------------------------------------

    async def _run_parallel(self, message, participants, history, max_length):
        tasks = [
            self._ask(agent, build_contribution_prompt(message, agent, max_length), history)
            for agent in participants
        ]
        # gather keeps argument order, so presentation follows selection order
        return list(await asyncio.gather(*tasks))

    async def _run_sequential(self, message, participants, history, max_length):
        contributions: List[AgentContribution] = []
        for agent in participants:
            earlier = [item for item in contributions if not item.failed]
            prompt = build_contribution_prompt(message, agent, max_length, earlier=earlier)
            contributions.append(await self._ask(agent, prompt, history))
        return contributions

    async def _run_debate(self, message, participants, history, max_length):
        first_round: List[AgentContribution] = []
        for agent in participants:
            prompt = build_contribution_prompt(message, agent, max_length)
            first_round.append(await self._ask(agent, prompt, history, round_number=1))

        second_round: List[AgentContribution] = []
        for agent in participants:
            others = [
                item for item in first_round
                if item.agent_id != agent.id and not item.failed
            ]
            prompt = build_contribution_prompt(
                message, agent, max_length, earlier=others, round_number=2, debate=True
            )
            second_round.append(await self._ask(agent, prompt, history, round_number=2))

        return first_round + second_round

    async def _synthesize(self, message: str, contributions: List[AgentContribution]) -> Optional[str]:
        """One extra completion merging the contributions. None on failure."""
        try:
            result = await asyncio.wait_for(
                self.completion.complete(
                    system_prompt=SYNTHESIS_SYSTEM_PROMPT,
                    user_prompt=build_synthesis_prompt(message, contributions),
                    conversation_history=[],
                    temperature=self.settings.TUTOR_DEFAULT_AGENT_TEMPERATURE,
                    tags=["tutor-collaborative-synthesis"],
                ),
                timeout=self.settings.TUTOR_AGENT_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.warning(f"Synthesis failed, using plain concatenation: {e!r}")
            return None
        return result.reply

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def run(
        self,
        message: str,
        agents: Sequence[AgentProfile],
        history: Optional[List[Dict[str, Any]]] = None,
        options: Optional[CollaborativeOptions] = None,
    ) -> CollaborativeResult:
        """
        Run one collaborative turn.

        Args:
            message: Raw user message, mentions included
            agents: Available agents
            history: Prior conversation messages shared by every participant
            options: Caller overrides for style, cap and output shape

        Returns:
            CollaborativeResult holding the reply text and its metadata

        Raises:
            NoAgentsAvailableError: If no agent can take part
            InvalidModeError: If the configured default style is unknown
        """
        options = options or CollaborativeOptions()
        history = history or []

        style = options.style
        if style is None:
            try:
                style = CollaborativeStyle(self.settings.TUTOR_COLLAB_DEFAULT_STYLE)
            except ValueError:
                raise InvalidModeError(
                    f"Unknown collaborative style: {self.settings.TUTOR_COLLAB_DEFAULT_STYLE}"
                )

        if not agents:
            raise NoAgentsAvailableError()

        participants, mentioned = self.select_participants(message, agents, options)
        text = strip_mentions(message)
        max_length = options.max_response_length or self.settings.TUTOR_COLLAB_MAX_RESPONSE_LENGTH

        logger.info(
            f"Collaborative turn: style={style.value}, "
            f"participants={[agent.name for agent in participants]}"
        )

        routing_info = None
        total_rounds = None

        if style == CollaborativeStyle.RANDOM:
            # Draw from the explicit set when it resolved to anyone, otherwise the whole pool.
            selected_ids = set(options.selected_agent_ids or [])
            explicit = bool(mentioned) or any(agent.id in selected_ids for agent in participants)
            pool = participants if explicit else list(agents)
            chosen = self.rng.choice(pool)
            contributions = [
                await self._ask(chosen, build_contribution_prompt(text, chosen, max_length), history)
            ]
            routing_info = random_routing_info(chosen)
            synthesis = None
            content = contributions[0].contribution
        else:
            if style == CollaborativeStyle.PARALLEL:
                contributions = await self._run_parallel(text, participants, history, max_length)
            elif style == CollaborativeStyle.SEQUENTIAL:
                contributions = await self._run_sequential(text, participants, history, max_length)
            else:
                contributions = await self._run_debate(text, participants, history, max_length)
                total_rounds = DEBATE_ROUNDS

            synthesis = None
            if options.synthesize and any(not item.failed for item in contributions):
                synthesis = await self._synthesize(text, contributions)

            individual = render_contributions(
                contributions, label_rounds=style == CollaborativeStyle.DEBATE
            )
            if synthesis and options.show_individual_responses:
                content = f"{synthesis}{CONTRIBUTION_SEPARATOR}{individual}"
            elif synthesis:
                content = synthesis
            else:
                content = individual

        answered = next((item for item in contributions if not item.failed), None)

        return CollaborativeResult(
            content=content,
            info=CollaborativeInfo(
                style=style,
                agent_contributions=contributions,
                synthesis=synthesis,
                mentioned_agents=[agent.display_name for agent in mentioned],
                total_rounds=total_rounds,
            ),
            model=answered.model if answered else None,
            provider=answered.provider if answered else None,
            routing_info=routing_info,
        )
