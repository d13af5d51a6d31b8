"""
Test the collaboration orchestrator styles.
"""

import random

import pytest

from ai_tutors.agents.tutor.collaboration import CollaborationOrchestrator
from ai_tutors.agents.tutor.state import CollaborativeOptions, CollaborativeStyle
from ai_tutors.core.exceptions import NoAgentsAvailableError

from conftest import FakeCompletionService


def make_orchestrator(completion, settings, seed=7):
    return CollaborationOrchestrator(completion, settings, rng=random.Random(seed))


@pytest.mark.asyncio
class TestParticipantSelection:
    """Who takes part in a collaborative turn."""

    async def test_mentioned_agents_always_included(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        participants, mentioned = orchestrator.select_participants(
            "@carmen-peer @laila-peer thoughts?", mock_agents, CollaborativeOptions(max_agents=1)
        )

        assert [agent.name for agent in participants] == ["carmen-peer", "laila-peer"]
        assert mentioned == participants

    async def test_explicit_selection_used_without_mentions(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        participants, mentioned = orchestrator.select_participants(
            "thoughts?", mock_agents, CollaborativeOptions(selected_agent_ids=[5, 2, 99])
        )

        assert [agent.id for agent in participants] == [5, 2]
        assert mentioned == []

    async def test_keyword_shortlist_caps_at_max_agents(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        participants, _ = orchestrator.select_participants(
            "My code has a bug", mock_agents, CollaborativeOptions(max_agents=2)
        )

        assert [agent.name for agent in participants] == ["helper-tutor", "project-tutor"]

    async def test_small_pool_uses_everyone(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        participants, _ = orchestrator.select_participants(
            "hello", mock_agents[:2], CollaborativeOptions(max_agents=3)
        )

        assert len(participants) == 2

    async def test_unavailable_selection_falls_back_to_shortlist(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        participants, mentioned = orchestrator.select_participants(
            "My code has a bug", mock_agents, CollaborativeOptions(max_agents=2, selected_agent_ids=[999])
        )

        assert [agent.name for agent in participants] == ["helper-tutor", "project-tutor"]
        assert mentioned == []

    async def test_stale_selection_still_answers(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)

        result = await orchestrator.run(
            "thoughts?",
            mock_agents,
            [],
            CollaborativeOptions(style=CollaborativeStyle.PARALLEL, selected_agent_ids=[999]),
        )

        assert len(result.info.agent_contributions) == test_settings.TUTOR_COLLAB_MAX_AGENTS
        assert not any(item.failed for item in result.info.agent_contributions)

    async def test_empty_pool_is_fatal(self, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)
        with pytest.raises(NoAgentsAvailableError):
            await orchestrator.run("hello", [], options=CollaborativeOptions())


@pytest.mark.asyncio
class TestCollaborativeStyles:
    """Parallel, sequential, debate and random dispatch."""

    async def test_parallel_failure_becomes_placeholder(self, mock_agents, test_settings):
        completion = FakeCompletionService(failing_agents={"laila-peer"})
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@socratic-tutor @laila-peer is recursion magic?",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL),
        )

        assert "[Laila was unable to respond]" in result.content
        assert "Reply from socratic-tutor" in result.content
        failed = [item for item in result.info.agent_contributions if item.failed]
        assert [item.agent_name for item in failed] == ["laila-peer"]
        assert result.info.mentioned_agents == ["Socratic Guide", "Laila"]

    async def test_parallel_all_failing_still_succeeds(self, mock_agents, test_settings):
        completion = FakeCompletionService(failing_agents={"carmen-peer", "beatrice-peer"})
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@carmen-peer @beatrice-peer hi",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL),
        )

        assert "[Carmen was unable to respond]" in result.content
        assert "[Beatrice was unable to respond]" in result.content
        assert result.info.synthesis is None
        assert completion.calls_tagged("tutor-collaborative-synthesis") == []

    async def test_parallel_order_follows_selection_not_completion(self, mock_agents, test_settings):
        completion = FakeCompletionService(delays={"socratic-tutor": 0.05, "helper-tutor": 0.0})
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@socratic-tutor @helper-tutor explain",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL, synthesize=False),
        )

        names = [item.agent_name for item in result.info.agent_contributions]
        assert names == ["socratic-tutor", "helper-tutor"]
        assert result.content.index("Socratic Guide") < result.content.index("Helpful Guide")

    async def test_timeout_becomes_placeholder(self, mock_agents, test_settings):
        test_settings.TUTOR_AGENT_TIMEOUT_SECONDS = 0.01
        completion = FakeCompletionService(delays={"carmen-peer": 0.5})
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@carmen-peer @laila-peer hi",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL, synthesize=False),
        )

        assert "[Carmen was unable to respond]" in result.content
        assert "Reply from laila-peer" in result.content

    async def test_synthesis_leads_the_reply(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)

        result = await orchestrator.run(
            "@socratic-tutor @helper-tutor what is a closure?",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL),
        )

        assert result.content.startswith("Synthesized answer")
        assert result.info.synthesis == "Synthesized answer"
        assert "Reply from helper-tutor" in result.content

    async def test_synthesis_failure_falls_back_to_concatenation(self, mock_agents, test_settings):
        completion = FakeCompletionService(synthesis_error=RuntimeError("boom"))
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@socratic-tutor @helper-tutor what is a closure?",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL),
        )

        assert result.info.synthesis is None
        assert result.content == (
            "**Socratic Guide**:\nReply from socratic-tutor"
            "\n\n---\n\n"
            "**Helpful Guide**:\nReply from helper-tutor"
        )

    async def test_mentions_never_reach_prompts(self, mock_agents, test_settings):
        completion = FakeCompletionService()
        orchestrator = make_orchestrator(completion, test_settings)

        await orchestrator.run(
            '@"Socratic Guide" @helper-tutor what is a closure?',
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.PARALLEL),
        )

        assert all("@" not in call["user_prompt"] for call in completion.calls)

    async def test_sequential_passes_earlier_contributions(self, mock_agents, test_settings):
        completion = FakeCompletionService()
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@socratic-tutor @helper-tutor @carmen-peer explain pointers",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.SEQUENTIAL, synthesize=False),
        )

        agent_calls = completion.calls_tagged("tutor-collaborative")
        assert "Reply from" not in agent_calls[0]["user_prompt"]
        assert "Reply from socratic-tutor" in agent_calls[1]["user_prompt"]
        assert "Reply from socratic-tutor" in agent_calls[2]["user_prompt"]
        assert "Reply from helper-tutor" in agent_calls[2]["user_prompt"]
        assert result.info.total_rounds is None

    async def test_debate_reports_two_rounds(self, mock_agents, test_settings):
        completion = FakeCompletionService()
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "@laila-peer @socratic-tutor @carmen-peer is OOP overrated?",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.DEBATE, synthesize=False),
        )

        assert result.info.total_rounds == 2
        rounds = [item.round for item in result.info.agent_contributions]
        assert rounds == [1, 1, 1, 2, 2, 2]

        second_round_laila = completion.calls_tagged("tutor-collaborative")[3]
        assert "Reply from socratic-tutor" in second_round_laila["user_prompt"]
        assert "Reply from carmen-peer" in second_round_laila["user_prompt"]
        assert "Reply from laila-peer" not in second_round_laila["user_prompt"]

    async def test_debate_rounds_independent_of_agent_count(self, mock_agents, test_settings):
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)

        result = await orchestrator.run(
            "@laila-peer argue with me",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.DEBATE),
        )

        assert result.info.total_rounds == 2

    async def test_random_picks_one_with_fixed_routing_info(self, mock_agents, test_settings):
        completion = FakeCompletionService()
        orchestrator = make_orchestrator(completion, test_settings)

        result = await orchestrator.run(
            "surprise me",
            mock_agents,
            options=CollaborativeOptions(style=CollaborativeStyle.RANDOM),
        )

        assert len(result.info.agent_contributions) == 1
        assert result.routing_info.confidence == 1.0
        assert result.routing_info.reason == "Randomly selected"
        assert result.routing_info.selected_agent.id == result.info.agent_contributions[0].agent_id
        assert completion.calls_tagged("tutor-collaborative-synthesis") == []

    async def test_default_style_comes_from_settings(self, mock_agents, test_settings):
        test_settings.TUTOR_COLLAB_DEFAULT_STYLE = "sequential"
        orchestrator = make_orchestrator(FakeCompletionService(), test_settings)

        result = await orchestrator.run("@carmen-peer hi", mock_agents)

        assert result.info.style == CollaborativeStyle.SEQUENTIAL
